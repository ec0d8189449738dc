"""Plain-text entry formatting for the log store."""

from typing import Optional

from telemetry.models import UNKNOWN, ErrorRecord

CLIENT_ERROR_LEVEL = "CLIENT ERROR"
SEPARATOR = "-" * 80
FIELD_INDENT = "  "
STACK_INDENT = "    "


def _flag_text(value: Optional[bool]) -> str:
    if value is None:
        return UNKNOWN
    return "true" if value else "false"


def format_client_error(record: ErrorRecord, identity: str) -> str:
    """Render one client error record as a multi-line entry ending in a separator rule.

    Field order is fixed; log viewers parse it by label.
    """
    lines = [
        f"[{record.timestamp}] [{CLIENT_ERROR_LEVEL}]",
        f"{FIELD_INDENT}Source: {record.source}",
        f"{FIELD_INDENT}Context: {record.context}",
        f"{FIELD_INDENT}Message: {record.message}",
        f"{FIELD_INDENT}URL: {record.page_url}",
        f"{FIELD_INDENT}User Agent: {record.user_agent}",
        f"{FIELD_INDENT}DNS: {record.endpoint_dns}",
        f"{FIELD_INDENT}CORS: {_flag_text(record.cors_enabled)}",
        f"{FIELD_INDENT}HTTPS: {_flag_text(record.https_enabled)}",
    ]
    if record.stack_trace:
        lines.append(f"{FIELD_INDENT}Stack Trace:")
        lines.extend(f"{STACK_INDENT}{line}" for line in record.stack_trace)
    lines.append(f"{FIELD_INDENT}IP: {identity}")
    lines.append(SEPARATOR)
    return "\n".join(lines) + "\n"


def format_event(level: str, message: str, timestamp: str) -> str:
    """Single-line event entry: ``[timestamp] [LEVEL] message``."""
    message = " ".join(str(message).splitlines())
    return f"[{timestamp}] [{level.upper()}] {message}\n"
