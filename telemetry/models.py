"""Error record model and wire-format normalization."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from telemetry.exceptions import ValidationError

SERVER_TIMESTAMP_FORMAT = "%d/%m/%Y %H:%M:%S"
CLIENT_TIMESTAMP_FORMAT = "%d/%m/%Y, %H:%M:%S"
UNKNOWN = "Unknown"


def server_timestamp(now: Optional[datetime] = None) -> str:
    """Server-local fallback timestamp, day-first."""
    return (now or datetime.now()).strftime(SERVER_TIMESTAMP_FORMAT)


def client_timestamp(now: Optional[datetime] = None) -> str:
    """Client-local timestamp in the player's en-GB locale style."""
    return (now or datetime.now()).strftime(CLIENT_TIMESTAMP_FORMAT)


@dataclass(frozen=True)
class ErrorRecord:
    message: str
    timestamp: str = field(default_factory=server_timestamp)
    source: str = UNKNOWN
    context: str = "General"
    user_agent: str = UNKNOWN
    page_url: str = UNKNOWN
    endpoint_dns: str = UNKNOWN
    cors_enabled: Optional[bool] = None
    https_enabled: Optional[bool] = None
    stack_trace: tuple = ()

    def __post_init__(self):
        if not isinstance(self.message, str):
            raise ValidationError("message must be a string")


def split_stack(stack) -> tuple:
    """Normalize a stack given as text or a sequence of lines into trimmed, non-blank lines."""
    if stack is None:
        return ()
    if isinstance(stack, str):
        chunks = [stack]
    elif isinstance(stack, (list, tuple)):
        chunks = [str(item) for item in stack if item is not None]
    else:
        chunks = [str(stack)]

    lines = []
    for chunk in chunks:
        for line in chunk.splitlines():
            line = line.strip()
            if line:
                lines.append(line)
    return tuple(lines)


def _flag(value) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _text(value, default: str) -> str:
    if value is None:
        return default
    text = str(value)
    return text if text.strip() else default


def record_from_payload(payload, now: Optional[datetime] = None) -> ErrorRecord:
    """Build an ErrorRecord from a decoded JSON body.

    Missing optional fields get their defaults; ``timestamp`` falls back to
    server time. A missing or empty ``message`` raises ValidationError.
    """
    if not isinstance(payload, dict) or payload.get("message") is None:
        raise ValidationError("Invalid data format")
    if isinstance(payload["message"], (dict, list)):
        raise ValidationError("message must be a string")
    message = str(payload["message"])
    if not message.strip():
        raise ValidationError("message must be a non-empty string")

    return ErrorRecord(
        message=message,
        timestamp=_text(payload.get("timestamp"), server_timestamp(now)),
        source=_text(payload.get("source"), UNKNOWN),
        context=_text(payload.get("context"), "General"),
        user_agent=_text(payload.get("userAgent"), UNKNOWN),
        page_url=_text(payload.get("url"), UNKNOWN),
        endpoint_dns=_text(payload.get("dns"), UNKNOWN),
        cors_enabled=_flag(payload.get("cors")),
        https_enabled=_flag(payload.get("https")),
        stack_trace=split_stack(payload.get("stack")),
    )


def record_to_payload(record: ErrorRecord) -> dict:
    """Serialize an ErrorRecord into the JSON body the ingestion endpoint accepts."""
    payload = {
        "timestamp": record.timestamp,
        "message": record.message,
        "source": record.source,
        "context": record.context,
        "userAgent": record.user_agent,
        "url": record.page_url,
        "dns": record.endpoint_dns,
    }
    if record.cors_enabled is not None:
        payload["cors"] = record.cors_enabled
    if record.https_enabled is not None:
        payload["https"] = record.https_enabled
    if record.stack_trace:
        payload["stack"] = "\n".join(record.stack_trace)
    return payload
