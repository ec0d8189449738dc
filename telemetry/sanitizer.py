"""Strip markup from untrusted client fields before they are stored or displayed."""

import dataclasses

from markupsafe import Markup, escape

from telemetry.models import UNKNOWN, ErrorRecord, server_timestamp

_FALLBACKS = {
    "source": UNKNOWN,
    "context": "General",
    "user_agent": UNKNOWN,
    "page_url": UNKNOWN,
    "endpoint_dns": UNKNOWN,
}


def clean(value):
    """Remove tags and escape what is left.

    striptags also collapses runs of whitespace, newlines included, so a
    cleaned value always fits on one log line. Containers are cleaned
    element by element; None is kept; other scalars are cleaned as text.
    """
    if value is None:
        return None
    if isinstance(value, dict):
        return {key: clean(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(clean(item) for item in value)
    if not isinstance(value, str):
        value = str(value)
    # striptags() unescapes entities, so escaping must come last
    stripped = str(Markup(value).striptags())
    return str(escape(stripped))


def sanitize(record: ErrorRecord) -> ErrorRecord:
    """Return a copy of record with every text field and stack line cleaned.

    Never raises. A descriptive field that cleans down to nothing gets its
    default back, and an emptied timestamp becomes server time. The message
    is left as cleaned, possibly empty; rejecting it is up to the caller.
    """
    changes = {
        "message": clean(record.message),
        "timestamp": clean(record.timestamp) or server_timestamp(),
    }
    for name, fallback in _FALLBACKS.items():
        changes[name] = clean(getattr(record, name)) or fallback
    changes["stack_trace"] = tuple(
        line for line in clean(tuple(record.stack_trace)) if line
    )
    return dataclasses.replace(record, **changes)
