"""Read stored telemetry back: per-category files and parsed entries."""

import os
import re

from telemetry.formatter import CLIENT_ERROR_LEVEL, FIELD_INDENT, SEPARATOR, STACK_INDENT
from telemetry.log_store import CATEGORIES, ROTATED_SUFFIX, LogStore

_HEADER_RE = re.compile(r"^\[(?P<timestamp>[^\]]*)\] \[(?P<level>[^\]]+)\](?: (?P<message>.*))?$")
_FIELD_RE = re.compile(r"^  (?P<label>[A-Za-z ]+): (?P<value>.*)$")


def rotated_files(log_dir: str, filename: str) -> list[str]:
    """Rotated generations of an active file, oldest first."""
    if not os.path.isdir(log_dir):
        return []
    prefix = filename + "."
    return sorted(
        name for name in os.listdir(log_dir)
        if name.startswith(prefix) and name.endswith(ROTATED_SUFFIX)
    )


def category_files(store: LogStore) -> dict[str, dict]:
    """Map each category to its active file, its size and its rotated files."""
    files = {}
    for category in CATEGORIES:
        filename = os.path.basename(store.path_for(category))
        files[category] = {
            "active": filename,
            "exists": os.path.exists(store.path_for(category)),
            "size": store.size_of(category),
            "rotated": rotated_files(store.log_dir, filename),
        }
    return files


def read_file(log_dir: str, filename: str) -> str:
    path = os.path.join(log_dir, filename)
    if not os.path.exists(path):
        raise FileNotFoundError(f"File not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _matches(entry: dict, needle: str, field: str | None) -> bool:
    if field is not None:
        values = entry.get(field)
    else:
        values = [v for k, v in entry.items() if k != "level"]
    if values is None:
        return False
    if isinstance(values, str):
        values = [values]
    flat = []
    for value in values:
        flat.extend(value if isinstance(value, list) else [value])
    return any(needle in str(value).lower() for value in flat)


def search_entries(store: LogStore, text: str, field: str | None = None,
                   category: str | None = None) -> list[tuple[str, dict]]:
    """Find parsed entries whose field (or any field) contains text, case-insensitively.

    Rotated files are searched before the active one so results come out
    oldest first. Returns (filename, entry) pairs.
    """
    needle = text.lower()
    results = []
    for name, files in category_files(store).items():
        if category is not None and name != category:
            continue
        names = files["rotated"] + ([files["active"]] if files["exists"] else [])
        for filename in names:
            for entry in parse_entries(read_file(store.log_dir, filename)):
                if _matches(entry, needle, field):
                    results.append((filename, entry))
    return results


def parse_entries(text: str) -> list[dict]:
    """Split log text back into entries.

    Client error entries become dicts keyed by field label plus
    ``timestamp``, ``level`` and ``stack_trace``; one-line events carry
    ``timestamp``, ``level`` and ``message``. Lines that fit neither shape
    are skipped.
    """
    entries = []
    current = None
    in_stack = False

    for line in text.splitlines():
        if current is not None:
            if line == SEPARATOR:
                entries.append(current)
                current = None
                continue
            if in_stack and line.startswith(STACK_INDENT):
                current["stack_trace"].append(line[len(STACK_INDENT):])
                continue
            in_stack = False
            if line == f"{FIELD_INDENT}Stack Trace:":
                in_stack = True
                continue
            match = _FIELD_RE.match(line)
            if match:
                current[match.group("label")] = match.group("value")
            continue

        match = _HEADER_RE.match(line)
        if not match:
            continue
        if match.group("level") == CLIENT_ERROR_LEVEL and match.group("message") is None:
            current = {
                "timestamp": match.group("timestamp"),
                "level": CLIENT_ERROR_LEVEL,
                "stack_trace": [],
            }
            in_stack = False
        else:
            entries.append({
                "timestamp": match.group("timestamp"),
                "level": match.group("level"),
                "message": match.group("message") or "",
            })

    return entries
