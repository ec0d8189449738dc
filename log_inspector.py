"""CLI view of stored telemetry: per-category files and parsed entries."""

import argparse
import dataclasses
import json
import sys

from telemetry.config import load_config
from telemetry.inspector import category_files, parse_entries, read_file, search_entries
from telemetry.log_store import CATEGORIES, LogStore


def show_files(store: LogStore):
    for category, files in category_files(store).items():
        state = f"{files['size']} bytes" if files["exists"] else "not created yet"
        print(f"{category}: {files['active']} ({state})")
        for name in files["rotated"]:
            print(f"    rotated: {name}")


def show_entries(store: LogStore, filename: str):
    try:
        content = read_file(store.log_dir, filename)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    for entry in parse_entries(content):
        print(json.dumps(entry))


def show_matches(store: LogStore, text: str, field=None, category=None):
    matches = search_entries(store, text, field=field, category=category)
    if not matches:
        print(f"No entries match '{text}'.", file=sys.stderr)
        return
    for filename, entry in matches:
        print(json.dumps({"file": filename, **entry}))


def main():
    parser = argparse.ArgumentParser(description="Inspect stored client error telemetry")
    parser.add_argument("--config", help="YAML config file (defaults to $CONFIG_PATH)")
    parser.add_argument("--log-dir", help="Override the configured log directory")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--files", action="store_true",
                       help="Show each category's active and rotated files")
    group.add_argument("--entries", metavar="FILENAME",
                       help="Print a file's entries as JSON lines")
    group.add_argument("--search", metavar="TEXT",
                       help="Print entries containing TEXT as JSON lines")
    parser.add_argument("--field", help="Restrict --search to one field, e.g. Message or Source")
    parser.add_argument("--category", choices=CATEGORIES, help="Restrict --search to one category")
    args = parser.parse_args()

    config = load_config(args.config)
    if args.log_dir:
        config = dataclasses.replace(config, log_dir=args.log_dir)
    store = LogStore(config)

    if args.files:
        show_files(store)
    elif args.entries:
        show_entries(store, args.entries)
    else:
        show_matches(store, args.search, field=args.field, category=args.category)


if __name__ == "__main__":
    main()
