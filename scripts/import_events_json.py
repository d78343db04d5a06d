#!/usr/bin/env python3
"""Copy events from a JSON event file into the SQL store.

Handles files written by the file-backed store as well as legacy
``{id, title, date, category}`` records.
"""
import argparse
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]


def resolve_path(path_value: str, base_dir: Path) -> Path:
    path = Path(path_value)
    if path.is_absolute():
        return path
    return (base_dir / path).resolve()


def import_events(source, target, overwrite=False):
    """Copy every event from ``source`` into ``target``; returns (imported, skipped)."""
    from backend.series_scope import SeriesChange

    change = SeriesChange()
    skipped = 0
    for event in source.list_events():
        existing = target.get(event.id)
        if existing and not overwrite:
            skipped += 1
            continue
        if existing:
            change.replaced.append(event)
        else:
            change.added.append(event)
    target.apply(change)
    return len(change.added) + len(change.replaced), skipped


def main() -> int:
    parser = argparse.ArgumentParser(description="Import a JSON event file into the calendar database.")
    parser.add_argument(
        "--source",
        default="data/events.json",
        help="JSON event file to import (default: data/events.json).",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace events whose id already exists in the database.",
    )
    args = parser.parse_args()

    source_path = resolve_path(args.source, ROOT_DIR)
    if not source_path.exists():
        raise SystemExit(f"Event file not found: {source_path}")

    sys.path.insert(0, str(ROOT_DIR))
    from app import app, db
    from backend.event_store import JsonFileEventStore, SqlEventStore

    with app.app_context():
        imported, skipped = import_events(
            JsonFileEventStore(source_path),
            SqlEventStore(db.session),
            overwrite=args.overwrite,
        )

    print(f"Imported {imported} events from {source_path}")
    if skipped:
        print(f"Skipped {skipped} events that already exist (use --overwrite to replace).")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
