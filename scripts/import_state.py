from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from srs_sentences.db.base import get_engine, init_db
from srs_sentences.services.persistence_service import PersistenceGateway, parse_state


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import a saved application state (any stored version) into the database, "
        "migrating it to the current shape."
    )
    parser.add_argument("path", type=Path, help="JSON file holding the saved state")
    parser.add_argument("--force", action="store_true", help="Replace state that is already stored")
    parser.add_argument("--dry-run", action="store_true", help="Only validate and summarize, do not write")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    try:
        payload = json.loads(args.path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        print(f"ERROR: could not read {args.path}: {exc}", file=sys.stderr)
        raise SystemExit(1)

    state = parse_state(payload)
    if state is None:
        print("ERROR: the file is not a supported saved state.", file=sys.stderr)
        raise SystemExit(1)
    sentences = sum(len(entry.sentences) for entry in state.entries)
    print(f"Found {len(state.entries)} word entr{'y' if len(state.entries) == 1 else 'ies'} and {sentences} sentence(s).")
    if args.dry_run:
        print("[DRY RUN] Nothing written.")
        return

    init_db()
    gateway = PersistenceGateway(get_engine())
    if gateway.load() is not None and not args.force:
        print("ERROR: state already stored; pass --force to replace it.", file=sys.stderr)
        raise SystemExit(1)
    gateway.save(state)
    print("Imported.")


if __name__ == "__main__":
    main()
