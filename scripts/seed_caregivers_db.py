#!/usr/bin/env python3

from __future__ import annotations

import argparse
from pathlib import Path
import json
import sys


PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.services.sql_store import SqlCaregiverStore
from app.services.store import StoreError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Load caregiver JSON records into the SQL caregiver store.")
    parser.add_argument("--database-url", required=True, help="SQLAlchemy URL, e.g. sqlite:///caregivers.db")
    parser.add_argument(
        "--input",
        default="app/data/caregivers.json",
        help="Caregiver JSON file (list of records).",
    )
    return parser


def seed(database_url: str, input_path: Path) -> dict:
    rows = json.loads(input_path.read_text(encoding="utf-8"))
    if not isinstance(rows, list):
        raise StoreError("Caregiver input must be a JSON list.")
    store = SqlCaregiverStore.from_url(database_url)
    store.create_schema()
    written = store.upsert_rows(rows)
    return {"input_rows": len(rows), "written_rows": written}


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    try:
        result = seed(args.database_url, Path(args.input))
    except StoreError as exc:
        print(f"Caregiver seed failed: {exc}")
        return 1
    except FileNotFoundError as exc:
        print(f"File not found: {exc}")
        return 1
    except json.JSONDecodeError as exc:
        print(f"Invalid JSON: {exc}")
        return 1

    print("Caregiver seed complete")
    print(f"- Input rows: {result['input_rows']}")
    print(f"- Rows written: {result['written_rows']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
