"""Shared plumbing for the maintenance scripts: --db option, sheet loading, phone lookups."""

import argparse
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ingestion.config.sheet_columns import cell
from ingestion.utils.csv_reader import read_sheet_rows
from ingestion.utils.normalize import normalize_phone
from webapp import db


def build_parser(description: str, csv: bool = False, flag: Optional[str] = "--apply") -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description=description)
    if csv:
        ap.add_argument("csv", help="Sheet export (CSV)")
    if flag:
        ap.add_argument(flag, action="store_true", help="Write changes (default: dry-run)")
    ap.add_argument("--db", default=None, help="SQLite database (default: BACKOFFICE_DB)")
    return ap


def open_database(db_path: Optional[str]) -> None:
    if db_path:
        db.use_database(Path(db_path))


def load_sheet(csv_path) -> List[List[str]]:
    path = Path(csv_path)
    if not path.exists():
        raise SystemExit(f"File not found: {path}")
    rows = read_sheet_rows(path)
    print(f"CSV: {path}")
    print(f"Sheet data rows: {len(rows)}")
    return rows


def sheet_phone_map(
    rows: List[List[str]],
    value: Callable[[List[str]], Optional[str]],
    first_wins: bool = False,
) -> Dict[str, str]:
    """Normalized phone -> value for rows that have both; later rows overwrite unless first_wins."""
    mapping: Dict[str, str] = {}
    for row in rows:
        phone = normalize_phone(cell(row, "PHONE"))
        found = value(row)
        if not phone or not found:
            continue
        if first_wins and phone in mapping:
            continue
        mapping[phone] = found
    return mapping


def seeker_phones() -> Dict[str, str]:
    """job_seeker id -> normalized phone."""
    phones = {}
    for seeker in db.fetch_all_rows("job_seekers", "id, phone"):
        phone = normalize_phone(seeker["phone"])
        if phone:
            phones[seeker["id"]] = phone
    return phones


def apply_updates(table: str, updates: List[Dict], label: str = "Updating") -> Dict[str, int]:
    """Apply {"id", **changes} updates one row at a time; failures are counted, not raised."""
    success = 0
    errors: List[str] = []
    for i, update in enumerate(updates, 1):
        changes = {k: v for k, v in update.items() if k != "id"}
        try:
            db.update_row(table, update["id"], changes)
            success += 1
        except Exception as exc:
            errors.append(f"{update['id']}: {exc}")
        if i % 100 == 0:
            print(f"\r  {label}... {i}/{len(updates)}", end="", flush=True)
    if updates:
        print()
    if errors:
        print("\nErrors (first 5):")
        for message in errors[:5]:
            print(f"  - {message}")
    return {"success": success, "errors": len(errors)}


def print_summary(title: str, counts: Dict[str, object]) -> None:
    print("\n" + "=" * 50)
    print(title)
    print("=" * 50)
    width = max(len(k) for k in counts) + 2
    for key, value in counts.items():
        print(f"{key + ':':<{width}} {value}")
