#!/usr/bin/env python3
"""Replace 名前不明 job seeker names with the name found in the sheet.

Usage:
  python -m tools.update_unknown_names sheet.csv          # dry-run
  python -m tools.update_unknown_names sheet.csv --apply
"""

from typing import Any, Dict, List, Optional

from ingestion.config.sheet_columns import cell
from ingestion.utils.normalize import UNKNOWN_NAME, join_name, normalize_phone
from webapp import db

from .common import apply_updates, build_parser, load_sheet, open_database, print_summary, sheet_phone_map


def sheet_name(row: List[str]) -> Optional[str]:
    name = cell(row, "NAME") or join_name(cell(row, "NAME_LAST"), cell(row, "NAME_FIRST"))
    if not name or name == UNKNOWN_NAME:
        return None
    return name


def run(csv_path, apply: bool = False) -> Dict[str, Any]:
    name_by_phone = sheet_phone_map(load_sheet(csv_path), sheet_name)
    print(f"Sheet phones with name: {len(name_by_phone)}")

    unknown = db.list_rows("job_seekers", where={"name": UNKNOWN_NAME})
    print(f"Job seekers named {UNKNOWN_NAME}: {len(unknown)}")
    if not unknown:
        print("\n[OK] Nothing to update")
        return {"updates": [], "not_found": 0, "success": 0, "errors": 0}

    updates = []
    not_found = 0
    for seeker in unknown:
        name = name_by_phone.get(normalize_phone(seeker["phone"]))
        if name:
            updates.append({"id": seeker["id"], "name": name})
            if len(updates) <= 10:
                print(f"  {seeker['phone']} -> {name}")
        else:
            not_found += 1
    if len(updates) > 10:
        print(f"  ... and {len(updates) - 10} more")

    result = apply_updates("job_seekers", updates) if apply else {"success": 0, "errors": 0}
    print_summary(
        "Unknown name update" + ("" if apply else " (dry-run)"),
        {
            "Unknown before": len(unknown),
            ("Updated" if apply else "To update"): result["success"] if apply else len(updates),
            "No name in sheet": not_found,
            "Errors": result["errors"],
        },
    )
    print(f"\nRemaining {UNKNOWN_NAME}: {db.count_rows('job_seekers', {'name': UNKNOWN_NAME})}")
    if not apply:
        print("\nDry-run only. Re-run with --apply to update.")
    return {"updates": updates, "not_found": not_found, **result}


def main():
    args = build_parser("Fill unknown job seeker names from the sheet", csv=True).parse_args()
    open_database(args.db)
    run(args.csv, apply=args.apply)


if __name__ == "__main__":
    main()
