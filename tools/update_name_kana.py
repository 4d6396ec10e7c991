#!/usr/bin/env python3
"""Fill empty job seeker name_kana from the sheet.

Usage:
  python -m tools.update_name_kana sheet.csv          # dry-run
  python -m tools.update_name_kana sheet.csv --apply

The first sheet row per phone wins. Seekers that already have a kana are
left alone.
"""

from typing import Any, Dict

from ingestion.agents.data_extractor import extract_kana
from ingestion.utils.normalize import normalize_phone
from webapp import db

from .common import apply_updates, build_parser, load_sheet, open_database, print_summary, sheet_phone_map


def run(csv_path, apply: bool = False) -> Dict[str, Any]:
    kana_by_phone = sheet_phone_map(load_sheet(csv_path), extract_kana, first_wins=True)
    print(f"Sheet phones with kana: {len(kana_by_phone)}")

    seekers = db.fetch_all_rows("job_seekers", "id, phone, name_kana")
    print(f"Job seekers: {len(seekers)}")

    updates = []
    already_set = 0
    no_kana = 0
    for seeker in seekers:
        if (seeker.get("name_kana") or "").strip():
            already_set += 1
            continue
        kana = kana_by_phone.get(normalize_phone(seeker["phone"]))
        if not kana:
            no_kana += 1
            continue
        updates.append({"id": seeker["id"], "name_kana": kana})

    result = apply_updates("job_seekers", updates) if apply else {"success": 0, "errors": 0}
    print_summary(
        "Kana update" + ("" if apply else " (dry-run)"),
        {
            "Job seekers": len(seekers),
            ("Updated" if apply else "To update"): result["success"] if apply else len(updates),
            "Already set": already_set,
            "No kana in sheet": no_kana,
            "Errors": result["errors"],
        },
    )
    if not apply:
        print("\nDry-run only. Re-run with --apply to update.")
    return {"updates": updates, "already_set": already_set, "no_kana": no_kana, **result}


def main():
    args = build_parser("Fill job seeker kana from the sheet", csv=True).parse_args()
    open_database(args.db)
    run(args.csv, apply=args.apply)


if __name__ == "__main__":
    main()
