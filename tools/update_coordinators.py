#!/usr/bin/env python3
"""Set application coordinators from the sheet's BB column.

Usage:
  python -m tools.update_coordinators sheet.csv          # dry-run
  python -m tools.update_coordinators sheet.csv --apply

The sheet holds the coordinator's last name; it is resolved to a user by
exact name, then by a unique prefix.
"""

from typing import Any, Dict

from ingestion.agents.coordinator_matcher import CoordinatorMatcher
from ingestion.config.sheet_columns import cell
from ingestion.utils.reporting import print_distribution
from webapp import db

from .common import (
    apply_updates,
    build_parser,
    load_sheet,
    open_database,
    print_summary,
    seeker_phones,
    sheet_phone_map,
)


def run(csv_path, apply: bool = False) -> Dict[str, Any]:
    coordinator_by_phone = sheet_phone_map(load_sheet(csv_path), lambda row: cell(row, "BB"))
    print(f"Sheet phones with coordinator: {len(coordinator_by_phone)}")

    users = db.fetch_all_rows("users", "id, name")
    if not users:
        raise SystemExit("No users found")
    print(f"Users: {len(users)}")
    for user in users:
        print(f"   - {user['name']}")
    matcher = CoordinatorMatcher(users)

    phones = seeker_phones()
    applications = db.fetch_all_rows("applications", "id, job_seeker_id, coordinator_id")
    print(f"Applications: {len(applications)}")

    updates = []
    counts = {"already_set": 0, "no_coordinator": 0, "not_found": 0}
    for app in applications:
        phone = phones.get(app["job_seeker_id"])
        if not phone:
            counts["not_found"] += 1
            continue
        last_name = coordinator_by_phone.get(phone)
        if not last_name:
            counts["no_coordinator"] += 1
            continue
        coordinator_id = matcher.match(last_name)
        if not coordinator_id:
            counts["not_found"] += 1
            continue
        if app.get("coordinator_id") == coordinator_id:
            counts["already_set"] += 1
            continue
        updates.append({"id": app["id"], "coordinator_id": coordinator_id})

    result = apply_updates("applications", updates) if apply else {"success": 0, "errors": 0}
    print_summary(
        "Coordinator update" + ("" if apply else " (dry-run)"),
        {
            "Applications": len(applications),
            ("Updated" if apply else "To update"): result["success"] if apply else len(updates),
            "Already set": counts["already_set"],
            "No coordinator in sheet": counts["no_coordinator"],
            "No match": counts["not_found"],
            "Errors": result["errors"],
        },
    )

    names = {u["id"]: u["name"] for u in users}
    print_distribution(
        "Applications by coordinator",
        [names.get(a["coordinator_id"]) for a in db.fetch_all_rows("applications", "id, coordinator_id")],
    )
    if not apply:
        print("\nDry-run only. Re-run with --apply to update.")
    return {"updates": updates, **counts, **result}


def main():
    args = build_parser("Update application coordinators from the sheet", csv=True).parse_args()
    open_database(args.db)
    run(args.csv, apply=args.apply)


if __name__ == "__main__":
    main()
