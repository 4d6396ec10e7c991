#!/usr/bin/env python3
"""Set application job types from the sheet.

Usage:
  python -m tools.update_job_types sheet.csv          # dry-run
  python -m tools.update_job_types sheet.csv --apply

Applications are matched on job seeker phone plus applied date.
"""

from typing import Any, Dict, List

from ingestion.config.sheet_columns import cell
from ingestion.utils.normalize import normalize_date_key, normalize_phone
from ingestion.utils.reporting import print_distribution
from webapp import db

from .common import apply_updates, build_parser, load_sheet, open_database, print_summary, seeker_phones


def sheet_job_types(rows: List[List[str]]) -> Dict[str, str]:
    """Map "phone|YYYY-MM-DD" keys to job types; later rows win."""
    mapping = {}
    for row in rows:
        phone = normalize_phone(cell(row, "PHONE"))
        applied = normalize_date_key(cell(row, "DATE"))
        job_type = cell(row, "JOB_TYPE")
        if phone and applied and job_type:
            mapping[f"{phone}|{applied}"] = job_type
    return mapping


def run(csv_path, apply: bool = False) -> Dict[str, Any]:
    job_types = sheet_job_types(load_sheet(csv_path))
    print(f"Sheet rows with job type: {len(job_types)}")

    phones = seeker_phones()
    applications = db.fetch_all_rows("applications", "id, job_seeker_id, job_type, applied_at")
    print(f"Applications: {len(applications)}")

    updates = []
    counts = {"already_set": 0, "no_job_type": 0, "not_found": 0}
    for app in applications:
        phone = phones.get(app["job_seeker_id"])
        if not phone:
            counts["not_found"] += 1
            continue
        job_type = job_types.get(f"{phone}|{normalize_date_key(app['applied_at'])}")
        if not job_type:
            counts["no_job_type"] += 1
            continue
        if app.get("job_type") == job_type:
            counts["already_set"] += 1
            continue
        updates.append({"id": app["id"], "job_type": job_type})

    result = {"success": 0, "errors": 0}
    if apply:
        result = apply_updates("applications", updates)

    print_summary(
        "Job type update" + ("" if apply else " (dry-run)"),
        {
            "Applications": len(applications),
            ("Updated" if apply else "To update"): result["success"] if apply else len(updates),
            "Already set": counts["already_set"],
            "No job type in sheet": counts["no_job_type"],
            "No match": counts["not_found"],
            "Errors": result["errors"],
        },
    )
    print_distribution(
        "Applications by job type",
        [row["job_type"] for row in db.fetch_all_rows("applications", "id, job_type")],
    )
    if not apply:
        print("\nDry-run only. Re-run with --apply to update.")
    return {"updates": updates, **counts, **result}


def main():
    args = build_parser("Update application job types from the sheet", csv=True).parse_args()
    open_database(args.db)
    run(args.csv, apply=args.apply)


if __name__ == "__main__":
    main()
