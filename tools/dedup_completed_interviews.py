#!/usr/bin/env python3
"""Clear legacy 完了 interviews that duplicate a completed one.

Usage:
  python -m tools.dedup_completed_interviews                    # dry-run
  python -m tools.dedup_completed_interviews --apply
  python -m tools.dedup_completed_interviews --sheet sheet.csv  # compare with the sheet

Conducted interviews are grouped by job seeker phone and scheduled date.
In groups that also hold a `completed` interview, the 完了 records get
conducted_at and result cleared so each interview counts once.
"""

from typing import Any, Dict, List

from ingestion.agents.data_extractor import count_sheet_months
from ingestion.utils.reporting import monthly_frame, print_table
from webapp import db

from .common import apply_updates, build_parser, load_sheet, open_database

LEGACY_RESULT = "完了"


def find_legacy_duplicates(interviews: List[Dict], applications: List[Dict], job_seekers: List[Dict]) -> List[Dict]:
    seeker_by_app = {a["id"]: a["job_seeker_id"] for a in applications}
    phone_by_seeker = {js["id"]: js.get("phone") or "" for js in job_seekers}

    groups: Dict[str, List[Dict]] = {}
    for interview in interviews:
        if not interview.get("conducted_at"):
            continue
        seeker_id = seeker_by_app.get(interview["application_id"])
        if seeker_id is None:
            continue
        key = f"{phone_by_seeker.get(seeker_id, '')}:{(interview.get('scheduled_at') or '')[:10]}"
        groups.setdefault(key, []).append(interview)

    legacy = []
    for members in groups.values():
        if len(members) < 2:
            continue
        if any(iv.get("result") == "completed" for iv in members):
            legacy.extend(iv for iv in members if iv.get("result") == LEGACY_RESULT)
    return legacy


def run(apply: bool = False, sheet_path: str = None) -> Dict[str, Any]:
    interviews = db.fetch_all_rows("interviews", "id, application_id, scheduled_at, conducted_at, result")
    applications = db.fetch_all_rows("applications", "id, job_seeker_id")
    job_seekers = db.fetch_all_rows("job_seekers", "id, phone")

    conducted = [iv for iv in interviews if iv.get("conducted_at")]
    print(f"conducted_at set: {len(conducted)}")

    legacy = find_legacy_duplicates(interviews, applications, job_seekers)
    print(f"\nDuplicates (completed + {LEGACY_RESULT}) to clear: {len(legacy)}")
    by_month: Dict[str, int] = {}
    for iv in legacy:
        month = (iv.get("scheduled_at") or "")[:7] or "unknown"
        by_month[month] = by_month.get(month, 0) + 1
    print_table("To clear by month", monthly_frame({"clear": by_month}))

    summary: Dict[str, Any] = {"legacy": [iv["id"] for iv in legacy], "applied": None}
    if apply and legacy:
        summary["applied"] = apply_updates(
            "interviews", [{"id": iv["id"], "conducted_at": None, "result": None} for iv in legacy]
        )
        print(f"  success: {summary['applied']['success']}, errors: {summary['applied']['errors']}")

    cleared = set(summary["legacy"])
    after: Dict[str, int] = {}
    for iv in conducted:
        if iv["id"] in cleared:
            continue
        month = (iv.get("scheduled_at") or "")[:7]
        if month:
            after[month] = after.get(month, 0) + 1
    series = {"db_after": after}
    if sheet_path:
        series["sheet"] = count_sheet_months(load_sheet(sheet_path))["interviews"]
    frame = monthly_frame(series)
    if "sheet" in frame:
        frame["diff"] = frame["db_after"] - frame["sheet"]
    print_table("Conducted interviews by month after dedup", frame)

    if not apply and legacy:
        print("\nDry-run only. Re-run with --apply to clear them.")
    return summary


def main():
    ap = build_parser("Clear duplicate legacy completed interviews")
    ap.add_argument("--sheet", default=None, help="Sheet export to compare monthly counts with")
    args = ap.parse_args()
    open_database(args.db)
    run(apply=args.apply, sheet_path=args.sheet)


if __name__ == "__main__":
    main()
