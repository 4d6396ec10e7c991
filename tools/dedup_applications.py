#!/usr/bin/env python3
"""Find and delete duplicate applications.

Usage:
  python -m tools.dedup_applications                  # dry-run
  python -m tools.dedup_applications --merge          # delete duplicates
  python -m tools.dedup_applications --report dup.csv # also export the groups

Duplicates share job seeker phone, applied date and source. The application
with the most interviews/referrals/sales survives (ties: oldest). Related
rows go first, then the applications, then job seekers left with no
application.
"""

from typing import Any, Dict

from ingestion.agents.deduplicator import (
    find_duplicate_applications,
    plan_application_deletion,
    related_counts,
)
from ingestion.utils.csv_writer import write_csv
from ingestion.utils.reporting import monthly_frame, print_table
from webapp import db

from .common import build_parser, open_database

DELETE_ORDER = ("sales", "referrals", "interviews", "applications", "job_seekers")
REPORT_FIELDS = ["key", "action", "application_id", "related", "applied_at", "created_at"]


def load_tables() -> Dict[str, Any]:
    print("\nLoading data...")
    tables = {
        "applications": db.fetch_all_rows("applications", "id, job_seeker_id, applied_at, source_id, created_at"),
        "job_seekers": db.fetch_all_rows("job_seekers", "id, phone"),
        "interviews": db.fetch_all_rows("interviews", "id, application_id"),
        "referrals": db.fetch_all_rows("referrals", "id, application_id"),
        "sales": db.fetch_all_rows("sales", "id, referral_id"),
    }
    for name, rows in tables.items():
        print(f"  {name}: {len(rows)}")
    return tables


def report_rows(groups, counts):
    rows = []
    for group in groups:
        for action, apps in (("keep", [group["keep"]]), ("delete", group["delete"])):
            for app in apps:
                rows.append({
                    "key": group["key"],
                    "action": action,
                    "application_id": app["id"],
                    "related": counts.get(app["id"], 0),
                    "applied_at": app.get("applied_at"),
                    "created_at": app.get("created_at"),
                })
    return rows


def run(merge: bool = False, report_path: str = None) -> Dict[str, Any]:
    tables = load_tables()
    apps = tables["applications"]
    counts = related_counts(apps, tables["interviews"], tables["referrals"], tables["sales"])
    groups = find_duplicate_applications(apps, tables["job_seekers"], counts)
    delete_ids = [app["id"] for group in groups for app in group["delete"]]

    print("\nDuplicate detection:")
    print(f"  Duplicate groups: {len(groups)}")
    print(f"  Applications to delete: {len(delete_ids)}")
    print(f"  Applications after: {len(apps) - len(delete_ids)}")

    delete_set = set(delete_ids)
    totals: Dict[str, int] = {}
    deleted: Dict[str, int] = {}
    for app in apps:
        month = (app.get("applied_at") or "")[:7] or "unknown"
        totals[month] = totals.get(month, 0) + 1
        if app["id"] in delete_set:
            deleted[month] = deleted.get(month, 0) + 1
    frame = monthly_frame({"total": totals, "delete": deleted})
    if not frame.empty:
        frame["after"] = frame["total"] - frame["delete"]
    print_table("Applications by month", frame)

    plan = plan_application_deletion(
        delete_ids, apps, tables["job_seekers"], tables["interviews"], tables["referrals"], tables["sales"]
    )
    print("\nImpact on related tables:")
    for table in ("interviews", "referrals", "sales"):
        total = len(tables[table])
        print(f"  {table}: {len(plan[table])} of {total} deleted -> {total - len(plan[table])} left")
    print(f"\n  Orphan job seekers: {len(plan['job_seekers'])} (no application left after deletion)")

    print("\nExample groups (first 5):")
    for i, group in enumerate(groups[:5], 1):
        print(f"  Group {i}: {1 + len(group['delete'])} applications")
        for tag, app in [("[KEEP]  ", group["keep"])] + [("[DELETE]", a) for a in group["delete"]]:
            print(
                f"    {tag} id={app['id'][:8]}... related={counts.get(app['id'], 0)} "
                f"created={(app.get('created_at') or '')[:19]}"
            )

    if report_path:
        written = write_csv(report_path, report_rows(groups, counts), REPORT_FIELDS)
        print(f"\n[OK] Report written: {written}")

    summary = {"groups": len(groups), "delete": len(delete_ids), "plan": plan, "deleted": {}}
    if not merge:
        print("\nDry-run only. Re-run with --merge to delete.")
        return summary

    print("\nDeleting...")
    for table in DELETE_ORDER:
        count = db.batch_delete(
            table,
            plan[table],
            progress=lambda done, total, t=table: print(f"\r  {t}: {done}/{total}", end="", flush=True),
        )
        print(f"\r  {table}: {count} deleted" + " " * 10)
        summary["deleted"][table] = count

    print("\nTable counts after deletion:")
    for table in ("applications", "interviews", "referrals", "sales", "job_seekers"):
        print(f"  {table}: {db.count_rows(table)}")
    print("\n[OK] Duplicate applications removed")
    return summary


def main():
    ap = build_parser("Find and delete duplicate applications", flag="--merge")
    ap.add_argument("--report", default=None, help="Write the duplicate groups to this CSV")
    args = ap.parse_args()
    open_database(args.db)
    run(merge=args.merge, report_path=args.report)


if __name__ == "__main__":
    main()
