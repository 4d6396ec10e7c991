"""
Full reimport of the application sheet.

Clears sales, referrals, interviews and applications, then rebuilds them from
the sheet export in batches and prints month-by-month counts for
reconciliation. Master data (sources, companies, jobs, job seekers) is kept
and extended.

Usage:
    python -m ingestion.main sheet.csv            # dry-run: parse and count only
    python -m ingestion.main sheet.csv --apply    # delete and reimport
"""

import argparse
import logging
import sqlite3
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from webapp import db

from .agents.coordinator_matcher import CoordinatorMatcher
from .agents.data_extractor import (
    SHEET_COUNT_KEYS,
    collect_master_data,
    count_sheet_months,
    extract_application,
    extract_interview,
    extract_job_seeker,
    extract_name,
    extract_phone,
    extract_referral,
    extract_sales,
    referral_target,
)
from .config.sheet_columns import PLACEHOLDER_NAME, cell
from .utils.csv_reader import read_sheet_rows
from .utils.normalize import normalize_phone
from .utils.reporting import monthly_frame, print_table, yen

logger = logging.getLogger(__name__)

DONE_STATUSES = ("interview_done", "hired", "pre_assignment", "assigned", "working", "full_paid")
DELETE_ORDER = ("sales", "referrals", "interviews", "applications")


def _progress(table: str):
    def report(done: int, total: int) -> None:
        print(f"\r  {table}: {done}/{total}", end="", flush=True)

    return report


def print_sheet_counts(counts: Dict[str, Dict[str, int]]) -> None:
    print_table("Sheet counts by AU/AV month", monthly_frame({key: counts[key] for key in SHEET_COUNT_KEYS}))


def ensure_named_rows(table: str, names, tenant_id: str, extra: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
    """Name -> id for a master table, inserting names that are missing."""
    by_name = {row["name"]: row["id"] for row in db.fetch_all_rows(table, "id, name")}
    for name in sorted(names):
        if name in by_name:
            continue
        payload = {"tenant_id": tenant_id, "name": name, "is_active": True}
        payload.update(extra or {})
        by_name[name] = db.insert_row(table, payload)["id"]
    return by_name


def ensure_jobs(jobs_by_company: Dict[str, set], company_ids: Dict[str, str], tenant_id: str) -> Dict[str, str]:
    """Map "company_id:title" keys to job ids, inserting missing jobs."""
    job_ids = {
        f"{row['company_id']}:{row['title']}": row["id"]
        for row in db.fetch_all_rows("jobs", "id, title, company_id")
    }
    for company, titles in sorted(jobs_by_company.items()):
        company_id = company_ids.get(company)
        if not company_id:
            continue
        for title in sorted(titles):
            key = f"{company_id}:{title}"
            if key not in job_ids:
                job_ids[key] = db.insert_row(
                    "jobs",
                    {"tenant_id": tenant_id, "company_id": company_id, "title": title, "status": "open"},
                )["id"]
    return job_ids


def ensure_placeholder_job(company_ids: Dict[str, str], job_ids: Dict[str, str], tenant_id: str) -> str:
    if PLACEHOLDER_NAME not in company_ids:
        company_ids[PLACEHOLDER_NAME] = db.insert_row(
            "companies", {"tenant_id": tenant_id, "name": PLACEHOLDER_NAME, "is_active": True}
        )["id"]
    key = f"{company_ids[PLACEHOLDER_NAME]}:{PLACEHOLDER_NAME}"
    if key not in job_ids:
        job_ids[key] = db.insert_row(
            "jobs",
            {
                "tenant_id": tenant_id,
                "company_id": company_ids[PLACEHOLDER_NAME],
                "title": PLACEHOLDER_NAME,
                "status": "open",
            },
        )["id"]
    return job_ids[key]


def build_import_rows(
    rows: List[List[str]],
    tenant_id: str,
    source_ids: Dict[str, str],
    company_ids: Dict[str, str],
    job_ids: Dict[str, str],
    placeholder_job_id: str,
    matcher: CoordinatorMatcher,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Turn sheet rows into application/interview/referral/sales rows.

    Job seekers are looked up by normalized phone and created on the fly
    when missing, since applications need their ids.
    """
    seeker_ids = {}
    for seeker in db.fetch_all_rows("job_seekers", "id, phone"):
        phone = normalize_phone(seeker["phone"])
        if phone:
            seeker_ids[phone] = seeker["id"]
    print(f"  Existing job seekers: {len(seeker_ids)}")

    result: Dict[str, Any] = {
        "applications": [],
        "interviews": [],
        "referrals": [],
        "sales": [],
        "new_job_seekers": 0,
        "skipped_rows": 0,
    }

    for index, row in enumerate(rows):
        phone = extract_phone(row)
        if not phone and not extract_name(row):
            result["skipped_rows"] += 1
            continue

        if phone and phone in seeker_ids:
            seeker_id = seeker_ids[phone]
        else:
            payload = extract_job_seeker(row)
            payload["tenant_id"] = tenant_id
            try:
                seeker_id = db.insert_row("job_seekers", payload)["id"]
            except sqlite3.Error:
                logger.exception("Failed to create job seeker for sheet row %d", index + 1)
                result["skipped_rows"] += 1
                continue
            if phone:
                seeker_ids[phone] = seeker_id
            result["new_job_seekers"] += 1

        coordinator_id = matcher.match(cell(row, "BB"))
        application = extract_application(
            row,
            job_seeker_id=seeker_id,
            source_id=source_ids.get(cell(row, "SOURCE")),
            coordinator_id=coordinator_id,
            today=today,
        )
        applied_at = application["applied_at"]
        result["applications"].append(application)

        interview = extract_interview(row, application["id"], applied_at, coordinator_id)
        if interview:
            result["interviews"].append(interview)

        target = referral_target(row)
        if target:
            company_id = company_ids.get(target["company"])
            job_id = job_ids.get(f"{company_id}:{target['job']}") if company_id else None
        else:
            job_id = placeholder_job_id
        if job_id:
            referral = extract_referral(row, application["id"], job_id, applied_at)
            if referral:
                result["referrals"].append(referral)
                result["sales"].extend(extract_sales(row, referral["id"], applied_at))

        if (index + 1) % 2000 == 0:
            print(f"\r  Parsed rows: {index + 1}/{len(rows)}", end="", flush=True)

    for key in ("applications", "interviews", "referrals", "sales"):
        for payload in result[key]:
            payload["tenant_id"] = tenant_id
    return result


def db_monthly_counts() -> Dict[str, Dict[str, Any]]:
    """
    Month tallies from the database after import.

    Interviews count when conducted, by scheduled month; referral
    metrics are bucketed by referral month. Work-month sales use the
    sale dates.
    """
    counts: Dict[str, Dict[str, Any]] = {
        "interviews": {},
        "referrals": {},
        "dispatch_scheduled": {},
        "dispatch_done": {},
        "hired": {},
    }

    def bump(key: str, month: Optional[str], amount: float = 1) -> None:
        if month:
            counts[key][month] = counts[key].get(month, 0) + amount

    for interview in db.fetch_all_rows("interviews", "id, scheduled_at, conducted_at"):
        if interview["conducted_at"]:
            bump("interviews", (interview["scheduled_at"] or "")[:7])

    referrals = db.fetch_all_rows(
        "referrals",
        "id, referral_status, referred_at, dispatch_interview_at, hired_at, start_work_date",
    )
    for referral in referrals:
        month = (referral["referred_at"] or "")[:7]
        bump("referrals", month)
        if referral["dispatch_interview_at"]:
            bump("dispatch_scheduled", month)
        if referral["referral_status"] in DONE_STATUSES:
            bump("dispatch_done", month)
        if referral["hired_at"]:
            bump("hired", month)

    work_month = {"prospect": {}, "working": {}, "expected_amount": {}, "confirmed_amount": {}}
    referral_by_id = {r["id"]: r for r in referrals}
    for sale in db.fetch_all_rows("sales", "id, referral_id, amount, status, expected_date, confirmed_date"):
        referral = referral_by_id.get(sale["referral_id"])
        if not referral:
            continue
        if sale["status"] == "expected" and sale["expected_date"]:
            month = sale["expected_date"][:7]
            work_month["prospect"][month] = work_month["prospect"].get(month, 0) + 1
            work_month["expected_amount"][month] = work_month["expected_amount"].get(month, 0) + sale["amount"]
        if sale["status"] == "confirmed" and sale["confirmed_date"] and referral["start_work_date"]:
            month = sale["confirmed_date"][:7]
            work_month["working"][month] = work_month["working"].get(month, 0) + 1
            work_month["confirmed_amount"][month] = work_month["confirmed_amount"].get(month, 0) + sale["amount"]
    counts["work_month"] = work_month
    return counts


def run_reimport(csv_path: Path, apply: bool = False, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Run the reimport.

    Args:
        csv_path: Sheet export
        apply: Delete and write; otherwise only parse and count
        today: Reference date for rows without an application date

    Returns:
        Summary with sheet counts and, when applied, insert results
    """
    rows = read_sheet_rows(csv_path)
    print(f"\nSheet data rows: {len(rows)}")

    print("\n=== Phase 1: parse sheet ===")
    master = collect_master_data(rows)
    print(f"  Unique phones: {len(master['phones'])}")
    print(f"  Unique sources: {len(master['sources'])}")
    print(f"  Unique companies: {len(master['jobs_by_company'])}")
    sheet_counts = count_sheet_months(rows)
    print_sheet_counts(sheet_counts)

    summary: Dict[str, Any] = {"rows": len(rows), "sheet_counts": sheet_counts, "applied": apply}
    if not apply:
        print("\nDry-run only. Re-run with --apply to delete and reimport.")
        return summary

    print("\n=== Phase 2: delete imported data ===")
    for table in DELETE_ORDER:
        deleted = db.delete_all(table)
        print(f"  {table}: {deleted} deleted")

    print("\n=== Phase 3: master data ===")
    tenant_id = db.first_tenant_id()
    if not tenant_id:
        raise SystemExit("No tenant found. Create one with: python -m database.migrate --tenant-name ...")
    print(f"  Tenant: {tenant_id}")

    source_ids = ensure_named_rows("sources", master["sources"], tenant_id)
    print(f"  Sources: {len(source_ids)}")
    matcher = CoordinatorMatcher(db.fetch_all_rows("users", "id, name"))
    company_ids = ensure_named_rows("companies", master["jobs_by_company"].keys(), tenant_id)
    print(f"  Companies: {len(company_ids)}")
    job_ids = ensure_jobs(master["jobs_by_company"], company_ids, tenant_id)
    print(f"  Jobs: {len(job_ids)}")
    placeholder_job_id = ensure_placeholder_job(company_ids, job_ids, tenant_id)
    print(f"  Placeholder job: {placeholder_job_id[:8]}...")

    print("\n=== Phase 4: import ===")
    built = build_import_rows(
        rows, tenant_id, source_ids, company_ids, job_ids, placeholder_job_id, matcher, today=today
    )
    print(f"\r  Parsed rows: {len(rows)}")
    print(f"  New job seekers: {built['new_job_seekers']}")
    print(
        f"  applications: {len(built['applications'])}, interviews: {len(built['interviews'])}, "
        f"referrals: {len(built['referrals'])}, sales: {len(built['sales'])}"
    )

    inserted = {}
    for table in ("applications", "interviews", "referrals", "sales"):
        success, errors = db.batch_insert(table, built[table], progress=_progress(table))
        if built[table]:
            print(f"  -> ok: {success}, errors: {errors}")
        inserted[table] = {"success": success, "errors": errors}
    summary["inserted"] = inserted
    summary["new_job_seekers"] = built["new_job_seekers"]

    print("\n=== Phase 5: verify ===")
    db_counts = db_monthly_counts()
    months = sorted(set(sheet_counts["interviews"]) | set(sheet_counts["referrals"]))
    print_table(
        "DB vs sheet",
        monthly_frame(
            {
                "interviews_db": db_counts["interviews"],
                "interviews_sheet": sheet_counts["interviews"],
                "referrals_db": db_counts["referrals"],
                "referrals_sheet": sheet_counts["referrals"],
                "dispatch_scheduled_db": db_counts["dispatch_scheduled"],
                "dispatch_done_db": db_counts["dispatch_done"],
                "hired_db": db_counts["hired"],
            },
            months=months,
        ),
    )
    work_month = db_counts["work_month"]
    frame = monthly_frame(work_month)
    if not frame.empty:
        for column in ("expected_amount", "confirmed_amount"):
            frame[column] = frame[column].map(yen)
    print_table("Work-month sales", frame)
    summary["db_counts"] = db_counts
    logger.info("Reimport finished: %s", {t: r["success"] for t, r in inserted.items()})
    print("\n[OK] Reimport finished")
    return summary


def main():
    """Main entry point for the sheet reimport."""
    parser = argparse.ArgumentParser(
        description="Delete imported records and reimport them from the application sheet"
    )
    parser.add_argument("csv", help="Sheet export (CSV)")
    parser.add_argument("--apply", action="store_true", help="Delete and import (default: dry-run)")
    parser.add_argument("--db", default=None, help="SQLite database (default: BACKOFFICE_DB)")
    args = parser.parse_args()

    csv_path = Path(args.csv)
    if not csv_path.exists():
        print(f"Error: File not found: {csv_path}", file=sys.stderr)
        sys.exit(1)
    if args.db:
        db.use_database(Path(args.db))

    print(f"CSV: {csv_path}")
    print(f"Mode: {'apply' if args.apply else 'dry-run'}")
    run_reimport(csv_path, apply=args.apply)


if __name__ == "__main__":
    main()
