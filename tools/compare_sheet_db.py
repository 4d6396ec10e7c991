#!/usr/bin/env python3
"""Compare the per-month sheet exports with the database, month by month.

Usage:
  python -m tools.compare_sheet_db "CSV用 - 1.csv" "CSV用 - 2.csv" ...

Sheet rows are bucketed by application date. The database side shows
interviews and referrals both by application month and by the month the
interview/referral happened, so timing differences are visible.
"""

from pathlib import Path
from typing import Any, Dict, List

from ingestion.config.sheet_columns import MONTHLY_COL, MONTHLY_HEADER_ROWS
from ingestion.utils.csv_reader import read_rows
from ingestion.utils.normalize import normalize_date_key
from ingestion.utils.reporting import monthly_frame, print_distribution, print_table
from webapp import db

from .common import build_parser, open_database


def _get(row: List[str], key: str) -> str:
    index = MONTHLY_COL[key]
    return row[index].strip() if index < len(row) and row[index] else ""


def read_monthly_exports(paths) -> List[Dict[str, str]]:
    rows = []
    for path in paths:
        for row in read_rows(path)[MONTHLY_HEADER_ROWS:]:
            if not any(c.strip() for c in row):
                continue
            rows.append({key: _get(row, key) for key in MONTHLY_COL})
    return rows


def sheet_counts(rows: List[Dict[str, str]]) -> Dict[str, Dict[str, int]]:
    counts: Dict[str, Dict[str, int]] = {"sheet_apps": {}, "sheet_interviews": {}, "sheet_referrals": {}}
    for row in rows:
        month = normalize_date_key(row["DATE"])[:7]
        if not month:
            continue
        counts["sheet_apps"][month] = counts["sheet_apps"].get(month, 0) + 1
        if row["INTERVIEW"]:
            counts["sheet_interviews"][month] = counts["sheet_interviews"].get(month, 0) + 1
        if row["COMPANY"]:
            counts["sheet_referrals"][month] = counts["sheet_referrals"].get(month, 0) + 1
    return counts


def db_counts() -> Dict[str, Dict[str, int]]:
    apps = db.fetch_all_rows("applications", "id, applied_at")
    interviews = db.fetch_all_rows("interviews", "id, application_id, conducted_at")
    referrals = db.fetch_all_rows("referrals", "id, application_id, referred_at")
    applied_month = {a["id"]: (a.get("applied_at") or "")[:7] for a in apps}

    counts: Dict[str, Dict[str, int]] = {
        key: {}
        for key in ("db_apps", "db_interviews_applied", "db_interviews_conducted",
                    "db_referrals_applied", "db_referrals_referred")
    }

    def bump(key: str, month: str) -> None:
        if month:
            counts[key][month] = counts[key].get(month, 0) + 1

    for app in apps:
        bump("db_apps", applied_month[app["id"]])
    for interview in interviews:
        if interview.get("conducted_at"):
            bump("db_interviews_conducted", interview["conducted_at"][:7])
            bump("db_interviews_applied", applied_month.get(interview["application_id"], ""))
    for referral in referrals:
        bump("db_referrals_referred", (referral.get("referred_at") or "")[:7])
        bump("db_referrals_applied", applied_month.get(referral["application_id"], ""))
    return counts


def run(paths) -> Dict[str, Any]:
    rows = read_monthly_exports(paths)
    print(f"Monthly exports: {len(paths)}")
    print(f"Sheet rows: {len(rows)}")

    sheet = sheet_counts(rows)
    database = db_counts()
    months = sorted(set(sheet["sheet_apps"]) | set(database["db_apps"]))
    frame = monthly_frame(
        {
            "sheet_apps": sheet["sheet_apps"],
            "db_apps": database["db_apps"],
            "sheet_interviews": sheet["sheet_interviews"],
            "db_iv_applied": database["db_interviews_applied"],
            "db_iv_conducted": database["db_interviews_conducted"],
            "sheet_referrals": sheet["sheet_referrals"],
            "db_ref_applied": database["db_referrals_applied"],
            "db_ref_referred": database["db_referrals_referred"],
        },
        months=months,
    )
    print_table("Sheet vs DB by month", frame)

    status_counts = print_distribution(
        "Referral status values in the sheet", [r["REFERRAL"] for r in rows if r["REFERRAL"]]
    )
    company_status_counts = print_distribution(
        "Referral status of rows with a company",
        [r["REFERRAL"] for r in rows if r["COMPANY"]],
        empty_label="(空)",
    )
    return {
        "sheet": sheet,
        "db": database,
        "frame": frame,
        "status_counts": status_counts,
        "company_status_counts": company_status_counts,
    }


def main():
    ap = build_parser("Compare per-month sheet exports with the database", flag=None)
    ap.add_argument("csv", nargs="+", help="Per-month sheet exports")
    args = ap.parse_args()
    open_database(args.db)
    missing = [p for p in args.csv if not Path(p).exists()]
    if missing:
        raise SystemExit(f"File not found: {', '.join(missing)}")
    run(args.csv)


if __name__ == "__main__":
    main()
