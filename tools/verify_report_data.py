#!/usr/bin/env python3
"""Print the action-date monthly report and the sales date coverage.

Usage:
  python -m tools.verify_report_data

Shows the same figures as the reports page so they can be checked
against the sheet after an import or a backfill.
"""

from typing import Any, Dict

from ingestion.utils.reporting import monthly_frame, print_table, yen
from webapp import db
from webapp.reports import ACTION_METRICS, load_action_date_report, sales_null_dates

from .common import build_parser, open_database

AMOUNT_METRICS = ("sales_expected_amount", "sales_confirmed_amount", "sales_paid_amount")


def run() -> Dict[str, Any]:
    counts = {table: db.count_rows(table) for table in ("applications", "interviews", "referrals", "sales")}
    print("  ".join(f"{table}={n}" for table, n in counts.items()))

    report = load_action_date_report()
    frame = monthly_frame(
        {metric: {month: values[metric] for month, values in report.items()} for metric in ACTION_METRICS}
    )
    if not frame.empty:
        for column in AMOUNT_METRICS:
            frame[column] = frame[column].map(yen)
    print_table("Monthly report (action date)", frame)

    null_dates = sales_null_dates(
        db.fetch_all_rows("sales", "id, status, expected_date, confirmed_date, paid_date")
    )
    print("\n--- Sales without a status date ---")
    for status, numbers in null_dates.items():
        print(f"  {status} ({numbers['total']}): {numbers['null']} null")
    return {"report": report, "null_dates": null_dates}


def main():
    args = build_parser("Verify the action-date report data", flag=None).parse_args()
    open_database(args.db)
    run()


if __name__ == "__main__":
    main()
