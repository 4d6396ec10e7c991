#!/usr/bin/env python3
"""Fill missing sales dates from their referral.

Usage:
  python -m tools.backfill_sales_dates          # dry-run
  python -m tools.backfill_sales_dates --apply

expected  -> expected_date  = hired_at or referred_at
confirmed -> confirmed_date = start_work_date or hired_at
paid      -> paid_date      = start_work_date or hired_at

Only empty dates are written.
"""

from typing import Any, Dict, List

from ingestion.utils.reporting import monthly_frame, print_table
from webapp import db

from .common import apply_updates, build_parser, open_database

DATE_SOURCES = {
    "expected": ("expected_date", ("hired_at", "referred_at")),
    "confirmed": ("confirmed_date", ("start_work_date", "hired_at")),
    "paid": ("paid_date", ("start_work_date", "hired_at")),
}


def plan_updates(sales: List[Dict], referrals: List[Dict]) -> Dict[str, Any]:
    """
    Compute date updates for sales.

    Returns:
        {"updates": [{"id", <date field>}], "no_referral": n, "no_date": n}
    """
    by_id = {r["id"]: r for r in referrals}
    updates = []
    no_referral = 0
    no_date = 0
    for sale in sales:
        referral = by_id.get(sale["referral_id"])
        if not referral:
            no_referral += 1
            continue
        if sale["status"] not in DATE_SOURCES:
            continue
        field, sources = DATE_SOURCES[sale["status"]]
        value = next((referral[s] for s in sources if referral.get(s)), None)
        if not value:
            no_date += 1
        elif not sale.get(field):
            updates.append({"id": sale["id"], field: value})
    return {"updates": updates, "no_referral": no_referral, "no_date": no_date}


def run(apply: bool = False) -> Dict[str, Any]:
    sales = db.fetch_all_rows("sales", "id, referral_id, status, expected_date, confirmed_date, paid_date")
    referrals = db.fetch_all_rows("referrals", "id, referred_at, hired_at, assignment_date, start_work_date")
    print(f"\nSales date backfill ({'apply' if apply else 'dry-run'})")
    print(f"sales: {len(sales)}, referrals: {len(referrals)}")

    plan = plan_updates(sales, referrals)
    updates = plan["updates"]
    by_field: Dict[str, Dict[str, int]] = {field: {} for field, _ in DATE_SOURCES.values()}
    for update in updates:
        for field in by_field:
            if update.get(field):
                month = update[field][:7]
                by_field[field][month] = by_field[field].get(month, 0) + 1

    print("\nTo update:")
    for field, months in by_field.items():
        print(f"  {field}: {sum(months.values())}")
    print(f"  no referral: {plan['no_referral']}")
    print(f"  no candidate date: {plan['no_date']}")
    print_table("Dates to set by month", monthly_frame(by_field))

    summary = {**plan, "applied": None}
    if not apply:
        print("\nDry-run only. Re-run with --apply to update.")
        return summary

    summary["applied"] = apply_updates("sales", updates)
    print(f"\nUpdated: success={summary['applied']['success']}, errors={summary['applied']['errors']}")

    after = db.fetch_all_rows("sales", "id, expected_date, confirmed_date, paid_date")
    print("\nVerify:")
    for field in by_field:
        missing = sum(1 for s in after if not s[field])
        print(f"  {field} null: {missing}/{len(after)}")
    return summary


def main():
    args = build_parser("Backfill sales dates from referrals").parse_args()
    open_database(args.db)
    run(apply=args.apply)


if __name__ == "__main__":
    main()
