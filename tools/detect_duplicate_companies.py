#!/usr/bin/env python3
"""Detect (and optionally merge) duplicate client companies.

Usage:
  python -m tools.detect_duplicate_companies          # report only
  python -m tools.detect_duplicate_companies --merge  # merge exact duplicates

Names are compared after dropping corporate suffixes, spaces and case.
Exact groups can be merged: jobs move to the master and the duplicates are
deactivated with a note. Prefix candidates are printed for manual review.
"""

from typing import Any, Dict

from ingestion.agents.deduplicator import find_duplicate_companies, merged_note
from webapp import db

from .common import build_parser, open_database


def load_companies():
    job_counts: Dict[str, int] = {}
    for job in db.fetch_all_rows("jobs", "id, company_id"):
        job_counts[job["company_id"]] = job_counts.get(job["company_id"], 0) + 1
    companies = db.fetch_all_rows("companies", "id, name, is_active, created_at")
    for company in companies:
        company["job_count"] = job_counts.get(company["id"], 0)
    return companies


def merge_group(group: Dict[str, Any]) -> int:
    """Move jobs of the duplicates to the master and deactivate them. Returns jobs moved."""
    master = group["master"]
    moved = 0
    conn = db.get_connection()
    try:
        for duplicate in group["duplicates"]:
            cursor = conn.execute(
                "UPDATE jobs SET company_id = ?, updated_at = ? WHERE company_id = ?",
                (master["id"], db.now_iso(), duplicate["id"]),
            )
            moved += cursor.rowcount
            conn.execute(
                "UPDATE companies SET is_active = 0, notes = ?, updated_at = ? WHERE id = ?",
                (merged_note(master), db.now_iso(), duplicate["id"]),
            )
        conn.commit()
    except Exception:
        db.logger.exception("Failed to merge companies into %s", master["id"])
        conn.rollback()
        raise
    finally:
        conn.close()
    return moved


def run(merge: bool = False) -> Dict[str, Any]:
    companies = load_companies()
    print(f"\nCompanies: {len(companies)}")
    exact_groups, prefix_groups = find_duplicate_companies(companies)

    print(f"\n=== Exact duplicates ({len(exact_groups)} groups) ===")
    for group in exact_groups:
        print(f"\n  [{group['normalized']}]")
        master = group["master"]
        print(f"    [MASTER]    {master['name']} (jobs: {master['job_count']}, id: {master['id'][:8]})")
        for duplicate in group["duplicates"]:
            print(f"    [DUPLICATE] {duplicate['name']} (jobs: {duplicate['job_count']}, id: {duplicate['id'][:8]})")

    print(f"\n=== Prefix candidates ({len(prefix_groups)} groups, review manually) ===")
    for group in prefix_groups:
        print(f"\n  [{group['normalized']}*]")
        for company in group["companies"]:
            inactive = "" if company.get("is_active") else " [取引停止]"
            print(f"    {company['name']} (jobs: {company['job_count']}){inactive}")

    duplicates = sum(len(g["duplicates"]) for g in exact_groups)
    print("\n=== Summary ===")
    print(f"  Exact groups: {len(exact_groups)} ({duplicates} duplicates)")
    print(f"  Prefix candidates: {len(prefix_groups)}")

    summary = {"exact": exact_groups, "prefix": prefix_groups, "merged": 0, "jobs_moved": 0}
    if not merge:
        if exact_groups:
            print("\nRe-run with --merge to merge the exact duplicates.")
        return summary

    print("\nMerging...")
    for group in exact_groups:
        moved = merge_group(group)
        summary["jobs_moved"] += moved
        summary["merged"] += len(group["duplicates"])
        print(f"  {group['master']['name']}: {len(group['duplicates'])} merged, {moved} jobs moved")
    print(f"\n[OK] Merged {summary['merged']} companies")
    return summary


def main():
    args = build_parser("Detect duplicate companies", flag="--merge").parse_args()
    open_database(args.db)
    run(merge=args.merge)


if __name__ == "__main__":
    main()
