"""
Deduplication Agent

Detects duplicate applications (same phone, day and source) and duplicate
companies (same normalized name), and picks the record to keep.
"""

from typing import Any, Dict, List, Tuple

from ..utils.normalize import normalize_company_name, normalize_phone

Record = Dict[str, Any]


def related_counts(
    applications: List[Record],
    interviews: List[Record],
    referrals: List[Record],
    sales: List[Record],
) -> Dict[str, int]:
    """
    Number of dependent records per application.

    Counts interviews and referrals of the application plus the sales of
    those referrals.
    """
    counts = {app["id"]: 0 for app in applications}
    for interview in interviews:
        app_id = interview["application_id"]
        counts[app_id] = counts.get(app_id, 0) + 1

    sales_per_referral: Dict[str, int] = {}
    for sale in sales:
        sales_per_referral[sale["referral_id"]] = sales_per_referral.get(sale["referral_id"], 0) + 1

    for referral in referrals:
        app_id = referral["application_id"]
        counts[app_id] = counts.get(app_id, 0) + 1 + sales_per_referral.get(referral["id"], 0)
    return counts


def application_key(phone: str, applied_at: str, source_id: str) -> str:
    date_only = (applied_at or "").split("T")[0]
    return f"{phone}:{date_only}:{source_id or 'null'}"


def find_duplicate_applications(
    applications: List[Record],
    job_seekers: List[Record],
    counts: Dict[str, int],
) -> List[Dict[str, Any]]:
    """
    Group applications that share phone, applied date and source.

    Seekers without a real phone (missing or an "unknown-" placeholder)
    are never grouped. Within a group the application with the most
    related records is kept; ties keep the oldest.

    Args:
        applications: Rows with id, job_seeker_id, applied_at, source_id, created_at
        job_seekers: Rows with id, phone
        counts: Related-record counts from related_counts()

    Returns:
        List of {"key", "keep", "delete": [...]} groups
    """
    phone_by_seeker = {}
    for seeker in job_seekers:
        phone = normalize_phone(seeker.get("phone") or "")
        if phone and not phone.startswith("unknown"):
            phone_by_seeker[seeker["id"]] = phone

    groups: Dict[str, List[Record]] = {}
    for app in applications:
        phone = phone_by_seeker.get(app["job_seeker_id"])
        if not phone:
            continue
        key = application_key(phone, app.get("applied_at") or "", app.get("source_id"))
        groups.setdefault(key, []).append(app)

    duplicates = []
    for key, apps in groups.items():
        if len(apps) < 2:
            continue
        ranked = sorted(
            apps,
            key=lambda a: (-counts.get(a["id"], 0), a.get("created_at") or ""),
        )
        duplicates.append({"key": key, "keep": ranked[0], "delete": ranked[1:]})
    return duplicates


def plan_application_deletion(
    delete_ids: List[str],
    applications: List[Record],
    job_seekers: List[Record],
    interviews: List[Record],
    referrals: List[Record],
    sales: List[Record],
) -> Dict[str, List[str]]:
    """
    Ids to delete per table, in dependency order.

    Job seekers left without any application after the deletion are
    included as orphans.
    """
    delete_set = set(delete_ids)
    doomed_referrals = [r["id"] for r in referrals if r["application_id"] in delete_set]
    doomed_referral_set = set(doomed_referrals)
    kept_seekers = {a["job_seeker_id"] for a in applications if a["id"] not in delete_set}
    return {
        "sales": [s["id"] for s in sales if s["referral_id"] in doomed_referral_set],
        "referrals": doomed_referrals,
        "interviews": [i["id"] for i in interviews if i["application_id"] in delete_set],
        "applications": list(delete_ids),
        "job_seekers": [js["id"] for js in job_seekers if js["id"] not in kept_seekers],
    }


def _master_order(company: Record) -> Tuple[int, str]:
    return (-company.get("job_count", 0), company.get("created_at") or "")


def find_duplicate_companies(companies: List[Record]) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """
    Find duplicate companies by normalized name.

    Args:
        companies: Rows with id, name, is_active, created_at, job_count

    Returns:
        Tuple of (exact_groups, prefix_groups)
        - exact_groups: {"normalized", "master", "duplicates"}; the master
          has the most jobs, then is the oldest
        - prefix_groups: {"normalized", "companies"} where one normalized
          name is a prefix of others; for manual review only
    """
    by_name: Dict[str, List[Record]] = {}
    for company in companies:
        normalized = normalize_company_name(company.get("name"))
        if not normalized:
            continue
        by_name.setdefault(normalized, []).append(company)

    exact_groups = []
    for normalized, members in by_name.items():
        if len(members) >= 2:
            ordered = sorted(members, key=_master_order)
            exact_groups.append(
                {"normalized": normalized, "master": ordered[0], "duplicates": ordered[1:]}
            )

    used_in_exact = {g["normalized"] for g in exact_groups}
    keys = sorted(by_name.keys(), key=len)
    prefix_groups = []
    for i, shorter in enumerate(keys):
        if len(shorter) < 2 or shorter in used_in_exact:
            continue
        matched: List[Record] = []
        for longer in keys[i + 1:]:
            if longer != shorter and longer.startswith(shorter):
                if not matched:
                    matched.extend(by_name[shorter])
                matched.extend(by_name[longer])
        if len(matched) >= 2:
            prefix_groups.append({"normalized": shorter, "companies": matched})

    return exact_groups, prefix_groups


def merged_note(master: Record) -> str:
    return f"[統合済み] マスター: {master['name']} ({master['id'][:8]}...)"
