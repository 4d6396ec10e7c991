"""Workflow rules behind the web UI: status transitions, registration and CSV imports."""
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from ingestion.config.standard_schema import REQUIRED_COLUMNS, TARGETS, columns_for
from ingestion.utils.csv_writer import render_csv
from ingestion.utils.normalize import clean, normalize_phone, parse_date, parse_gender, parse_number
from webapp import db
from webapp.formatting import to_date
from webapp.labels import REFERRAL_STATUS_LABELS, REFERRAL_TO_PROGRESS, SALE_STATUS_LABELS

logger = logging.getLogger(__name__)

EXPECTED_SALE_DAYS = 30
JOB_SEEKER_PAGE_SIZE = 20
ADMIN_DEPARTMENT = "管理部"
DUPLICATE_ACTIONS = ("skip", "update", "create")
DATE_RANGES = ("all", "thisMonth", "lastMonth", "thisYear")
TRUE_VALUES = ("あり", "true", "1")

TEMPLATE_FILENAMES = {
    "jobs": "求人インポートテンプレート.csv",
    "job_seekers": "求職者インポートテンプレート.csv",
}

# Referral status -> referral date column filled on first transition
REFERRAL_DATE_FIELDS = {
    "hired": "hired_at",
    "assigned": "assignment_date",
    "working": "start_work_date",
}

SALE_DATE_FIELDS = {
    "confirmed": "confirmed_date",
    "invoiced": "invoiced_date",
    "paid": "paid_date",
}


def _tenant(payload: Dict[str, Any]) -> Optional[str]:
    return payload.get("tenant_id") or db.first_tenant_id()


# ---------------------------------------------------------------------------
# Referrals and sales
# ---------------------------------------------------------------------------

def create_referral(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Hand an application over to a client job and mark its progress as referred."""
    application = db.get_row("applications", payload.get("application_id") or "")
    if not application:
        raise LookupError("Application not found")
    if not db.get_row("jobs", payload.get("job_id") or ""):
        raise LookupError("Job not found")

    referral = db.insert_row(
        "referrals",
        {
            **payload,
            "tenant_id": payload.get("tenant_id") or application.get("tenant_id"),
            "referral_status": "referred",
            "referred_at": payload.get("referred_at") or db.now_iso(),
        },
    )
    db.update_row("applications", application["id"], {"progress_status": "referred"})
    return referral


def change_referral_status(referral_id: str, status: str) -> Optional[Dict[str, Any]]:
    """
    Move a referral to a new status.

    Fills the hired/assignment/start-work date the first time the matching
    status is reached, mirrors the status onto the application's progress,
    and on hire creates an expected sale for the job's fee when the
    referral has none yet.

    Args:
        referral_id: Referral to update
        status: New referral_status

    Returns:
        {"referral", "sale"} (sale is the created expected sale or None),
        or None when the referral does not exist
    """
    if status not in REFERRAL_STATUS_LABELS:
        raise ValueError(f"Unknown referral status: {status}")
    referral = db.get_row("referrals", referral_id)
    if not referral:
        return None

    now = db.now_iso()
    updates: Dict[str, Any] = {"referral_status": status}
    date_field = REFERRAL_DATE_FIELDS.get(status)
    if date_field and not referral.get(date_field):
        updates[date_field] = now
    referral = db.update_row("referrals", referral_id, updates)

    progress = REFERRAL_TO_PROGRESS.get(status)
    if progress:
        db.update_row("applications", referral["application_id"], {"progress_status": progress})

    sale = None
    if status == "hired":
        job = db.get_row("jobs", referral["job_id"]) or {}
        if job.get("fee_amount") and not db.count_rows("sales", {"referral_id": referral_id}):
            expected = datetime.now() + timedelta(days=EXPECTED_SALE_DAYS)
            sale = db.insert_row(
                "sales",
                {
                    "tenant_id": referral.get("tenant_id"),
                    "referral_id": referral_id,
                    "amount": job["fee_amount"],
                    "status": "expected",
                    "expected_date": expected.strftime("%Y-%m-%dT%H:%M:%S"),
                },
            )
            logger.info("Created expected sale %s for referral %s", sale["id"], referral_id)
    return {"referral": referral, "sale": sale}


def change_sale_status(sale_id: str, status: str) -> Optional[Dict[str, Any]]:
    """Move a sale to a new status, filling its status date; paid marks the application full_paid."""
    if status not in SALE_STATUS_LABELS:
        raise ValueError(f"Unknown sale status: {status}")
    sale = db.get_row("sales", sale_id)
    if not sale:
        return None

    updates: Dict[str, Any] = {"status": status}
    date_field = SALE_DATE_FIELDS.get(status)
    if date_field and not sale.get(date_field):
        updates[date_field] = db.now_iso()
    sale = db.update_row("sales", sale_id, updates)

    if status == "paid":
        referral = db.get_row("referrals", sale["referral_id"])
        if referral:
            db.update_row("applications", referral["application_id"], {"progress_status": "full_paid"})
    return sale


def sale_in_range(sale: Dict[str, Any], date_range: str, today: Optional[date] = None) -> bool:
    """Whether a sale's expected date (paid date when unset) falls in the range."""
    if date_range == "all":
        return True
    if date_range not in DATE_RANGES:
        raise ValueError(f"Unknown date range: {date_range}")
    sale_date = to_date(sale.get("expected_date") or sale.get("paid_date"))
    if not sale_date:
        return False
    today = today or date.today()
    if date_range == "thisYear":
        return sale_date.year == today.year
    if date_range == "thisMonth":
        return (sale_date.year, sale_date.month) == (today.year, today.month)
    last = today.replace(day=1) - timedelta(days=1)
    return (sale_date.year, sale_date.month) == (last.year, last.month)


def list_sales(
    status: Optional[str] = None,
    company_id: Optional[str] = None,
    date_range: str = "all",
    search: Optional[str] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Sales with their seeker/job/company, filtered, plus per-status totals."""
    rows = db.query(
        """
        SELECT s.*, js.name AS job_seeker_name, j.title AS job_title,
               c.id AS company_id, c.name AS company_name
        FROM sales s
        LEFT JOIN referrals r ON r.id = s.referral_id
        LEFT JOIN applications a ON a.id = r.application_id
        LEFT JOIN job_seekers js ON js.id = a.job_seeker_id
        LEFT JOIN jobs j ON j.id = r.job_id
        LEFT JOIN companies c ON c.id = j.company_id
        ORDER BY s.created_at DESC
        """
    )
    needle = (search or "").lower()
    sales = []
    for row in rows:
        if status and row["status"] != status:
            continue
        if company_id and row["company_id"] != company_id:
            continue
        if not sale_in_range(row, date_range, today):
            continue
        if needle and not any(
            needle in (row.get(key) or "").lower() for key in ("job_seeker_name", "job_title", "company_name")
        ):
            continue
        sales.append(row)

    totals = {"total": 0, "expected": 0, "confirmed": 0, "invoiced": 0, "paid": 0}
    for sale in sales:
        amount = sale.get("amount") or 0
        totals["total"] += amount
        if sale["status"] in totals:
            totals[sale["status"]] += amount
    return {"sales": sales, "totals": totals}


# ---------------------------------------------------------------------------
# Job seekers
# ---------------------------------------------------------------------------

def find_job_seeker_by_phone(phone: str) -> Optional[Dict[str, Any]]:
    """Existing job seeker with the same normalized phone, with their applications."""
    target = normalize_phone(phone)
    if not target:
        return None
    for seeker in db.fetch_all_rows("job_seekers", "id, phone"):
        if normalize_phone(seeker["phone"]) == target:
            found = db.get_row("job_seekers", seeker["id"])
            found["applications"] = db.list_rows(
                "applications", where={"job_seeker_id": seeker["id"]}, order_by="applied_at", descending=True
            )
            return found
    return None


def register_job_seeker(
    seeker: Dict[str, Any],
    source_id: Optional[str] = None,
    coordinator_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Register a job seeker together with a new application.

    When the phone already belongs to a job seeker, that seeker is reused
    and only the application is created.

    Returns:
        {"job_seeker", "application", "existing"}
    """
    if not clean(seeker.get("name")) or not clean(seeker.get("phone")):
        raise ValueError("name and phone are required")
    tenant_id = _tenant(seeker)
    existing = find_job_seeker_by_phone(seeker["phone"])
    if existing:
        job_seeker = existing
    else:
        job_seeker = db.insert_row("job_seekers", {**seeker, "tenant_id": tenant_id})

    application = db.insert_row(
        "applications",
        {
            "tenant_id": tenant_id,
            "job_seeker_id": job_seeker["id"],
            "source_id": source_id,
            "coordinator_id": coordinator_id,
            "application_status": "new",
            "applied_at": db.now_iso(),
        },
    )
    return {"job_seeker": job_seeker, "application": application, "existing": bool(existing)}


def list_job_seekers(
    page: int = 1,
    status: Optional[str] = None,
    progress_status: Optional[str] = None,
    coordinator_id: Optional[str] = None,
    source_id: Optional[str] = None,
    search: Optional[str] = None,
) -> Dict[str, Any]:
    """One page of applications with their seeker, newest application first."""
    clauses: List[str] = []
    params: List[Any] = []
    for column, value in (
        ("a.application_status", status),
        ("a.progress_status", progress_status),
        ("a.coordinator_id", coordinator_id),
        ("a.source_id", source_id),
    ):
        if value:
            clauses.append(f"{column} = ?")
            params.append(value)
    if search:
        clauses.append("(LOWER(js.name) LIKE ? OR js.phone LIKE ?)")
        params.extend([f"%{search.lower()}%", f"%{search}%"])
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    base = f"""
        FROM applications a
        LEFT JOIN job_seekers js ON js.id = a.job_seeker_id
        LEFT JOIN users u ON u.id = a.coordinator_id
        LEFT JOIN sources s ON s.id = a.source_id
        {where}
    """
    total = db.query(f"SELECT COUNT(*) AS n {base}", params)[0]["n"]
    page = max(page, 1)
    rows = db.query(
        f"""
        SELECT js.id AS id, COALESCE(js.name, '不明') AS name, COALESCE(js.phone, '') AS phone,
               js.email, js.prefecture, a.id AS application_id, a.application_status,
               a.progress_status, u.name AS coordinator_name, s.name AS source_name, a.applied_at
        {base}
        ORDER BY a.applied_at DESC
        LIMIT ? OFFSET ?
        """,
        [*params, JOB_SEEKER_PAGE_SIZE, (page - 1) * JOB_SEEKER_PAGE_SIZE],
    )
    return {
        "items": rows,
        "total": total,
        "page": page,
        "page_size": JOB_SEEKER_PAGE_SIZE,
        "pages": (total + JOB_SEEKER_PAGE_SIZE - 1) // JOB_SEEKER_PAGE_SIZE,
    }


def list_coordinators() -> List[Dict[str, Any]]:
    """Users selectable as coordinator (everyone outside the admin department)."""
    return db.query(
        "SELECT id, name FROM users WHERE department IS NULL OR department != ? ORDER BY name",
        (ADMIN_DEPARTMENT,),
    )


# ---------------------------------------------------------------------------
# CSV imports
# ---------------------------------------------------------------------------

def template_csv(target: str) -> Tuple[str, str]:
    """Import template: header row plus one sample row, BOM-prefixed."""
    if target not in TARGETS:
        raise ValueError(f"Unknown import target: {target}")
    keys = columns_for(target)
    sample = {
        key: f"サンプル{label}" if key in REQUIRED_COLUMNS[target] else ""
        for key, label in TARGETS[target]
    }
    headers = [label for _, label in TARGETS[target]]
    return render_csv([sample], keys, headers=headers), TEMPLATE_FILENAMES[target]


def _int_or_none(value: Optional[str]) -> Optional[int]:
    number = parse_number(value)
    return int(number) if number is not None else None


def _result() -> Dict[str, Any]:
    return {"success": 0, "skipped": 0, "updated": 0, "errors": []}


def import_jobs(rows: List[Dict[str, str]], tenant_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Insert jobs from mapped CSV rows.

    Args:
        rows: Records keyed by job column (company_name, title, ...)
        tenant_id: Owning tenant (default: first tenant)

    Returns:
        {"success", "skipped", "updated", "errors"}; errors are
        "行{n}: ..." messages where n is the CSV line (header is line 1)
    """
    result = _result()
    tenant_id = tenant_id or db.first_tenant_id()
    company_ids = {c["name"]: c["id"] for c in db.fetch_all_rows("companies", "id, name")}

    for index, row in enumerate(rows):
        line = index + 2
        company_name = clean(row.get("company_name"))
        title = clean(row.get("title"))
        if not company_name or not title:
            result["errors"].append(f"行{line}: 派遣会社名と求人タイトルは必須です")
            continue
        company_id = company_ids.get(company_name)
        if not company_id:
            result["errors"].append(f"行{line}: 派遣会社「{company_name}」が見つかりません")
            continue

        fee_amount = _int_or_none(row.get("fee_amount"))
        job = {
            "tenant_id": tenant_id,
            "company_id": company_id,
            "title": title,
            "salary_min": _int_or_none(row.get("salary_min")),
            "salary_max": _int_or_none(row.get("salary_max")),
            "has_dormitory": clean(row.get("has_dormitory")) in TRUE_VALUES,
            "fee_type": "fixed" if fee_amount is not None else None,
            "fee_amount": fee_amount,
            "status": "open",
        }
        for key in ("job_type", "prefecture", "city", "address", "working_hours", "holidays", "description", "notes"):
            job[key] = clean(row.get(key)) or None
        try:
            db.insert_row("jobs", job)
        except Exception as exc:
            result["errors"].append(f"行{line}: {exc}")
            continue
        result["success"] += 1
    return result


def _seeker_fields(row: Dict[str, str]) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for key in ("name", "name_kana", "email", "postal_code", "prefecture", "city", "address", "notes"):
        value = clean(row.get(key))
        if value:
            fields[key] = value
    phone = normalize_phone(row.get("phone"))
    if phone:
        fields["phone"] = phone
    birth_date = parse_date(row.get("birth_date"))
    if birth_date:
        fields["birth_date"] = birth_date
    gender = clean(row.get("gender"))
    gender = gender if gender in ("male", "female", "other") else parse_gender(gender)
    if gender:
        fields["gender"] = gender
    return fields


def import_job_seekers(
    rows: List[Dict[str, str]],
    duplicate_action: str = "skip",
    tenant_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Import job seekers (each with a new application) from mapped CSV rows.

    A row whose normalized phone already exists is skipped, used to update
    the existing seeker's non-empty fields, or imported as another seeker,
    depending on duplicate_action.
    """
    if duplicate_action not in DUPLICATE_ACTIONS:
        raise ValueError(f"Unknown duplicate action: {duplicate_action}")
    result = _result()
    tenant_id = tenant_id or db.first_tenant_id()
    seeker_by_phone = {
        normalize_phone(s["phone"]): s["id"] for s in db.fetch_all_rows("job_seekers", "id, phone")
    }
    source_ids = {s["name"]: s["id"] for s in db.fetch_all_rows("sources", "id, name")}

    for index, row in enumerate(rows):
        line = index + 2
        fields = _seeker_fields(row)
        if not fields.get("name") or not fields.get("phone"):
            result["errors"].append(f"行{line}: 氏名と電話番号は必須です")
            continue

        existing_id = seeker_by_phone.get(fields["phone"])
        try:
            if existing_id and duplicate_action == "skip":
                result["skipped"] += 1
                continue
            if existing_id and duplicate_action == "update":
                db.update_row("job_seekers", existing_id, fields)
                result["updated"] += 1
                continue

            seeker = db.insert_row("job_seekers", {**fields, "tenant_id": tenant_id})
            seeker_by_phone.setdefault(fields["phone"], seeker["id"])
            db.insert_row(
                "applications",
                {
                    "tenant_id": tenant_id,
                    "job_seeker_id": seeker["id"],
                    "source_id": source_ids.get(clean(row.get("source"))),
                    "application_status": "new",
                    "job_type": clean(row.get("job_type")) or None,
                    "applied_at": parse_date(row.get("applied_at")) or db.now_iso(),
                },
            )
        except Exception as exc:
            result["errors"].append(f"行{line}: {exc}")
            continue
        result["success"] += 1
    return result
