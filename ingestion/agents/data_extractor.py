"""
Row Extraction Agent

Turns one application-sheet row into the payloads stored in the database:
job seeker, application, phone interview, referral and sales.
"""

import uuid
from datetime import date
from typing import Any, Dict, List, Optional

from ..config.sheet_columns import (
    HIRED_MARK,
    INTERVIEW_DONE,
    INTERVIEW_OUTCOMES,
    PAYMENT_CONFIRMED_MARK,
    REFERRAL_MARK,
    cell,
)
from ..config.status_mappings import (
    INTERVIEW_RESULT_MAP,
    PROGRESS_MAP,
    REFERRAL_STATUS_MAP,
    map_application_status,
)
from ..utils.normalize import (
    UNKNOWN_NAME,
    build_fiscal_date,
    build_work_month,
    fiscal_month,
    join_name,
    normalize_phone,
    parse_amount,
    parse_bool,
    parse_date,
    parse_gender,
    parse_interview_date,
    parse_number,
)

Row = List[str]


def extract_name(row: Row) -> str:
    """
    Display name for a row.

    Falls back from the full-name column to "last first", then to the
    kana columns in the same order.

    Args:
        row: Sheet row

    Returns:
        Name, or empty string when the row carries none
    """
    name = cell(row, "NAME") or join_name(cell(row, "NAME_LAST"), cell(row, "NAME_FIRST"))
    if not name:
        name = extract_kana(row)
    return name


def extract_kana(row: Row) -> str:
    """Kana reading: full kana column, then "last first", last, first."""
    return cell(row, "KANA") or join_name(cell(row, "KANA_LAST"), cell(row, "KANA_FIRST"))


def extract_phone(row: Row) -> str:
    return normalize_phone(cell(row, "PHONE"))


def placeholder_phone() -> str:
    """Unique stand-in for rows without a phone number."""
    return f"unknown-{uuid.uuid4().hex[:16]}"


def extract_job_seeker(row: Row) -> Dict[str, Any]:
    """
    Job seeker payload for a row whose phone is not in the database yet.

    Args:
        row: Sheet row

    Returns:
        Column -> value dict for the job_seekers table
    """
    medical = cell(row, "MEDICAL")
    return {
        "phone": extract_phone(row) or placeholder_phone(),
        "name": extract_name(row) or UNKNOWN_NAME,
        "name_kana": extract_kana(row) or None,
        "birth_date": parse_date(cell(row, "BIRTH_DATE")),
        "gender": parse_gender(cell(row, "GENDER")),
        "postal_code": cell(row, "POSTAL") or None,
        "prefecture": cell(row, "PREF") or None,
        "city": cell(row, "CITY") or None,
        "height": parse_number(cell(row, "HEIGHT")),
        "weight": parse_number(cell(row, "WEIGHT")),
        "has_tattoo": parse_bool(cell(row, "TATTOO")),
        "has_medical_condition": parse_bool(medical),
        "medical_condition_detail": medical or None,
        "has_spouse": parse_bool(cell(row, "SPOUSE")),
        "has_children": parse_bool(cell(row, "CHILDREN")),
    }


def applied_date(row: Row, today: Optional[date] = None) -> str:
    """Application date from the DATE column, today when it is missing."""
    return parse_date(cell(row, "DATE"), today=today) or (today or date.today()).isoformat()


def fiscal_date(row: Row) -> Optional[str]:
    """Interview schedule date: explicit AY date, else AU/AV mid-month."""
    return parse_date(cell(row, "AY")) or build_fiscal_date(cell(row, "AU"), cell(row, "AV"))


def sheet_month(row: Row) -> str:
    """YYYY-MM of the AU/AV schedule columns used for monthly tallies."""
    return fiscal_month(cell(row, "AU"), cell(row, "AV"))


def resolve_progress_status(row: Row) -> Optional[str]:
    """
    Application progress status.

    Confirmed payment wins; otherwise the progress column is mapped, and
    only when it is empty does the referral column decide (defaulting to
    "referred").
    """
    payment = cell(row, "CJ")
    progress = cell(row, "BM")
    referral = cell(row, "BF")
    if PAYMENT_CONFIRMED_MARK in payment:
        return "full_paid"
    if progress:
        return PROGRESS_MAP.get(progress)
    if referral:
        return PROGRESS_MAP.get(referral, "referred")
    return None


def resolve_referral_status(row: Row) -> str:
    progress = cell(row, "BM")
    referral = cell(row, "BF")
    if progress:
        return REFERRAL_STATUS_MAP.get(progress) or PROGRESS_MAP.get(progress) or "referred"
    if referral:
        return REFERRAL_STATUS_MAP.get(referral, "referred")
    return "referred"


def extract_application(
    row: Row,
    job_seeker_id: str,
    source_id: Optional[str],
    coordinator_id: Optional[str],
    today: Optional[date] = None,
) -> Dict[str, Any]:
    return {
        "id": str(uuid.uuid4()),
        "job_seeker_id": job_seeker_id,
        "source_id": source_id,
        "coordinator_id": coordinator_id,
        "application_status": map_application_status(cell(row, "INQUIRY_STATUS")),
        "progress_status": resolve_progress_status(row),
        "job_type": cell(row, "JOB_TYPE") or None,
        "applied_at": applied_date(row, today=today),
        "notes": cell(row, "NOTES") or None,
    }


def extract_interview(
    row: Row,
    application_id: str,
    applied_at: str,
    coordinator_id: Optional[str],
) -> Optional[Dict[str, Any]]:
    """
    Phone interview payload when the interview status column has an outcome.

    The schedule is the AY date (or AU/AV mid-month, or the application
    date) with the AX time attached as a JST timestamp. Only completed
    interviews get conducted_at.

    Returns:
        Payload dict, or None when AZ is not an interview outcome
    """
    outcome = cell(row, "AZ")
    if outcome not in INTERVIEW_OUTCOMES:
        return None

    scheduled_date = fiscal_date(row) or applied_at
    time_text = cell(row, "AX")
    scheduled_at = f"{scheduled_date}T{time_text.zfill(8)}+09:00" if time_text else scheduled_date

    interview = {
        "id": str(uuid.uuid4()),
        "application_id": application_id,
        "interview_type": "phone",
        "scheduled_at": scheduled_at,
        "conducted_at": scheduled_at if outcome == INTERVIEW_DONE else None,
        "result": INTERVIEW_RESULT_MAP[outcome],
    }
    if coordinator_id:
        interview["interviewer_id"] = coordinator_id
    return interview


def referral_target(row: Row) -> Optional[Dict[str, str]]:
    """Company/job named by a referral row: {"company", "job"}; None means the placeholder."""
    company = cell(row, "BL")
    if not company:
        return None
    return {"company": company, "job": cell(row, "BO") or company}


def extract_referral(
    row: Row,
    application_id: str,
    job_id: str,
    applied_at: str,
) -> Optional[Dict[str, Any]]:
    """
    Referral payload for rows marked as handed off to a client.

    Args:
        row: Sheet row
        application_id: Application the referral belongs to
        job_id: Resolved job (or the placeholder job)
        applied_at: Application date, the last-resort referral date

    Returns:
        Payload dict, or None when the row is not a referral
    """
    if cell(row, "BF") != REFERRAL_MARK:
        return None

    au = cell(row, "AU")
    bg = cell(row, "BG")
    interview_date = parse_interview_date(cell(row, "BJ"), bg, au)
    hired_at = (interview_date or applied_at) if cell(row, "BN") == HIRED_MARK else None
    _, start_work_date = build_work_month(cell(row, "CF"), bg, cell(row, "BH"), au)

    return {
        "id": str(uuid.uuid4()),
        "application_id": application_id,
        "job_id": job_id,
        "referral_status": resolve_referral_status(row),
        "referred_at": fiscal_date(row) or applied_at,
        "dispatch_interview_at": interview_date,
        "hired_at": hired_at,
        "assignment_date": parse_date(cell(row, "BS")),
        "start_work_date": start_work_date,
        "expected_sales_amount": parse_amount(cell(row, "BX")),
    }


def extract_sales(row: Row, referral_id: str, applied_at: str) -> List[Dict[str, Any]]:
    """
    Sales payloads for a referral row.

    Expected (BX), confirmed (CG) and paid (CH) amounts each produce one
    sale when positive, dated on the work month, else the schedule date,
    else the application date.
    """
    work_month_date, _ = build_work_month(
        cell(row, "CF"), cell(row, "BG"), cell(row, "BH"), cell(row, "AU")
    )
    sale_date = work_month_date or fiscal_date(row) or applied_at

    sales = []
    for column, status, date_field in (
        ("BX", "expected", "expected_date"),
        ("CG", "confirmed", "confirmed_date"),
        ("CH", "paid", "paid_date"),
    ):
        amount = parse_amount(cell(row, column))
        if amount and amount > 0:
            sales.append(
                {
                    "referral_id": referral_id,
                    "amount": amount,
                    "status": status,
                    date_field: sale_date,
                }
            )
    return sales


def collect_master_data(rows: List[Row]) -> Dict[str, Any]:
    """Unique phones, sources, companies and company -> job titles in the sheet."""
    phones = set()
    sources = set()
    companies: Dict[str, set] = {}
    for row in rows:
        phone = extract_phone(row)
        if phone:
            phones.add(phone)
        source = cell(row, "SOURCE")
        if source:
            sources.add(source)
        target = referral_target(row)
        if target:
            companies.setdefault(target["company"], set()).add(target["job"])
    return {"phones": phones, "sources": sources, "jobs_by_company": companies}


SHEET_COUNT_KEYS = ("interviews", "referrals", "dispatch_scheduled", "dispatch_done", "hired")


def count_sheet_months(rows: List[Row]) -> Dict[str, Dict[str, int]]:
    """
    Monthly tallies straight from the sheet, keyed by AU/AV month.

    interviews: AZ 済み; referrals: BF 繋ぎ; dispatch_scheduled: BJ present;
    dispatch_done: BM 済み; hired: BN 採用.
    """
    counts: Dict[str, Dict[str, int]] = {key: {} for key in SHEET_COUNT_KEYS}

    def bump(key: str, month: str) -> None:
        counts[key][month] = counts[key].get(month, 0) + 1

    for row in rows:
        month = sheet_month(row)
        if not month:
            continue
        if cell(row, "AZ") == INTERVIEW_DONE:
            bump("interviews", month)
        if cell(row, "BF") == REFERRAL_MARK:
            bump("referrals", month)
        if cell(row, "BJ"):
            bump("dispatch_scheduled", month)
        if cell(row, "BM") == INTERVIEW_DONE:
            bump("dispatch_done", month)
        if cell(row, "BN") == HIRED_MARK:
            bump("hired", month)
    return counts
