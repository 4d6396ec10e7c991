"""Monthly reports, dashboard figures and the legal ledgers."""
import calendar
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ingestion.utils.csv_writer import render_csv
from webapp import db
from webapp.formatting import days_since, format_date
from webapp.labels import (
    APPLICATION_STATUS_LABELS,
    FEE_TYPE_LABELS,
    GENDER_LABELS,
    REFERRAL_STATUS_LABELS,
    label_for,
)

ACTION_METRICS = (
    "interviews_done",
    "referrals",
    "dispatch_interview_scheduled",
    "dispatch_interview_done",
    "hired",
    "prospect",
    "working",
    "sales_expected_amount",
    "sales_confirmed_amount",
    "sales_paid_amount",
)
DISPATCH_DONE_STATUSES = ("interview_done", "hired", "pre_assignment", "assigned", "working")
VALID_APPLICATION_STATUSES = ("valid", "connected", "working", "completed")
HIRED_REFERRAL_STATUSES = ("hired", "assigned", "working")
REVENUE_SALE_STATUSES = ("confirmed", "invoiced", "paid")
PENDING_REFERRAL_STATUSES = ("referred",)
DIG_UP_STATUSES = ("valid", "no_answer", "connected")
NEVER_CONTACTED_DAYS = 999
PERIOD_MONTHS = {"3months": 3, "6months": 6, "12months": 12}

# Per sale status: (own date, referral fallbacks) used to place the amount in a month.
SALE_MONTH_SOURCES = {
    "expected": ("expected_date", ("hired_at", "referred_at")),
    "confirmed": ("confirmed_date", ("start_work_date", "hired_at")),
    "paid": ("paid_date", ("start_work_date", "hired_at")),
}


def _month(value: Optional[str]) -> str:
    return (value or "")[:7]


def _first(*values: Optional[str]) -> Optional[str]:
    return next((v for v in values if v), None)


def sale_month(sale: Dict[str, Any], referral: Dict[str, Any], status: Optional[str] = None) -> str:
    """Month a sale counts in: its own status date, else the referral fallbacks."""
    own, fallbacks = SALE_MONTH_SOURCES[status or sale["status"]]
    return _month(_first(sale.get(own), *(referral.get(f) for f in fallbacks)))


def action_date_report(
    applications: List[Dict],
    interviews: List[Dict],
    referrals: List[Dict],
    sales: List[Dict],
) -> Dict[str, Dict[str, float]]:
    """
    Monthly funnel keyed by the month each action happened.

    Interviews count in the month they were conducted. Referral metrics
    only count for applications with a conducted interview. Prospect and
    working count once per referral, using the first expected sale and the
    first confirmed-or-paid sale respectively.

    Returns:
        {"YYYY-MM": {metric: value}} for every month that has activity
    """
    app_ids = {a["id"] for a in applications}
    interviews = [iv for iv in interviews if iv["application_id"] in app_ids]
    referrals = [r for r in referrals if r["application_id"] in app_ids]
    referral_ids = {r["id"] for r in referrals}
    sales_by_referral: Dict[str, List[Dict]] = {}
    for sale in sales:
        if sale["referral_id"] in referral_ids:
            sales_by_referral.setdefault(sale["referral_id"], []).append(sale)

    months: Dict[str, Dict[str, float]] = {}

    def add(month: str, metric: str, amount: float = 1) -> None:
        if not month:
            return
        bucket = months.setdefault(month, {key: 0 for key in ACTION_METRICS})
        bucket[metric] += amount

    interviewed = set()
    for interview in interviews:
        if interview.get("conducted_at"):
            interviewed.add(interview["application_id"])
            add(_month(interview["conducted_at"]), "interviews_done")

    for referral in referrals:
        if referral["application_id"] not in interviewed:
            continue
        add(_month(referral.get("referred_at")), "referrals")
        if referral.get("dispatch_interview_at"):
            dispatch_month = _month(referral["dispatch_interview_at"])
            add(dispatch_month, "dispatch_interview_scheduled")
            if referral.get("referral_status") in DISPATCH_DONE_STATUSES:
                add(dispatch_month, "dispatch_interview_done")
        if referral.get("hired_at"):
            add(_month(referral["hired_at"]), "hired")

        referral_sales = sales_by_referral.get(referral["id"], [])
        expected = next((s for s in referral_sales if s["status"] == "expected"), None)
        if expected:
            add(sale_month(expected, referral), "prospect")
        started = next((s for s in referral_sales if s["status"] in ("confirmed", "paid")), None)
        if started:
            add(sale_month(started, referral, status="confirmed"), "working")

        for sale in referral_sales:
            if sale["status"] in SALE_MONTH_SOURCES:
                add(sale_month(sale, referral), f"sales_{sale['status']}_amount", float(sale["amount"] or 0))
    return dict(sorted(months.items()))


def load_action_date_report() -> Dict[str, Dict[str, float]]:
    return action_date_report(
        db.fetch_all_rows("applications", "id, applied_at"),
        db.fetch_all_rows("interviews", "id, application_id, conducted_at"),
        db.fetch_all_rows(
            "referrals",
            "id, application_id, referred_at, dispatch_interview_at, hired_at, start_work_date, referral_status",
        ),
        db.fetch_all_rows("sales", "id, referral_id, amount, status, expected_date, confirmed_date, paid_date"),
    )


def sales_null_dates(sales: Iterable[Dict]) -> Dict[str, Dict[str, int]]:
    """Per sale status: how many sales exist and how many lack their status date."""
    result = {}
    sales = list(sales)
    for status, (field, _) in SALE_MONTH_SOURCES.items():
        matching = [s for s in sales if s["status"] == status]
        result[status] = {"total": len(matching), "null": sum(1 for s in matching if not s.get(field))}
    return result


def months_ago(today: date, months: int) -> date:
    """Same day N months earlier, clamped to the end of shorter months."""
    year, month = divmod(today.year * 12 + today.month - 1 - months, 12)
    month += 1
    return date(year, month, min(today.day, calendar.monthrange(year, month)[1]))


def _empty_stats(**extra) -> Dict[str, Any]:
    stats = {"applications": 0, "valid_applications": 0, "referrals": 0, "hires": 0, "sales": 0}
    stats.update(extra)
    return stats


def summarize_applications(
    applications: List[Dict],
    referrals: List[Dict],
    sales: List[Dict],
) -> Dict[str, Any]:
    """
    Applied-month statistics.

    Args:
        applications: Rows with id, application_status, applied_at,
            source_id, source_name, cost_per_application, coordinator_id,
            coordinator_name
        referrals: Rows with id, application_id, referral_status
        sales: Rows with referral_id, amount, status

    Returns:
        {"monthly", "sources", "coordinators", "totals"}
    """
    paid_by_referral: Dict[str, float] = {}
    for sale in sales:
        if sale["status"] == "paid":
            paid_by_referral[sale["referral_id"]] = paid_by_referral.get(sale["referral_id"], 0) + (sale["amount"] or 0)
    referrals_by_app: Dict[str, List[Dict]] = {}
    for referral in referrals:
        referrals_by_app.setdefault(referral["application_id"], []).append(referral)

    monthly: Dict[str, Dict[str, Any]] = {}
    sources: Dict[str, Dict[str, Any]] = {}
    coordinators: Dict[str, Dict[str, Any]] = {}

    for app in applications:
        valid = app["application_status"] in VALID_APPLICATION_STATUSES
        app_referrals = referrals_by_app.get(app["id"], [])
        hires = sum(1 for r in app_referrals if r["referral_status"] in HIRED_REFERRAL_STATUSES)
        paid = sum(paid_by_referral.get(r["id"], 0) for r in app_referrals)

        month = _month(app["applied_at"])
        stats = monthly.setdefault(month, _empty_stats(month=month))
        targets = [stats]
        if app.get("coordinator_id"):
            targets.append(coordinators.setdefault(
                app["coordinator_id"],
                _empty_stats(id=app["coordinator_id"], name=app.get("coordinator_name")),
            ))
        for target in targets:
            target["applications"] += 1
            target["valid_applications"] += int(valid)
            target["referrals"] += len(app_referrals)
            target["hires"] += hires
            target["sales"] += paid

        if app.get("source_id"):
            source = sources.setdefault(app["source_id"], {
                "id": app["source_id"],
                "name": app.get("source_name"),
                "applications": 0,
                "valid_applications": 0,
                "conversion_rate": 0.0,
                "cost_per_application": app.get("cost_per_application"),
                "total_cost": 0,
            })
            source["applications"] += 1
            source["valid_applications"] += int(valid)
            source["total_cost"] += app.get("cost_per_application") or 0

    for source in sources.values():
        if source["applications"]:
            source["conversion_rate"] = source["valid_applications"] / source["applications"] * 100

    monthly_rows = [monthly[m] for m in sorted(monthly)]
    totals = _empty_stats()
    for row in monthly_rows:
        for key in totals:
            totals[key] += row[key]
    return {
        "monthly": monthly_rows,
        "sources": sorted(sources.values(), key=lambda s: -s["applications"]),
        "coordinators": sorted(coordinators.values(), key=lambda c: -c["sales"]),
        "totals": totals,
    }


def applied_month_stats(period: str = "6months", today: Optional[date] = None) -> Dict[str, Any]:
    if period not in PERIOD_MONTHS:
        raise ValueError(f"Unknown period: {period}")
    today = today or date.today()
    start = months_ago(today, PERIOD_MONTHS[period]).isoformat()
    end = f"{today.isoformat()}T23:59:59"
    applications = db.query(
        """
        SELECT a.id, a.application_status, a.applied_at, a.source_id, a.coordinator_id,
               s.name AS source_name, s.cost_per_application, u.name AS coordinator_name
        FROM applications a
        LEFT JOIN sources s ON s.id = a.source_id
        LEFT JOIN users u ON u.id = a.coordinator_id
        WHERE a.applied_at >= ? AND a.applied_at <= ?
        """,
        (start, end),
    )
    referrals = db.query(
        """
        SELECT r.id, r.application_id, r.referral_status
        FROM referrals r JOIN applications a ON a.id = r.application_id
        WHERE a.applied_at >= ? AND a.applied_at <= ?
        """,
        (start, end),
    )
    sales = db.query(
        """
        SELECT s.referral_id, s.amount, s.status
        FROM sales s
        JOIN referrals r ON r.id = s.referral_id
        JOIN applications a ON a.id = r.application_id
        WHERE a.applied_at >= ? AND a.applied_at <= ?
        """,
        (start, end),
    )
    result = summarize_applications(applications, referrals, sales)
    result["period"] = period
    result["start"] = start
    return result


def dashboard(today: Optional[date] = None) -> Dict[str, Any]:
    """Headline figures, today's phone interviews and the dig-up list."""
    today = today or date.today()
    month_start = today.replace(day=1).isoformat()
    day = today.isoformat()

    new_applications = db.query(
        "SELECT COUNT(*) AS n FROM applications WHERE application_status = 'new' AND created_at >= ?",
        (month_start,),
    )[0]["n"]
    today_interviews = db.query(
        """
        SELECT i.id, i.scheduled_at, js.name AS job_seeker_name
        FROM interviews i
        JOIN applications a ON a.id = i.application_id
        JOIN job_seekers js ON js.id = a.job_seeker_id
        WHERE substr(i.scheduled_at, 1, 10) = ? AND i.conducted_at IS NULL
        ORDER BY i.scheduled_at
        """,
        (day,),
    )
    placeholders = ", ".join("?" for _ in PENDING_REFERRAL_STATUSES)
    pending_referrals = db.query(
        f"SELECT COUNT(*) AS n FROM referrals WHERE referral_status IN ({placeholders})",
        PENDING_REFERRAL_STATUSES,
    )[0]["n"]
    placeholders = ", ".join("?" for _ in REVENUE_SALE_STATUSES)
    revenue = db.query(
        f"SELECT COALESCE(SUM(amount), 0) AS total FROM sales WHERE status IN ({placeholders}) AND created_at >= ?",
        (*REVENUE_SALE_STATUSES, month_start),
    )[0]["total"]

    placeholders = ", ".join("?" for _ in DIG_UP_STATUSES)
    dig_up = db.query(
        f"""
        SELECT a.id, js.name, js.phone,
               (SELECT MAX(c.contacted_at) FROM contact_logs c WHERE c.application_id = a.id) AS last_contact
        FROM applications a
        JOIN job_seekers js ON js.id = a.job_seeker_id
        WHERE a.application_status IN ({placeholders})
        ORDER BY a.updated_at ASC
        LIMIT 5
        """,
        DIG_UP_STATUSES,
    )
    for item in dig_up:
        since = days_since(item["last_contact"], today)
        item["days_since_contact"] = NEVER_CONTACTED_DAYS if since is None else since
        item["last_contact_date"] = item.pop("last_contact") or ""

    return {
        "stats": {
            "new_applications": new_applications,
            "today_interviews": len(today_interviews),
            "pending_referrals": pending_referrals,
            "monthly_revenue": revenue,
        },
        "today_interviews": [
            {**row, "job_seeker_name": row["job_seeker_name"] or "不明"} for row in today_interviews
        ],
        "dig_up": dig_up,
    }


def month_bounds(year_month: str) -> Tuple[str, str]:
    """('YYYY-MM-01', first day of the next month) for a 'YYYY-MM' string."""
    try:
        first = date(int(year_month[:4]), int(year_month[5:7]), 1)
    except (ValueError, IndexError):
        raise ValueError(f"Invalid month: {year_month}")
    following = (first + timedelta(days=32)).replace(day=1)
    return first.isoformat(), following.isoformat()


JOB_SEEKER_LEDGER_COLUMNS = [
    ("registration_date", "登録日"),
    ("name", "氏名"),
    ("name_kana", "フリガナ"),
    ("birth_date", "生年月日"),
    ("gender", "性別"),
    ("address", "住所"),
    ("phone", "電話番号"),
    ("desired_job_type", "希望職種"),
    ("desired_work_location", "希望勤務地"),
    ("application_status", "状態"),
    ("referral_date", "紹介日"),
    ("referral_company", "紹介先会社"),
    ("referral_job", "紹介求人"),
    ("result", "結果"),
    ("notes", "備考"),
]

FEE_LEDGER_COLUMNS = [
    ("transaction_date", "取引日"),
    ("job_seeker_name", "求職者名"),
    ("company_name", "紹介先会社"),
    ("job_title", "求人名"),
    ("hire_date", "採用日"),
    ("fee_type", "手数料種別"),
    ("fee_amount", "手数料額"),
    ("invoice_date", "請求日"),
    ("payment_date", "入金日"),
    ("payment_amount", "入金額"),
    ("notes", "備考"),
]


def job_seeker_ledger(year_month: str) -> List[Dict[str, Any]]:
    """求職管理簿: applications received in the month with their latest referral."""
    start, end = month_bounds(year_month)
    applications = db.query(
        """
        SELECT a.id, a.applied_at, a.application_status, a.notes,
               js.name, js.name_kana, js.birth_date, js.gender, js.prefecture,
               js.city, js.address, js.phone
        FROM applications a
        JOIN job_seekers js ON js.id = a.job_seeker_id
        WHERE a.applied_at >= ? AND a.applied_at < ?
        ORDER BY a.applied_at
        """,
        (start, end),
    )
    latest: Dict[str, Dict] = {}
    if applications:
        placeholders = ", ".join("?" for _ in applications)
        for referral in db.query(
            f"""
            SELECT r.application_id, r.referred_at, r.referral_status,
                   j.title, j.job_type, j.prefecture, c.name AS company_name
            FROM referrals r
            JOIN jobs j ON j.id = r.job_id
            LEFT JOIN companies c ON c.id = j.company_id
            WHERE r.application_id IN ({placeholders})
            ORDER BY r.referred_at
            """,
            [a["id"] for a in applications],
        ):
            latest[referral["application_id"]] = referral

    records = []
    for app in applications:
        referral = latest.get(app["id"])
        records.append({
            "id": app["id"],
            "registration_date": app["applied_at"],
            "name": app["name"],
            "name_kana": app["name_kana"],
            "birth_date": app["birth_date"],
            "gender": GENDER_LABELS.get(app["gender"]) if app["gender"] in ("male", "female") else None,
            "address": f"{app['prefecture'] or ''}{app['city'] or ''}{app['address'] or ''}",
            "phone": app["phone"],
            "desired_job_type": referral["job_type"] if referral else None,
            "desired_work_location": (referral and referral["prefecture"]) or app["prefecture"],
            "application_status": label_for(APPLICATION_STATUS_LABELS, app["application_status"]),
            "referral_date": referral["referred_at"] if referral else None,
            "referral_company": referral["company_name"] if referral else None,
            "referral_job": referral["title"] if referral else None,
            "result": label_for(REFERRAL_STATUS_LABELS, referral["referral_status"]) if referral else None,
            "notes": app["notes"],
        })
    return records


def fee_ledger(year_month: str) -> List[Dict[str, Any]]:
    """手数料管理簿: sales invoiced or paid in the month."""
    start, end = month_bounds(year_month)
    sales = db.query(
        """
        SELECT s.id, s.amount, s.status, s.invoiced_date, s.paid_date, s.notes,
               r.referred_at, r.hired_at, js.name AS job_seeker_name,
               j.title AS job_title, j.fee_type, c.name AS company_name
        FROM sales s
        JOIN referrals r ON r.id = s.referral_id
        JOIN applications a ON a.id = r.application_id
        JOIN job_seekers js ON js.id = a.job_seeker_id
        JOIN jobs j ON j.id = r.job_id
        LEFT JOIN companies c ON c.id = j.company_id
        WHERE (s.invoiced_date >= ? AND s.invoiced_date < ?)
           OR (s.paid_date >= ? AND s.paid_date < ?)
        ORDER BY s.created_at
        """,
        (start, end, start, end),
    )
    return [
        {
            "id": sale["id"],
            "transaction_date": sale["referred_at"] or "",
            "job_seeker_name": sale["job_seeker_name"] or "",
            "company_name": sale["company_name"] or "",
            "job_title": sale["job_title"] or "",
            "hire_date": sale["hired_at"],
            "fee_type": FEE_TYPE_LABELS.get(sale["fee_type"]),
            "fee_amount": sale["amount"],
            "invoice_date": sale["invoiced_date"],
            "payment_date": sale["paid_date"],
            "payment_amount": sale["amount"] if sale["status"] == "paid" else None,
            "notes": sale["notes"],
        }
        for sale in sales
    ]


LEDGERS = {
    "job-seeker": (job_seeker_ledger, JOB_SEEKER_LEDGER_COLUMNS, "求職管理簿"),
    "fee": (fee_ledger, FEE_LEDGER_COLUMNS, "手数料管理簿"),
}
DATE_FIELDS = {
    "registration_date", "birth_date", "referral_date", "transaction_date",
    "hire_date", "invoice_date", "payment_date",
}


def ledger_csv(kind: str, year_month: str) -> Tuple[str, str]:
    """Ledger as BOM-prefixed CSV text plus its download file name."""
    if kind not in LEDGERS:
        raise ValueError(f"Unknown ledger: {kind}")
    build, columns, title = LEDGERS[kind]
    rows = []
    for record in build(year_month):
        row = dict(record)
        for field in DATE_FIELDS & row.keys():
            row[field] = format_date(row[field]) if row[field] else ""
        for field, value in row.items():
            if isinstance(value, float) and value.is_integer():
                row[field] = int(value)
        rows.append(row)
    keys = [key for key, _ in columns]
    labels = [label for _, label in columns]
    return render_csv(rows, keys, headers=labels), f"{title}_{year_month}.csv"
