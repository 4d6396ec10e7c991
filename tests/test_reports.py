from datetime import date

import pytest

from webapp import db, reports
from webapp.formatting import calculate_age, calculate_bmi, format_currency, format_date, format_phone


def test_formatting_helpers():
    assert format_currency(150000) == "¥150,000"
    assert format_currency(0) == "-"
    assert format_currency(-1200.4) == "-¥1,200"
    assert format_phone("09012345678") == "090-1234-5678"
    assert format_phone("0312345678") == "031-234-5678"
    assert format_phone("123") == "123"
    assert format_date("2025-04-03T09:30:00+09:00") == "2025/04/03"
    assert format_date(None) == "-"
    assert format_date("2025/1/5 10:00") == "2025/01/05"
    assert format_date("未定") == "-"
    assert format_date("2025-13-01") == "-"
    assert calculate_age("1990/05/01", date(2025, 6, 1)) == 35
    assert calculate_age("不明") is None
    assert calculate_age("2000-06-15", date(2025, 6, 14)) == 24
    assert calculate_age("2000-06-15", date(2025, 6, 15)) == 25
    assert calculate_bmi(170, 65) == 22.5
    assert calculate_bmi(None, 65) == 0


def test_months_ago_clamps_to_month_end():
    assert reports.months_ago(date(2025, 8, 31), 6) == date(2025, 2, 28)
    assert reports.months_ago(date(2025, 3, 15), 3) == date(2024, 12, 15)


def test_month_bounds():
    assert reports.month_bounds("2025-12") == ("2025-12-01", "2026-01-01")
    with pytest.raises(ValueError):
        reports.month_bounds("bad")


def test_action_date_report_counts_by_action_month():
    applications = [{"id": "a1"}, {"id": "a2"}]
    interviews = [
        {"application_id": "a1", "conducted_at": "2025-04-03T10:00:00"},
        {"application_id": "a2", "conducted_at": None},
        {"application_id": "gone", "conducted_at": "2025-04-03"},
    ]
    referrals = [
        {"id": "r1", "application_id": "a1", "referred_at": "2025-04-05", "dispatch_interview_at": "2025-04-20",
         "referral_status": "hired", "hired_at": "2025-04-20", "start_work_date": "2025-05-01"},
        {"id": "r2", "application_id": "a2", "referred_at": "2025-04-06", "dispatch_interview_at": None,
         "referral_status": "referred", "hired_at": None, "start_work_date": None},
    ]
    sales = [
        {"referral_id": "r1", "status": "expected", "amount": 100000, "expected_date": None},
        {"referral_id": "r1", "status": "paid", "amount": 80000, "paid_date": "2025-06-10"},
        {"referral_id": "r2", "status": "expected", "amount": 5000, "expected_date": "2025-04-30"},
    ]
    report = reports.action_date_report(applications, interviews, referrals, sales)

    assert list(report) == ["2025-04", "2025-05", "2025-06"]
    april = report["2025-04"]
    assert april["interviews_done"] == 1
    assert april["referrals"] == 1
    assert april["dispatch_interview_scheduled"] == 1
    assert april["dispatch_interview_done"] == 1
    assert april["hired"] == 1
    assert april["prospect"] == 1
    assert april["sales_expected_amount"] == 100000
    assert report["2025-05"]["working"] == 1
    assert report["2025-06"]["sales_paid_amount"] == 80000


def test_sales_null_dates():
    counts = reports.sales_null_dates([
        {"status": "expected", "expected_date": None},
        {"status": "expected", "expected_date": "2025-04-01"},
        {"status": "invoiced"},
    ])
    assert counts["expected"] == {"total": 2, "null": 1}
    assert counts["paid"] == {"total": 0, "null": 0}


def test_summarize_applications_groups_by_month_source_and_coordinator():
    applications = [
        {"id": "a1", "application_status": "valid", "applied_at": "2025-04-01", "source_id": "s1",
         "source_name": "Indeed", "cost_per_application": 1000, "coordinator_id": "u1", "coordinator_name": "佐藤"},
        {"id": "a2", "application_status": "invalid", "applied_at": "2025-04-10", "source_id": "s1",
         "source_name": "Indeed", "cost_per_application": 1000, "coordinator_id": None},
        {"id": "a3", "application_status": "new", "applied_at": "2025-05-01", "source_id": None},
    ]
    referrals = [
        {"id": "r1", "application_id": "a1", "referral_status": "working"},
        {"id": "r2", "application_id": "a1", "referral_status": "declined"},
    ]
    sales = [
        {"referral_id": "r1", "amount": 50000, "status": "paid"},
        {"referral_id": "r1", "amount": 90000, "status": "expected"},
    ]
    result = reports.summarize_applications(applications, referrals, sales)

    assert [m["month"] for m in result["monthly"]] == ["2025-04", "2025-05"]
    april = result["monthly"][0]
    assert (april["applications"], april["valid_applications"], april["referrals"], april["hires"], april["sales"]) == (
        2, 1, 2, 1, 50000
    )
    source = result["sources"][0]
    assert source["conversion_rate"] == 50.0
    assert source["total_cost"] == 2000
    assert result["coordinators"] == [
        {"applications": 1, "valid_applications": 1, "referrals": 2, "hires": 1, "sales": 50000,
         "id": "u1", "name": "佐藤"}
    ]
    assert result["totals"]["applications"] == 3


def test_applied_month_stats_rejects_unknown_period(database):
    with pytest.raises(ValueError):
        reports.applied_month_stats("forever")


def _hired_sale(tenant_id, status="paid", **sale):
    seeker = db.insert_row(
        "job_seekers",
        {"tenant_id": tenant_id, "name": "山田太郎", "phone": "09011112222", "gender": "male",
         "prefecture": "愛知県", "city": "名古屋市"},
    )
    app = db.insert_row(
        "applications",
        {"tenant_id": tenant_id, "job_seeker_id": seeker["id"], "applied_at": "2025-04-01",
         "application_status": "valid"},
    )
    company = db.insert_row("companies", {"tenant_id": tenant_id, "name": "A社"})
    job = db.insert_row(
        "jobs",
        {"tenant_id": tenant_id, "company_id": company["id"], "title": "製造", "job_type": "製造",
         "fee_type": "fixed", "fee_amount": 150000},
    )
    db.insert_row(
        "referrals",
        {"tenant_id": tenant_id, "application_id": app["id"], "job_id": job["id"], "referred_at": "2025-03-20",
         "referral_status": "declined"},
    )
    referral = db.insert_row(
        "referrals",
        {"tenant_id": tenant_id, "application_id": app["id"], "job_id": job["id"], "referred_at": "2025-04-05",
         "hired_at": "2025-04-20", "referral_status": "hired"},
    )
    db.insert_row(
        "sales",
        {"tenant_id": tenant_id, "referral_id": referral["id"], "amount": 150000, "status": status, **sale},
    )
    return app


def test_job_seeker_ledger_uses_latest_referral(database):
    _hired_sale(database)
    rows = reports.job_seeker_ledger("2025-04")
    assert len(rows) == 1
    row = rows[0]
    assert row["name"] == "山田太郎"
    assert row["gender"] == "男"
    assert row["address"] == "愛知県名古屋市"
    assert row["application_status"] == "有効応募"
    assert row["referral_date"] == "2025-04-05"
    assert row["referral_company"] == "A社"
    assert row["result"] == "採用"
    assert reports.job_seeker_ledger("2025-05") == []


def test_fee_ledger_and_csv(database):
    _hired_sale(database, invoiced_date="2025-05-10", paid_date="2025-06-01")
    assert reports.fee_ledger("2025-04") == []
    may = reports.fee_ledger("2025-05")
    assert len(may) == 1
    assert may[0]["fee_type"] == "定額"
    assert may[0]["payment_amount"] == 150000

    text, filename = reports.ledger_csv("fee", "2025-06")
    assert filename == "手数料管理簿_2025-06.csv"
    assert text.startswith("\ufeff取引日,求職者名")
    lines = text.strip().split("\n")
    assert lines[1].startswith("2025/04/05,山田太郎,A社,製造,2025/04/20,定額,150000,2025/05/10,2025/06/01,150000")

    with pytest.raises(ValueError):
        reports.ledger_csv("payroll", "2025-06")


def test_dashboard_counts(database):
    today = date.today()
    seeker = db.insert_row("job_seekers", {"tenant_id": database, "name": "鈴木", "phone": "08011112222"})
    app = db.insert_row(
        "applications",
        {"tenant_id": database, "job_seeker_id": seeker["id"], "applied_at": today.isoformat(),
         "application_status": "new", "created_at": f"{today.isoformat()}T09:00:00"},
    )
    db.insert_row(
        "interviews",
        {"tenant_id": database, "application_id": app["id"], "scheduled_at": f"{today.isoformat()}T10:00:00"},
    )
    dig = db.insert_row(
        "applications",
        {"tenant_id": database, "job_seeker_id": seeker["id"], "applied_at": today.isoformat(),
         "application_status": "valid"},
    )

    result = reports.dashboard(today)
    assert result["stats"]["new_applications"] == 1
    assert result["stats"]["today_interviews"] == 1
    assert result["today_interviews"][0]["job_seeker_name"] == "鈴木"
    assert [d["id"] for d in result["dig_up"]] == [dig["id"]]
    assert result["dig_up"][0]["days_since_contact"] == reports.NEVER_CONTACTED_DAYS
