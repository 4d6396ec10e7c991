from datetime import date

from ingestion.utils.normalize import (
    build_work_month,
    join_name,
    normalize_company_name,
    normalize_date_key,
    normalize_phone,
    parse_amount,
    parse_bool,
    parse_date,
    parse_gender,
    parse_interview_date,
)
from webapp.formatting import calculate_age, calculate_bmi, format_currency, format_phone


def test_normalize_phone_strips_separators():
    assert normalize_phone("090-1234-5678") == "09012345678"
    assert normalize_phone("(090) 1234　5678") == "09012345678"
    assert normalize_phone("（03）1234-5678") == "0312345678"
    assert normalize_phone("") == ""
    assert normalize_phone(None) == ""


def test_normalize_phone_truncates_to_20():
    assert len(normalize_phone("1" * 30)) == 20


def test_parse_date_formats():
    assert parse_date("2025/1/5") == "2025-01-05"
    assert parse_date("2025-12-31 10:00") == "2025-12-31"
    assert parse_date("3/7", today=date(2024, 6, 1)) == "2024-03-07"
    assert parse_date("not a date") is None
    assert parse_date("") is None


def test_parse_amount_handles_yen_formatting():
    assert parse_amount("¥120,000") == 120000
    assert parse_amount("50,000円") == 50000
    assert parse_amount("") is None
    assert parse_amount("abc") is None


def test_parse_gender_and_bool():
    assert parse_gender("男性") == "male"
    assert parse_gender("女") == "female"
    assert parse_gender("") is None
    assert parse_bool("あり") is True
    assert parse_bool("有") is True
    assert parse_bool("○") is True
    assert parse_bool("なし") is False


def test_build_work_month_prefers_work_day():
    assert build_work_month("4/10", "2025", "3", "2024") == ("2025-04-15", "2025-04-10")
    assert build_work_month("", "", "3", "2024") == ("2024-03-15", None)
    assert build_work_month("", "", "", "") == (None, None)


def test_parse_interview_date_uses_dispatch_year():
    assert parse_interview_date("2025/2/3", "", "") == "2025-02-03"
    assert parse_interview_date("2/3", "", "2024") == "2024-02-03"
    assert parse_interview_date("2/3", "", "") is None


def test_join_name_and_date_key():
    assert join_name("山田", "太郎") == "山田 太郎"
    assert join_name("", "太郎") == "太郎"
    assert normalize_date_key("2025/1/5") == "2025-01-05"
    assert normalize_date_key("2025.01.05") == "2025-01-05"
    assert normalize_date_key("x") == ""


def test_normalize_company_name_folds_suffix_and_width():
    assert normalize_company_name("株式会社ＡＢＣ") == normalize_company_name("ABC")


def test_format_currency():
    assert format_currency(0) == "-"
    assert format_currency(None) == "-"
    assert format_currency(1234) == "¥1,234"


def test_format_phone():
    assert format_phone("09012345678") == "090-1234-5678"
    assert format_phone("0312345678") == "031-234-5678"
    assert format_phone("12345") == "12345"


def test_age_and_bmi():
    assert calculate_age("2000-06-15", today=date(2025, 6, 14)) == 24
    assert calculate_age("2000-06-15", today=date(2025, 6, 15)) == 25
    assert calculate_age(None) is None
    assert calculate_bmi(170, 65) == 22.5
    assert calculate_bmi(None, 65) == 0
