"""Display helpers shared by templates, exports and reports."""
import re
from datetime import date, datetime
from typing import Optional, Union

DateLike = Union[str, date, datetime]
DATE_PATTERN = re.compile(r"^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})")


def format_currency(value: Optional[float]) -> str:
    """Yen amount with separators; zero (or nothing) shows as '-'."""
    if not value:
        return "-"
    rounded = int(round(value))
    sign = "-" if rounded < 0 else ""
    return f"{sign}¥{abs(rounded):,}"


def format_phone(phone: Optional[str]) -> str:
    """Hyphenate 11-digit (3-4-4) and 10-digit (3-3-4) numbers; leave others as-is."""
    if not phone:
        return ""
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 11:
        return f"{digits[:3]}-{digits[3:7]}-{digits[7:]}"
    if len(digits) == 10:
        return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"
    return phone


def to_date(value: Optional[DateLike]) -> Optional[date]:
    """Date part of an ISO or YYYY/M/D value; None when it cannot be read."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    match = DATE_PATTERN.match(str(value).strip())
    if not match:
        return None
    try:
        return date(*(int(part) for part in match.groups()))
    except ValueError:
        return None


def format_date(value: Optional[DateLike]) -> str:
    """YYYY/MM/DD, or '-' when empty."""
    parsed = to_date(value)
    if not parsed:
        return "-"
    return parsed.strftime("%Y/%m/%d")


def calculate_age(birth_date: Optional[DateLike], today: Optional[date] = None) -> Optional[int]:
    born = to_date(birth_date)
    if not born:
        return None
    today = today or date.today()
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age


def calculate_bmi(height_cm: Optional[float], weight_kg: Optional[float]) -> float:
    """BMI rounded to one decimal; 0 when height or weight is missing."""
    if not height_cm or not weight_kg:
        return 0
    meters = height_cm / 100
    return round(weight_kg / (meters * meters), 1)


def days_since(value: Optional[DateLike], today: Optional[date] = None) -> Optional[int]:
    parsed = to_date(value)
    if not parsed:
        return None
    return ((today or date.today()) - parsed).days
