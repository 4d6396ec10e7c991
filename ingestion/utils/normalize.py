"""
Value normalization for spreadsheet cells.

Phone numbers, dates, amounts and flags arrive as free text typed by
coordinators; these helpers turn them into the values stored in the database.
"""

import re
import unicodedata
from datetime import date
from typing import List, Optional, Tuple

PHONE_STRIP_PATTERN = re.compile(r"[-\s　()（）]")
FULL_DATE_PATTERN = re.compile(r"^(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})")
MONTH_DAY_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})\s*$")
MONTH_DAY_PREFIX_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})")
AMOUNT_STRIP_PATTERN = re.compile(r'[,，円¥\\"]')
NUMBER_STRIP_PATTERN = re.compile(r"[,，]")

COMPANY_SUFFIXES = [
    "株式会社",
    "（株）",
    "(株)",
    "有限会社",
    "（有）",
    "(有)",
    "合同会社",
    "合資会社",
]

UNKNOWN_NAME = "名前不明"


def clean(value: Optional[str]) -> str:
    """Strip a cell; None becomes an empty string."""
    if value is None:
        return ""
    return str(value).strip()


def normalize_phone(phone: Optional[str]) -> str:
    """
    Normalize a phone number for matching.

    Removes hyphens, whitespace (including the full-width space) and
    parentheses, then truncates to the 20 characters the column holds.

    Args:
        phone: Raw phone text

    Returns:
        Normalized phone, or empty string
    """
    if not phone:
        return ""
    return PHONE_STRIP_PATTERN.sub("", phone).strip()[:20]


def _pad(value: str) -> str:
    return value.zfill(2)


def parse_date(value: Optional[str], today: Optional[date] = None) -> Optional[str]:
    """
    Parse a sheet date into YYYY-MM-DD.

    Accepts YYYY/M/D and YYYY-M-D (anything after the day is ignored) and a
    bare M/D, which is placed in the current year.

    Args:
        value: Raw date text
        today: Reference date for the year of M/D values (default: today)

    Returns:
        ISO date string or None
    """
    text = clean(value)
    if not text:
        return None
    match = FULL_DATE_PATTERN.match(text)
    if match:
        return f"{match.group(1)}-{_pad(match.group(2))}-{_pad(match.group(3))}"
    match = MONTH_DAY_PATTERN.match(text)
    if match:
        year = (today or date.today()).year
        return f"{year}-{_pad(match.group(1))}-{_pad(match.group(2))}"
    return None


def _parse_float(text: str) -> Optional[float]:
    match = re.match(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)", text)
    if not match:
        return None
    return float(match.group(0))


def parse_amount(value: Optional[str]) -> Optional[float]:
    """Parse a yen amount such as "¥120,000" or "120,000円"."""
    text = clean(value)
    if not text:
        return None
    return _parse_float(AMOUNT_STRIP_PATTERN.sub("", text))


def parse_number(value: Optional[str]) -> Optional[float]:
    text = clean(value)
    if not text:
        return None
    return _parse_float(NUMBER_STRIP_PATTERN.sub("", text))


def parse_gender(value: Optional[str]) -> Optional[str]:
    text = clean(value)
    if "男" in text:
        return "male"
    if "女" in text:
        return "female"
    return None


def parse_bool(value: Optional[str]) -> bool:
    text = clean(value)
    if not text:
        return False
    return "あり" in text or "有" in text or text == "○"


def build_fiscal_date(au: Optional[str], av: Optional[str]) -> Optional[str]:
    """Mid-month date (YYYY-MM-15) for the interview schedule year/month columns."""
    year = clean(au)
    month = clean(av)
    if not year or not month:
        return None
    return f"{year}-{_pad(month)}-15"


def fiscal_month(au: Optional[str], av: Optional[str]) -> str:
    """YYYY-MM key for the schedule year/month columns, or empty string."""
    fiscal = build_fiscal_date(au, av)
    return fiscal[:7] if fiscal else ""


def build_work_month(
    cf: Optional[str],
    bg: Optional[str],
    bh: Optional[str],
    au: Optional[str],
) -> Tuple[Optional[str], Optional[str]]:
    """
    Work month for sales dating.

    The year comes from the dispatch year column, falling back to the
    schedule year. A MM/DD work day gives both the month and the actual
    start date; otherwise the dispatch month gives only the month.

    Returns:
        (work_month_date as YYYY-MM-15, start_work_date as YYYY-MM-DD)
    """
    year = clean(bg) or clean(au)
    if not year:
        return None, None

    work_day = clean(cf)
    if work_day:
        match = MONTH_DAY_PREFIX_PATTERN.match(work_day)
        if match:
            month = _pad(match.group(1))
            day = _pad(match.group(2))
            return f"{year}-{month}-15", f"{year}-{month}-{day}"

    dispatch_month = clean(bh)
    if dispatch_month:
        return f"{year}-{_pad(dispatch_month)}-15", None

    return None, None


def parse_interview_date(bj: Optional[str], bg: Optional[str], au: Optional[str]) -> Optional[str]:
    """Dispatch interview date: a full date as-is, MM/DD in the dispatch (or schedule) year."""
    text = clean(bj)
    if not text:
        return None
    match = FULL_DATE_PATTERN.match(text)
    if match:
        return f"{match.group(1)}-{_pad(match.group(2))}-{_pad(match.group(3))}"
    match = MONTH_DAY_PREFIX_PATTERN.match(text)
    if match:
        year = clean(bg) or clean(au)
        if year:
            return f"{year}-{_pad(match.group(1))}-{_pad(match.group(2))}"
    return None


def join_name(last: Optional[str], first: Optional[str]) -> str:
    """Join name parts as 'last first', or return whichever part exists."""
    last = clean(last)
    first = clean(first)
    if last and first:
        return f"{last} {first}"
    return last or first


def normalize_date_key(value: Optional[str]) -> str:
    """
    Date key used for phone|date matching.

    Slashes and dots become hyphens and month/day are zero-padded, so
    "2025/1/5", "2025.01.05" and "2025-01-05T00:00:00" share one key.
    Unparseable input gives an empty string.
    """
    cleaned = clean(value).replace("/", "-").replace(".", "-")
    match = re.match(r"^(\d{4})-(\d{1,2})-(\d{1,2})", cleaned)
    if not match:
        return ""
    return f"{match.group(1)}-{_pad(match.group(2))}-{_pad(match.group(3))}"


def to_half_width(text: str) -> str:
    """Convert full-width ASCII letters and digits to half-width."""
    converted: List[str] = []
    for ch in text:
        if "Ａ" <= ch <= "Ｚ" or "ａ" <= ch <= "ｚ" or "０" <= ch <= "９":
            converted.append(unicodedata.normalize("NFKC", ch))
        else:
            converted.append(ch)
    return "".join(converted)


def normalize_company_name(name: Optional[str]) -> str:
    """
    Comparison key for company names.

    Drops corporate suffixes and spacing, lowercases, and folds full-width
    letters and digits so that "株式会社ＡＢＣ" and "ABC（株）" collide.
    """
    text = clean(name).replace("　", " ")
    for suffix in COMPANY_SUFFIXES:
        text = text.replace(suffix, "")
    text = re.sub(r"\s+", "", text)
    return to_half_width(text.lower())
