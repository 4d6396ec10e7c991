"""Japanese postal code -> address lookup (zipcloud)."""
import logging
import os
import re
from typing import Dict, Optional

import requests

POSTAL_API_URL = os.environ.get("POSTAL_API_URL", "https://zipcloud.ibsnet.co.jp/api/search")
REQUEST_TIMEOUT = 10

logger = logging.getLogger(__name__)


def normalize_postal_code(raw: Optional[str]) -> Optional[str]:
    """Digits of a postal code when there are exactly seven of them."""
    digits = re.sub(r"\D", "", raw or "")
    return digits if len(digits) == 7 else None


def lookup_postal_code(raw: str, session: Optional[requests.Session] = None) -> Optional[Dict[str, str]]:
    """
    Resolve a postal code to prefecture and city.

    Args:
        raw: Postal code as typed ("123-4567", "1234567")
        session: Optional requests session

    Returns:
        {"postal_code", "prefecture", "city"} or None when the code is
        malformed or unknown
    """
    postal_code = normalize_postal_code(raw)
    if not postal_code:
        return None

    http = session or requests
    response = http.get(POSTAL_API_URL, params={"zipcode": postal_code}, timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    payload = response.json()
    results = payload.get("results") or []
    if not results:
        logger.info("Postal code not found: %s", postal_code)
        return None

    first = results[0]
    return {
        "postal_code": postal_code,
        "prefecture": first.get("address1") or "",
        "city": (first.get("address2") or "") + (first.get("address3") or ""),
    }
