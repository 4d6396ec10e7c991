"""
Column Mapping Agent

Maps CSV import headers to standard column keys: known header variations
first, then an optional Claude suggestion for whatever is left.
"""

import json
import logging
import os
import re
from typing import Dict, List, Optional

from anthropic import Anthropic

from ..config.column_mappings import find_mapping
from ..config.standard_schema import columns_for, get_schema_description

logger = logging.getLogger(__name__)

MODEL_NAME = "claude-sonnet-4-5-20250929"
SKIP = "skip"


def map_columns(source_headers: List[str], target: str) -> Dict[str, str]:
    """
    Map headers using the known variations only.

    Args:
        source_headers: Headers of the uploaded CSV
        target: Import target ("jobs" or "job_seekers")

    Returns:
        Dictionary mapping source header -> standard column key
    """
    mapping = {}
    used = set()
    for header in source_headers:
        key = find_mapping(header, target)
        if key and key not in used:
            mapping[header] = key
            used.add(key)
    return mapping


def extract_json_mapping(text: str) -> Dict[str, str]:
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if not match:
        raise ValueError("No JSON mapping found in AI response")
    mapping = json.loads(match.group(0))
    if not isinstance(mapping, dict):
        raise ValueError("AI response mapping is not a JSON object")
    return {str(k): str(v) for k, v in mapping.items() if v is not None}


def suggest_mappings_with_llm(
    source_headers: List[str],
    target: str,
    sample_rows: Optional[List[Dict[str, str]]] = None,
    client: Optional[Anthropic] = None,
) -> Dict[str, str]:
    """
    Ask Claude to map headers to the import columns.

    Args:
        source_headers: Headers to map
        target: Import target
        sample_rows: A couple of rows for context
        client: Anthropic client (created from ANTHROPIC_API_KEY when omitted)

    Returns:
        Dictionary mapping source header -> standard column key; headers
        mapped to "skip" or to unknown keys are dropped
    """
    if client is None:
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY is not set")
        client = Anthropic(api_key=api_key)

    sample_text = "\n".join(str(row) for row in (sample_rows or [])[:2])
    prompt = (
        "Map the columns of this Japanese staffing CSV to the import columns below.\n"
        "Return ONLY a JSON object mapping each source column to a column key.\n"
        f"If a column should be skipped, map it to \"{SKIP}\".\n\n"
        f"{get_schema_description(target)}\n\n"
        f"CSV columns: {source_headers}\n\n"
        f"Sample rows:\n{sample_text}"
    )
    response = client.messages.create(
        model=MODEL_NAME,
        max_tokens=800,
        messages=[{"role": "user", "content": prompt}],
    )
    text_response = next(
        (block.text for block in response.content if hasattr(block, "text")), ""
    )
    allowed = set(columns_for(target))
    suggested = extract_json_mapping(text_response)
    return {
        header: key
        for header, key in suggested.items()
        if header in source_headers and key in allowed
    }


def create_column_mapping(
    source_headers: List[str],
    target: str,
    use_llm: bool = False,
    sample_rows: Optional[List[Dict[str, str]]] = None,
    client: Optional[Anthropic] = None,
) -> Dict[str, str]:
    """
    Create a column mapping: rule-based first, Claude for unmapped headers.

    Keys already claimed by a known header are never reassigned by the
    suggestion.
    """
    mapping = map_columns(source_headers, target)
    unmapped = [h for h in source_headers if h not in mapping]
    if not (use_llm and unmapped):
        return mapping

    used = set(mapping.values())
    added = 0
    for header, key in suggest_mappings_with_llm(unmapped, target, sample_rows, client).items():
        if key not in used:
            mapping[header] = key
            used.add(key)
            added += 1
    logger.info("AI mapping added %d column(s) for %s", added, target)
    return mapping


def apply_mapping(rows: List[Dict[str, str]], mapping: Dict[str, str]) -> List[Dict[str, str]]:
    """Re-key rows by standard column; the first non-empty source value wins."""
    records = []
    for row in rows:
        record: Dict[str, str] = {}
        for source, key in mapping.items():
            if not key or key == SKIP:
                continue
            value = (row.get(source) or "").strip()
            if value and not record.get(key):
                record[key] = value
        records.append(record)
    return records
