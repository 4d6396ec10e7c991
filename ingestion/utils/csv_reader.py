"""
CSV reading utilities with encoding detection and error handling.

Sheet exports come from Google Sheets (UTF-8, sometimes with a BOM) or from
Excel on Windows (cp932), so every reader tries the detected encoding first
and then a fixed list of fallbacks.
"""

import csv
import io
from pathlib import Path
from typing import Dict, List, Optional, Union

import chardet

from ..config.sheet_columns import HEADER_ROWS

PathLike = Union[str, Path]

FALLBACK_ENCODINGS = ["utf-8-sig", "utf-8", "cp932", "shift_jis"]


def detect_encoding(file_path: PathLike) -> str:
    """
    Detect the encoding of a CSV file.

    Args:
        file_path: Path to the CSV file

    Returns:
        Detected encoding (default: 'utf-8')
    """
    try:
        with open(file_path, 'rb') as f:
            raw_data = f.read(10000)  # Read first 10KB
    except OSError:
        return 'utf-8'
    result = chardet.detect(raw_data)
    return result.get('encoding') or 'utf-8'


def _encodings_for(file_path: PathLike, encoding: Optional[str]) -> List[str]:
    # Strict UTF-8 first; it rejects cp932 input.
    if encoding:
        ordered = [encoding] + FALLBACK_ENCODINGS
    else:
        ordered = ["utf-8-sig", detect_encoding(file_path)] + FALLBACK_ENCODINGS
    seen = []
    for enc in ordered:
        if enc and enc.lower() not in [s.lower() for s in seen]:
            seen.append(enc)
    return seen


def decode_bytes(data: bytes) -> str:
    """Decode uploaded CSV bytes using detection plus the fallback list."""
    detected = chardet.detect(data[:10000]).get('encoding')
    for enc in ["utf-8-sig"] + ([detected] if detected else []) + FALLBACK_ENCODINGS:
        try:
            return data.decode(enc)
        except (UnicodeDecodeError, LookupError):
            continue
    raise ValueError("Could not decode CSV data with any encoding")


def read_rows(file_path: PathLike, encoding: Optional[str] = None) -> List[List[str]]:
    """
    Read a CSV file as raw rows (lists of cells), header included.

    Args:
        file_path: Path to the CSV file
        encoding: Optional encoding (auto-detected if not provided)

    Returns:
        List of rows
    """
    for enc in _encodings_for(file_path, encoding):
        try:
            with open(file_path, 'r', encoding=enc, newline='') as f:
                text = f.read()
        except (UnicodeDecodeError, LookupError):
            continue
        if text.startswith('\ufeff'):
            text = text[1:]
        try:
            return list(csv.reader(io.StringIO(text)))
        except csv.Error:
            continue

    raise ValueError(f"Could not read CSV file {file_path} with any encoding")


def read_sheet_rows(file_path: PathLike, skip_rows: int = HEADER_ROWS) -> List[List[str]]:
    """
    Read the application sheet export.

    Skips the summary and header rows and drops blank lines; cells are
    addressed positionally afterwards.

    Args:
        file_path: Path to the sheet CSV
        skip_rows: Leading rows to drop (default: 2)

    Returns:
        Data rows with stripped cells
    """
    rows = read_rows(file_path)[skip_rows:]
    data_rows = []
    for row in rows:
        cells = [c.strip() for c in row]
        if not any(cells):
            continue
        data_rows.append(cells)
    return data_rows


def parse_dict_rows(text: str) -> List[Dict[str, str]]:
    """Parse CSV text with a header line into stripped dict rows."""
    if text.startswith('\ufeff'):
        text = text[1:]
    reader = csv.DictReader(io.StringIO(text))
    cleaned_rows = []
    for row in reader:
        cleaned_row = {
            k.strip(): (v.strip() if v else '')
            for k, v in row.items()
            if k is not None
        }
        if any(cleaned_row.values()):
            cleaned_rows.append(cleaned_row)
    return cleaned_rows


def get_csv_headers(file_path: PathLike, header_row: int = 0) -> List[str]:
    """
    Get column headers from a CSV file.

    Args:
        file_path: Path to the CSV file
        header_row: 0-based index of the header line (the sheet export uses 1)

    Returns:
        List of column names
    """
    rows = read_rows(file_path)
    if len(rows) <= header_row:
        return []
    return [col.strip() for col in rows[header_row]]


def get_sample_rows(file_path: PathLike, num_rows: int = 3) -> List[List[str]]:
    """
    Get a sample of sheet data rows for analysis.

    Args:
        file_path: Path to the sheet CSV
        num_rows: Number of sample rows to return

    Returns:
        List of sample rows
    """
    return read_sheet_rows(file_path)[:num_rows]
