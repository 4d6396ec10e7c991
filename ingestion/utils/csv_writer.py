"""
CSV writing utilities for reports and import templates.

Files are written with a UTF-8 BOM so Excel on Windows opens Japanese text
correctly.
"""

import csv
import io
import os
import tempfile
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Sequence

BOM = "\ufeff"


def render_csv(rows: List[Dict[str, object]], fieldnames: Sequence[str], headers: Sequence[str] = None, bom: bool = True) -> str:
    """
    Render rows as CSV text.

    Args:
        rows: Dictionaries keyed by fieldname
        fieldnames: Keys to write, in order
        headers: Header labels (default: the fieldnames)
        bom: Prefix a UTF-8 BOM

    Returns:
        CSV text
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(list(headers or fieldnames))
    for row in rows:
        writer.writerow(["" if row.get(field) is None else row.get(field) for field in fieldnames])
    text = buffer.getvalue()
    return BOM + text if bom else text


def write_csv(file_path: str, rows: List[Dict[str, object]], fieldnames: List[str], max_retries: int = 3) -> Path:
    """
    Write report rows to a CSV file with atomic write and retry logic.

    The file is written to a temp file and renamed into place. A target
    locked by another program (Excel) is retried with backoff; after the
    last retry the report goes to a timestamped sibling file instead.

    Args:
        file_path: Path to output CSV file
        rows: List of dictionaries to write
        fieldnames: Column names in order
        max_retries: Maximum number of rename attempts (default: 3)

    Returns:
        Path actually written
    """
    output_path = Path(file_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path = tempfile.mkstemp(suffix=".csv.tmp", dir=output_path.parent, text=True)
    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8", newline="") as f:
            f.write(render_csv(rows, fieldnames))

        last_error = None
        for attempt in range(max_retries):
            try:
                os.replace(temp_path, str(output_path))
                return output_path
            except PermissionError as e:
                last_error = e
                if attempt < max_retries - 1:
                    time.sleep(0.1 * (2 ** attempt))

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        fallback_path = output_path.parent / f"{output_path.stem}_{timestamp}{output_path.suffix}"
        os.replace(temp_path, str(fallback_path))
        print(f"\nWARNING: Could not write to {output_path.name} (file locked by another process)")
        print(f"    Wrote to fallback file instead: {fallback_path.name}")
        print(f"    Original error: {last_error}\n")
        return fallback_path
    except Exception:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise
