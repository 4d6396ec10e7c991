import csv
import os
import tempfile
from pathlib import Path

import pytest

_SESSION_DIR = Path(tempfile.mkdtemp(prefix="backoffice-tests-"))
os.environ.setdefault("BACKOFFICE_DB", str(_SESSION_DIR / "session.db"))
os.environ.setdefault("BACKOFFICE_LOG", str(_SESSION_DIR / "db_errors.log"))

from database.migrate import seed_tenant  # noqa: E402
from ingestion.config.sheet_columns import COL, HEADER_ROWS  # noqa: E402
from webapp import db  # noqa: E402

SHEET_WIDTH = max(COL.values()) + 1


@pytest.fixture
def database(tmp_path):
    """Fresh database with one tenant; returns the tenant id."""
    db.use_database(tmp_path / "test.db")
    seed_tenant(db.DB_PATH, "Rion", "main")
    return db.first_tenant_id()


def sheet_row(**cells):
    """A sheet row with the given COL keys filled in."""
    row = [""] * SHEET_WIDTH
    for key, value in cells.items():
        row[COL[key]] = value
    return row


def write_sheet(path: Path, rows):
    """Write a sheet export: summary and header rows, then the data rows."""
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        for _ in range(HEADER_ROWS):
            writer.writerow([""] * SHEET_WIDTH)
        writer.writerows(rows)
    return path


@pytest.fixture
def make_sheet(tmp_path):
    def _make(rows, name="sheet.csv"):
        return write_sheet(tmp_path / name, rows)

    return _make
