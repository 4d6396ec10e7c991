import argparse
import os
import sqlite3
import uuid
from pathlib import Path

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


def apply_sql(sql_path: Path, db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    try:
        conn.execute("PRAGMA foreign_keys = ON")
        conn.executescript(sql_path.read_text(encoding="utf-8"))
        conn.commit()
    finally:
        conn.close()


def seed_tenant(db_path: Path, name: str, code: str) -> None:
    """Insert the main tenant unless one with the same code exists."""
    conn = sqlite3.connect(str(db_path))
    try:
        conn.execute(
            "INSERT OR IGNORE INTO tenants (id, name, code) VALUES (?, ?, ?)",
            (str(uuid.uuid4()), name, code),
        )
        conn.commit()
    finally:
        conn.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Apply the back-office schema to a SQLite database")
    parser.add_argument(
        "--sql",
        default=str(SCHEMA_PATH),
        help="Path to SQL schema file (default: database/schema.sql)",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database (default: BACKOFFICE_DB or backoffice.db)",
    )
    parser.add_argument("--tenant-name", default=None, help="Create the main tenant with this name")
    parser.add_argument("--tenant-code", default="main", help="Tenant code used with --tenant-name")
    args = parser.parse_args()

    sql_path = Path(args.sql).expanduser().resolve()
    if not sql_path.exists():
        raise FileNotFoundError(f"SQL file not found: {sql_path}")

    target = args.db or os.environ.get("BACKOFFICE_DB") or Path(__file__).resolve().parents[1] / "backoffice.db"
    db_path = Path(target).expanduser().resolve()

    apply_sql(sql_path, db_path)
    if args.tenant_name:
        seed_tenant(db_path, args.tenant_name, args.tenant_code)
    print(f"[OK] Schema applied: {db_path}")


if __name__ == "__main__":
    main()
