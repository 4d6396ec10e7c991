"""SQLite persistence layer for the back-office tables."""
import logging
import os
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from dotenv import load_dotenv

from database.migrate import SCHEMA_PATH, apply_sql

REPO_ROOT = Path(__file__).resolve().parents[1]

load_dotenv(REPO_ROOT / ".env.local", override=False)
load_dotenv(REPO_ROOT / ".env", override=False)

DB_PATH = Path(os.environ.get("BACKOFFICE_DB") or REPO_ROOT / "backoffice.db")
LOG_PATH = Path(os.environ.get("BACKOFFICE_LOG") or REPO_ROOT / "runs" / "db_errors.log")
LOG_PATH.parent.mkdir(parents=True, exist_ok=True)

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.FileHandler(str(LOG_PATH), encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

PAGE_SIZE = 1000
INSERT_BATCH_SIZE = 200
DELETE_CHUNK_SIZE = 100

TABLES = (
    "tenants",
    "users",
    "sources",
    "job_seekers",
    "applications",
    "companies",
    "jobs",
    "referrals",
    "contact_logs",
    "interviews",
    "sales",
    "payments",
)

_columns_cache: Dict[str, List[str]] = {}


def now_iso() -> str:
    return datetime.now().strftime("%Y-%m-%dT%H:%M:%S")


def use_database(db_path: Path) -> None:
    """Point the module at another database file and make sure its schema exists."""
    global DB_PATH
    DB_PATH = Path(db_path).expanduser().resolve()
    _columns_cache.clear()
    init_db()


def get_connection():
    """Get database connection"""
    conn = sqlite3.connect(str(DB_PATH))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db():
    """Initialize database schema"""
    apply_sql(SCHEMA_PATH, DB_PATH)


def table_columns(table: str) -> List[str]:
    """Column names of a table, in schema order."""
    if table not in TABLES:
        raise ValueError(f"Unknown table: {table}")
    if table not in _columns_cache:
        conn = get_connection()
        try:
            rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
            _columns_cache[table] = [row["name"] for row in rows]
        finally:
            conn.close()
    return _columns_cache[table]


def _clean_payload(table: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    columns = table_columns(table)
    unknown = [key for key in payload if key not in columns]
    if unknown:
        raise ValueError(f"Unknown column(s) for {table}: {', '.join(unknown)}")
    return {key: _to_sql(value) for key, value in payload.items()}


def _to_sql(value: Any) -> Any:
    if isinstance(value, bool):
        return 1 if value else 0
    return value


def _prepare_insert(table: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    row = _clean_payload(table, payload)
    if not row.get("id"):
        row["id"] = str(uuid.uuid4())
    return row


def query(sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
    """Run a read-only statement and return rows as dicts."""
    conn = get_connection()
    try:
        return [dict(row) for row in conn.execute(sql, tuple(params)).fetchall()]
    finally:
        conn.close()


def insert_row(table: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Insert one row and return it as stored."""
    row = _prepare_insert(table, payload)
    columns = list(row.keys())
    placeholders = ", ".join("?" for _ in columns)
    conn = get_connection()
    try:
        conn.execute(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
            [row[col] for col in columns],
        )
        conn.commit()
    except Exception:
        logger.exception("Failed to insert into %s id=%s", table, row["id"])
        conn.rollback()
        raise
    finally:
        conn.close()
    return get_row(table, row["id"]) or row


def update_row(table: str, row_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Update one row by id. Returns the updated row, or None when it does not exist."""
    changes = _clean_payload(table, updates)
    changes.pop("id", None)
    if "updated_at" in table_columns(table):
        changes["updated_at"] = now_iso()
    if not changes:
        return get_row(table, row_id)
    assignments = ", ".join(f"{col} = ?" for col in changes)
    conn = get_connection()
    try:
        cursor = conn.execute(
            f"UPDATE {table} SET {assignments} WHERE id = ?",
            [*changes.values(), row_id],
        )
        conn.commit()
        if cursor.rowcount == 0:
            return None
    except Exception:
        logger.exception("Failed to update %s id=%s", table, row_id)
        conn.rollback()
        raise
    finally:
        conn.close()
    return get_row(table, row_id)


def get_row(table: str, row_id: str) -> Optional[Dict[str, Any]]:
    """Fetch a row by ID."""
    table_columns(table)
    conn = get_connection()
    try:
        row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,)).fetchone()
        if not row:
            return None
        return dict(row)
    finally:
        conn.close()


def list_rows(
    table: str,
    where: Optional[Dict[str, Any]] = None,
    order_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    """List rows matching simple equality filters (None matches NULL)."""
    columns = table_columns(table)
    clauses: List[str] = []
    params: List[Any] = []
    for key, value in (where or {}).items():
        if key not in columns:
            raise ValueError(f"Unknown column for {table}: {key}")
        if value is None:
            clauses.append(f"{key} IS NULL")
        else:
            clauses.append(f"{key} = ?")
            params.append(_to_sql(value))
    sql = f"SELECT * FROM {table}"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    if order_by:
        if order_by not in columns:
            raise ValueError(f"Unknown column for {table}: {order_by}")
        sql += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}"
    if limit is not None:
        sql += " LIMIT ? OFFSET ?"
        params.extend([limit, offset])
    return query(sql, params)


def count_rows(table: str, where: Optional[Dict[str, Any]] = None) -> int:
    columns = table_columns(table)
    clauses = []
    params: List[Any] = []
    for key, value in (where or {}).items():
        if key not in columns:
            raise ValueError(f"Unknown column for {table}: {key}")
        clauses.append(f"{key} = ?")
        params.append(_to_sql(value))
    sql = f"SELECT COUNT(*) AS n FROM {table}"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    return query(sql, params)[0]["n"]


def fetch_all_rows(table: str, columns: str = "*", page_size: int = PAGE_SIZE) -> List[Dict[str, Any]]:
    """Read a whole table page by page (LIMIT/OFFSET ordered by rowid)."""
    table_columns(table)
    rows: List[Dict[str, Any]] = []
    offset = 0
    while True:
        page = query(
            f"SELECT {columns} FROM {table} ORDER BY rowid LIMIT ? OFFSET ?",
            (page_size, offset),
        )
        if not page:
            break
        rows.extend(page)
        offset += len(page)
        if len(page) < page_size:
            break
    return rows


def delete_rows(table: str, ids: Iterable[str]) -> int:
    """Delete rows by id in a single transaction."""
    table_columns(table)
    id_list = list(ids)
    if not id_list:
        return 0
    placeholders = ", ".join("?" for _ in id_list)
    conn = get_connection()
    try:
        cursor = conn.execute(f"DELETE FROM {table} WHERE id IN ({placeholders})", id_list)
        conn.commit()
        return cursor.rowcount
    except Exception:
        logger.exception("Failed to delete %d row(s) from %s", len(id_list), table)
        conn.rollback()
        raise
    finally:
        conn.close()


def batch_delete(
    table: str,
    ids: Sequence[str],
    chunk_size: int = DELETE_CHUNK_SIZE,
    progress: Optional[Callable[[int, int], None]] = None,
) -> int:
    """Delete ids in chunks; returns the number of rows removed."""
    deleted = 0
    for start in range(0, len(ids), chunk_size):
        deleted += delete_rows(table, ids[start:start + chunk_size])
        if progress:
            progress(min(start + chunk_size, len(ids)), len(ids))
    return deleted


def delete_all(table: str, chunk_size: int = 500) -> int:
    """Empty a table chunk by chunk."""
    total = 0
    while True:
        ids = [row["id"] for row in query(f"SELECT id FROM {table} LIMIT ?", (chunk_size,))]
        if not ids:
            break
        total += delete_rows(table, ids)
    return total


def batch_insert(
    table: str,
    rows: List[Dict[str, Any]],
    batch_size: int = INSERT_BATCH_SIZE,
    progress: Optional[Callable[[int, int], None]] = None,
) -> Tuple[int, int]:
    """Insert rows in batches; a failing batch is retried row by row.

    Returns:
        (success, errors)
    """
    success = 0
    errors = 0
    for start in range(0, len(rows), batch_size):
        batch = [_prepare_insert(table, row) for row in rows[start:start + batch_size]]
        columns: List[str] = []
        for row in batch:
            for col in row:
                if col not in columns:
                    columns.append(col)
        sql = (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )
        conn = get_connection()
        try:
            try:
                conn.executemany(sql, [[row.get(col) for col in columns] for row in batch])
                conn.commit()
                success += len(batch)
            except sqlite3.Error as exc:
                conn.rollback()
                logger.warning("Batch insert into %s failed, retrying rows: %s", table, exc)
                for row in batch:
                    try:
                        conn.execute(sql, [row.get(col) for col in columns])
                        conn.commit()
                        success += 1
                    except sqlite3.Error:
                        conn.rollback()
                        logger.exception("Failed to insert into %s id=%s", table, row["id"])
                        errors += 1
        finally:
            conn.close()
        if progress:
            progress(success + errors, len(rows))
    return success, errors


def first_tenant_id() -> Optional[str]:
    rows = query("SELECT id FROM tenants ORDER BY created_at LIMIT 1")
    return rows[0]["id"] if rows else None


init_db()
