"""Back-office web API and UI for the staffing agency.

Covers:
- CRUD for companies, jobs, job seekers, applications, contact logs,
  interviews, referrals, sales, payments, users and sources
- Referral / sale status workflow
- CSV import of jobs and job seekers (with template download)
- Dashboard, reports and monthly legal ledgers

Run (dev):
  uvicorn webapp.main:app --reload --port 8000

Notes:
- BACKOFFICE_DB selects the SQLite file (see webapp/db.py)
- ANTHROPIC_API_KEY is only needed for AI header-mapping suggestions
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from fastapi import Body, FastAPI, File, Form, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.requests import Request

from ingestion.agents.column_mapper import apply_mapping, create_column_mapping
from ingestion.config.standard_schema import TARGETS
from ingestion.utils.csv_reader import decode_bytes, parse_dict_rows
from webapp import db, reports, services
from webapp.formatting import calculate_age, calculate_bmi, format_currency, format_phone
from webapp.labels import (
    APPLICATION_STATUS_LABELS,
    CONTACT_RESULT_LABELS,
    EMPLOYMENT_STATUS_LABELS,
    FEE_TYPE_LABELS,
    GENDER_LABELS,
    INTERVIEW_RESULT_LABELS,
    PROGRESS_STATUS_LABELS,
    REFERRAL_STATUS_LABELS,
    SALE_STATUS_LABELS,
    USER_ROLE_LABELS,
)
from webapp.postal import lookup_postal_code

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
STATIC_DIR = Path(__file__).resolve().parent / "static"
CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
MAX_LIST_LIMIT = 1000

logger = logging.getLogger(__name__)

app = FastAPI(title="Staffing Back Office", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if STATIC_DIR.exists():
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["currency"] = format_currency
templates.env.filters["phone"] = format_phone


def error(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def not_found(what: str) -> JSONResponse:
    return error(f"{what} not found", status_code=404)


def csv_download(text: str, filename: str) -> Response:
    """CSV response; the (Japanese) filename goes in the RFC 5987 form."""
    return Response(
        content=text.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


def _write(action, what: str):
    """Run a write and translate validation/constraint failures into 400s."""
    try:
        return action()
    except (ValueError, sqlite3.IntegrityError) as exc:
        return error(f"Failed to save {what}: {exc}")
    except LookupError as exc:
        return error(str(exc), status_code=404)


# ---------------------------------------------------------------------------
# Generic CRUD
# ---------------------------------------------------------------------------

def register_crud(path: str, table: str, order_by: str = "created_at", ops=("list", "get", "create", "update", "delete")):
    """Register the plain JSON CRUD routes of one table under /api/<path>."""
    label = table[:-3] + "y" if table.endswith("ies") else table[:-1]

    if "list" in ops:
        @app.get(f"/api/{path}", name=f"list_{table}")
        def list_items(request: Request, limit: int = 100, offset: int = 0):
            columns = db.table_columns(table)
            where = {k: v for k, v in request.query_params.items() if k in columns}
            rows = db.list_rows(
                table,
                where=where,
                order_by=order_by,
                descending=True,
                limit=min(max(limit, 1), MAX_LIST_LIMIT),
                offset=max(offset, 0),
            )
            return JSONResponse({"items": rows, "total": db.count_rows(table, where)})

    if "get" in ops:
        @app.get(f"/api/{path}/{{item_id}}", name=f"get_{table}")
        def get_item(item_id: str):
            row = db.get_row(table, item_id)
            if not row:
                return not_found(label)
            return JSONResponse(row)

    if "create" in ops:
        @app.post(f"/api/{path}", name=f"create_{table}")
        def create_item(payload: Dict[str, Any] = Body(...)):
            if "tenant_id" in db.table_columns(table) and not payload.get("tenant_id"):
                payload["tenant_id"] = db.first_tenant_id()
            result = _write(lambda: db.insert_row(table, payload), label)
            if isinstance(result, Response):
                return result
            return JSONResponse(result, status_code=201)

    if "update" in ops:
        @app.patch(f"/api/{path}/{{item_id}}", name=f"update_{table}")
        def update_item(item_id: str, payload: Dict[str, Any] = Body(...)):
            result = _write(lambda: db.update_row(table, item_id, payload), label)
            if isinstance(result, Response):
                return result
            if result is None:
                return not_found(label)
            return JSONResponse(result)

    if "delete" in ops:
        @app.delete(f"/api/{path}/{{item_id}}", name=f"delete_{table}")
        def delete_item(item_id: str):
            result = _write(lambda: db.delete_rows(table, [item_id]), label)
            if isinstance(result, Response):
                return result
            if not result:
                return not_found(label)
            return JSONResponse({"deleted": item_id})


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------

@app.get("/", response_class=HTMLResponse)
def home(request: Request):
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "request": request,
            "dashboard": reports.dashboard(),
        },
    )


@app.get("/api/health")
def health():
    return JSONResponse({"status": "ok", "database": str(db.DB_PATH)})


# ---------------------------------------------------------------------------
# Job seekers
# ---------------------------------------------------------------------------

@app.get("/api/job-seekers")
def list_job_seekers(
    page: int = 1,
    status: Optional[str] = None,
    progress_status: Optional[str] = None,
    coordinator_id: Optional[str] = None,
    source_id: Optional[str] = None,
    search: Optional[str] = None,
):
    return JSONResponse(
        services.list_job_seekers(
            page=page,
            status=status,
            progress_status=progress_status,
            coordinator_id=coordinator_id,
            source_id=source_id,
            search=search,
        )
    )


@app.get("/api/job-seekers/check-phone")
def check_phone(phone: str):
    """Look up a phone before registration."""
    existing = services.find_job_seeker_by_phone(phone)
    return JSONResponse({"exists": bool(existing), "job_seeker": existing})


@app.post("/api/job-seekers")
def register_job_seeker(payload: Dict[str, Any] = Body(...)):
    """Register a job seeker with a new application; an existing phone reuses the seeker."""
    seeker = dict(payload.get("job_seeker") or {})
    result = _write(
        lambda: services.register_job_seeker(
            seeker,
            source_id=payload.get("source_id"),
            coordinator_id=payload.get("coordinator_id"),
        ),
        "job seeker",
    )
    if isinstance(result, Response):
        return result
    return JSONResponse(result, status_code=200 if result["existing"] else 201)


@app.get("/api/job-seekers/{seeker_id}")
def job_seeker_detail(seeker_id: str):
    seeker = db.get_row("job_seekers", seeker_id)
    if not seeker:
        return not_found("job seeker")
    applications = db.list_rows(
        "applications", where={"job_seeker_id": seeker_id}, order_by="applied_at", descending=True
    )
    for application in applications:
        for table in ("contact_logs", "interviews", "referrals"):
            application[table] = db.list_rows(table, where={"application_id": application["id"]})
    return JSONResponse(
        {
            **seeker,
            "phone_display": format_phone(seeker["phone"]),
            "age": calculate_age(seeker.get("birth_date")),
            "bmi": calculate_bmi(seeker.get("height"), seeker.get("weight")),
            "applications": applications,
        }
    )


register_crud("job-seekers", "job_seekers", ops=("update", "delete"))


@app.get("/api/coordinators")
def coordinators():
    return JSONResponse(services.list_coordinators())


# ---------------------------------------------------------------------------
# Referrals and sales
# ---------------------------------------------------------------------------

@app.post("/api/referrals")
def create_referral(payload: Dict[str, Any] = Body(...)):
    result = _write(lambda: services.create_referral(payload), "referral")
    if isinstance(result, Response):
        return result
    return JSONResponse(result, status_code=201)


@app.post("/api/referrals/{referral_id}/status")
def change_referral_status(referral_id: str, payload: Dict[str, Any] = Body(...)):
    status = payload.get("status")
    if status not in REFERRAL_STATUS_LABELS:
        return error(f"Unknown referral status: {status}")
    result = services.change_referral_status(referral_id, status)
    if result is None:
        return not_found("referral")
    return JSONResponse(result)


@app.get("/api/sales")
def list_sales(
    status: Optional[str] = None,
    company_id: Optional[str] = None,
    date_range: str = Query(default="all", alias="range"),
    search: Optional[str] = None,
):
    if date_range not in services.DATE_RANGES:
        return error(f"Unknown date range: {date_range}")
    result = services.list_sales(status=status, company_id=company_id, date_range=date_range, search=search)
    result["totals_display"] = {k: format_currency(v) for k, v in result["totals"].items()}
    return JSONResponse(result)


@app.post("/api/sales/{sale_id}/status")
def change_sale_status(sale_id: str, payload: Dict[str, Any] = Body(...)):
    status = payload.get("status")
    if status not in SALE_STATUS_LABELS:
        return error(f"Unknown sale status: {status}")
    sale = services.change_sale_status(sale_id, status)
    if sale is None:
        return not_found("sale")
    return JSONResponse(sale)


register_crud("companies", "companies")
register_crud("jobs", "jobs")
register_crud("applications", "applications", order_by="applied_at")
register_crud("contact-logs", "contact_logs", order_by="contacted_at")
register_crud("interviews", "interviews", order_by="scheduled_at")
register_crud("referrals", "referrals", order_by="referred_at", ops=("list", "get", "update", "delete"))
register_crud("sales", "sales", ops=("get", "create", "update", "delete"))
register_crud("payments", "payments", order_by="paid_at")
register_crud("users", "users")
register_crud("sources", "sources")


# ---------------------------------------------------------------------------
# Postal lookup
# ---------------------------------------------------------------------------

@app.get("/api/postal/{postal_code}")
def postal_lookup(postal_code: str):
    try:
        address = lookup_postal_code(postal_code)
    except Exception as exc:
        logger.exception("Postal lookup failed for %s", postal_code)
        return error(f"Postal lookup failed: {exc}", status_code=500)
    if not address:
        return not_found("postal code")
    return JSONResponse(address)


# ---------------------------------------------------------------------------
# CSV import
# ---------------------------------------------------------------------------

def _read_upload(upload: UploadFile) -> List[Dict[str, str]]:
    data = upload.file.read()
    upload.file.close()
    return parse_dict_rows(decode_bytes(data))


@app.get("/api/import/{target}/template")
def import_template(target: str):
    if target not in TARGETS:
        return not_found("import target")
    text, filename = services.template_csv(target)
    return csv_download(text, filename)


@app.post("/api/import/{target}/suggest-mappings")
def suggest_import_mappings(target: str, payload: Dict[str, Any] = Body(...)):
    """Known header aliases plus an AI suggestion for the rest."""
    if target not in TARGETS:
        return not_found("import target")
    headers = payload.get("headers") or []
    if not headers:
        return error("No headers provided")
    try:
        mapping = create_column_mapping(
            headers, target, use_llm=bool(payload.get("use_ai", True)), sample_rows=payload.get("sample_rows")
        )
    except Exception as exc:
        logger.exception("AI mapping failed for %s", target)
        return error(f"AI mapping failed: {exc}", status_code=500)
    return JSONResponse({"target": target, "headers": headers, "suggested_mappings": mapping})


@app.post("/api/import/{target}")
def import_csv(
    target: str,
    file: UploadFile = File(...),
    duplicate_action: str = Form(default="skip"),
    mapping: str = Form(default=""),
):
    """
    Import an uploaded CSV.

    The header row is mapped with the known aliases; an explicit mapping
    (JSON object header -> column key) overrides them.
    """
    if target not in TARGETS:
        return not_found("import target")
    if duplicate_action not in services.DUPLICATE_ACTIONS:
        return error(f"Unknown duplicate action: {duplicate_action}")
    try:
        rows = _read_upload(file)
        explicit = json.loads(mapping) if mapping else {}
    except (ValueError, UnicodeDecodeError) as exc:
        return error(f"Failed to read CSV {file.filename}: {exc}")
    if not isinstance(explicit, dict):
        return error("mapping must be a JSON object of header -> column key")
    if not rows:
        return error("CSV has no data rows")

    column_mapping = create_column_mapping(list(rows[0].keys()), target)
    if explicit:
        column_mapping = {h: k for h, k in column_mapping.items() if k not in explicit.values()}
        column_mapping.update(explicit)
    records = apply_mapping(rows, column_mapping)

    if target == "jobs":
        result = services.import_jobs(records)
    else:
        result = services.import_job_seekers(records, duplicate_action=duplicate_action)
    logger.info(
        "Imported %s: success=%d skipped=%d updated=%d errors=%d",
        target, result["success"], result["skipped"], result["updated"], len(result["errors"]),
    )
    return JSONResponse({**result, "mapping": column_mapping})


# ---------------------------------------------------------------------------
# Dashboard, reports and ledgers
# ---------------------------------------------------------------------------

@app.get("/api/dashboard")
def dashboard():
    return JSONResponse(reports.dashboard())


@app.get("/api/reports/action-date")
def action_date_report():
    return JSONResponse({"months": reports.load_action_date_report()})


@app.get("/api/reports/applied")
def applied_report(period: str = "6months"):
    try:
        return JSONResponse(reports.applied_month_stats(period))
    except ValueError as exc:
        return error(str(exc))


@app.get("/api/ledgers/{kind}")
def ledger(kind: str, month: str):
    if kind not in reports.LEDGERS:
        return not_found("ledger")
    try:
        build, columns, title = reports.LEDGERS[kind]
        rows = build(month)
    except ValueError as exc:
        return error(str(exc))
    return JSONResponse({"kind": kind, "title": title, "month": month, "columns": dict(columns), "rows": rows})


@app.get("/api/ledgers/{kind}/csv")
def ledger_csv(kind: str, month: str):
    if kind not in reports.LEDGERS:
        return not_found("ledger")
    try:
        text, filename = reports.ledger_csv(kind, month)
    except ValueError as exc:
        return error(str(exc))
    return csv_download(text, filename)


@app.get("/api/labels")
def labels():
    return JSONResponse(
        {
            "application_status": APPLICATION_STATUS_LABELS,
            "progress_status": PROGRESS_STATUS_LABELS,
            "referral_status": REFERRAL_STATUS_LABELS,
            "sale_status": SALE_STATUS_LABELS,
            "user_role": USER_ROLE_LABELS,
            "employment_status": EMPLOYMENT_STATUS_LABELS,
            "contact_result": CONTACT_RESULT_LABELS,
            "interview_result": INTERVIEW_RESULT_LABELS,
            "fee_type": FEE_TYPE_LABELS,
            "gender": GENDER_LABELS,
        }
    )
