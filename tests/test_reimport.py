from datetime import date

from conftest import sheet_row

from ingestion.main import run_reimport
from webapp import db


def _rows():
    return [
        sheet_row(
            DATE="2025/4/1", PHONE="090-1111-2222", NAME="山田太郎", SOURCE="Indeed",
            INQUIRY_STATUS="有効", AU="2025", AV="4", AZ="済み", AY="2025/4/3",
            BB="佐藤", BF="繋ぎ", BL="A社", BO="製造", BN="採用", BJ="4/20",
            CF="5/1", BX="100,000", CG="100,000",
        ),
        sheet_row(DATE="2025/4/2", PHONE="080-3333-4444", NAME="鈴木花子", SOURCE="タウンワーク", AZ="流れ", AU="2025", AV="4"),
        sheet_row(DATE="2025/4/5", NAME="電話なし", BF="繋ぎ", AU="2025", AV="4"),
        sheet_row(SOURCE="Indeed"),
    ]


def test_reimport_dry_run_writes_nothing(database, make_sheet):
    summary = run_reimport(make_sheet(_rows()), apply=False)
    assert summary["rows"] == 4
    assert summary["applied"] is False
    assert summary["sheet_counts"]["interviews"] == {"2025-04": 1}
    assert summary["sheet_counts"]["referrals"] == {"2025-04": 2}
    assert db.count_rows("applications") == 0


def test_reimport_apply_builds_all_tables(database, make_sheet):
    db.insert_row("users", {"tenant_id": database, "email": "sato@example.com", "name": "佐藤一郎"})
    existing = db.insert_row("job_seekers", {"tenant_id": database, "name": "山田太郎", "phone": "09011112222"})
    stale = db.insert_row("applications", {"tenant_id": database, "job_seeker_id": existing["id"], "applied_at": "2024-01-01"})

    summary = run_reimport(make_sheet(_rows()), apply=True, today=date(2025, 6, 1))

    assert db.get_row("applications", stale["id"]) is None
    assert summary["new_job_seekers"] == 2
    assert summary["inserted"]["applications"] == {"success": 3, "errors": 0}
    assert db.count_rows("job_seekers") == 3

    apps = {a["job_seeker_id"]: a for a in db.fetch_all_rows("applications")}
    yamada = apps[existing["id"]]
    assert yamada["application_status"] == "valid"
    assert yamada["progress_status"] == "referred"
    assert yamada["coordinator_id"] is not None
    assert yamada["tenant_id"] == database

    sources = {s["name"] for s in db.fetch_all_rows("sources")}
    assert sources == {"Indeed", "タウンワーク"}
    companies = {c["name"] for c in db.fetch_all_rows("companies")}
    assert companies == {"A社", "未定"}

    referrals = db.fetch_all_rows("referrals")
    assert len(referrals) == 2
    jobs = {j["id"]: j for j in db.fetch_all_rows("jobs")}
    assert sorted(jobs[r["job_id"]]["title"] for r in referrals) == ["未定", "製造"]

    interviews = db.fetch_all_rows("interviews")
    assert len(interviews) == 2
    assert sum(1 for i in interviews if i["conducted_at"]) == 1

    sales = db.fetch_all_rows("sales")
    assert sorted(s["status"] for s in sales) == ["confirmed", "expected"]

    counts = summary["db_counts"]
    assert counts["interviews"] == {"2025-04": 1}
    assert counts["hired"] == {"2025-04": 1}
    assert counts["work_month"]["prospect"] == {"2025-05": 1}
    assert counts["work_month"]["working"] == {"2025-05": 1}


def test_reimport_is_repeatable(database, make_sheet):
    path = make_sheet(_rows())
    run_reimport(path, apply=True)
    run_reimport(path, apply=True)
    assert db.count_rows("applications") == 3
    assert db.count_rows("companies") == 2
    assert db.count_rows("jobs") == 2
    # Phone-less rows get a new placeholder seeker on every run
    assert db.count_rows("job_seekers") == 4
