from ingestion.agents.deduplicator import (
    find_duplicate_applications,
    find_duplicate_companies,
    plan_application_deletion,
    related_counts,
)
from tools import dedup_applications, detect_duplicate_companies
from webapp import db


def test_related_counts_include_referral_sales():
    apps = [{"id": "a1"}, {"id": "a2"}]
    counts = related_counts(
        apps,
        interviews=[{"id": "i1", "application_id": "a1"}],
        referrals=[{"id": "r1", "application_id": "a2"}],
        sales=[{"id": "s1", "referral_id": "r1"}, {"id": "s2", "referral_id": "r1"}],
    )
    assert counts == {"a1": 1, "a2": 3}


def test_duplicate_applications_keep_most_related_then_oldest():
    seekers = [
        {"id": "js1", "phone": "090-1111-2222"},
        {"id": "js2", "phone": "09011112222"},
        {"id": "js3", "phone": "unknown-abc"},
    ]
    apps = [
        {"id": "a1", "job_seeker_id": "js1", "applied_at": "2025-04-01T10:00:00", "source_id": "s", "created_at": "2025-04-02"},
        {"id": "a2", "job_seeker_id": "js2", "applied_at": "2025-04-01", "source_id": "s", "created_at": "2025-04-01"},
        {"id": "a3", "job_seeker_id": "js1", "applied_at": "2025-04-01", "source_id": None, "created_at": "2025-04-01"},
        {"id": "a4", "job_seeker_id": "js3", "applied_at": "2025-04-01", "source_id": "s", "created_at": "2025-04-01"},
        {"id": "a5", "job_seeker_id": "js3", "applied_at": "2025-04-01", "source_id": "s", "created_at": "2025-04-01"},
    ]
    groups = find_duplicate_applications(apps, seekers, {"a1": 2})
    assert len(groups) == 1
    assert groups[0]["keep"]["id"] == "a1"
    assert [a["id"] for a in groups[0]["delete"]] == ["a2"]

    tie = find_duplicate_applications(apps, seekers, {})
    assert tie[0]["keep"]["id"] == "a2"


def test_deletion_plan_includes_orphan_seekers():
    apps = [
        {"id": "a1", "job_seeker_id": "js1"},
        {"id": "a2", "job_seeker_id": "js2"},
    ]
    plan = plan_application_deletion(
        ["a2"],
        apps,
        [{"id": "js1"}, {"id": "js2"}],
        [{"id": "i1", "application_id": "a2"}],
        [{"id": "r1", "application_id": "a2"}],
        [{"id": "s1", "referral_id": "r1"}],
    )
    assert plan == {
        "sales": ["s1"],
        "referrals": ["r1"],
        "interviews": ["i1"],
        "applications": ["a2"],
        "job_seekers": ["js2"],
    }


def test_duplicate_companies_exact_and_prefix():
    companies = [
        {"id": "c1", "name": "株式会社ABC", "job_count": 0, "created_at": "2024-01-01"},
        {"id": "c2", "name": "ABC（株）", "job_count": 3, "created_at": "2025-01-01"},
        {"id": "c3", "name": "テック", "job_count": 0, "created_at": "2024-01-01"},
        {"id": "c4", "name": "テックサービス", "job_count": 1, "created_at": "2024-01-01"},
    ]
    exact, prefix = find_duplicate_companies(companies)
    assert len(exact) == 1
    assert exact[0]["master"]["id"] == "c2"
    assert [c["id"] for c in exact[0]["duplicates"]] == ["c1"]
    assert len(prefix) == 1
    assert {c["id"] for c in prefix[0]["companies"]} == {"c3", "c4"}


def _application(tenant_id, seeker_id, applied_at, created_at):
    return db.insert_row(
        "applications",
        {
            "tenant_id": tenant_id,
            "job_seeker_id": seeker_id,
            "applied_at": applied_at,
            "application_status": "new",
            "created_at": created_at,
        },
    )


def test_dedup_applications_dry_run_then_merge(database, tmp_path):
    seeker = db.insert_row("job_seekers", {"tenant_id": database, "name": "山田", "phone": "09011112222"})
    keep = _application(database, seeker["id"], "2025-04-01", "2025-04-01T00:00:00")
    drop = _application(database, seeker["id"], "2025-04-01", "2025-04-02T00:00:00")
    db.insert_row(
        "interviews",
        {"tenant_id": database, "application_id": drop["id"], "scheduled_at": "2025-04-03"},
    )
    db.insert_row(
        "interviews",
        {"tenant_id": database, "application_id": keep["id"], "scheduled_at": "2025-04-03"},
    )
    db.insert_row(
        "interviews",
        {"tenant_id": database, "application_id": keep["id"], "scheduled_at": "2025-04-04"},
    )

    report = tmp_path / "dup.csv"
    summary = dedup_applications.run(merge=False, report_path=str(report))
    assert summary["groups"] == 1
    assert summary["plan"]["applications"] == [drop["id"]]
    assert db.count_rows("applications") == 2
    assert report.exists()

    summary = dedup_applications.run(merge=True)
    assert summary["deleted"]["applications"] == 1
    assert db.get_row("applications", keep["id"])
    assert db.get_row("applications", drop["id"]) is None
    assert db.count_rows("interviews") == 2
    assert db.count_rows("job_seekers") == 1


def test_detect_duplicate_companies_merge_moves_jobs(database):
    master = db.insert_row("companies", {"tenant_id": database, "name": "株式会社ABC"})
    duplicate = db.insert_row("companies", {"tenant_id": database, "name": "ABC"})
    job = db.insert_row("jobs", {"tenant_id": database, "company_id": master["id"], "title": "製造"})
    moved_job = db.insert_row("jobs", {"tenant_id": database, "company_id": duplicate["id"], "title": "軽作業"})
    db.insert_row("jobs", {"tenant_id": database, "company_id": master["id"], "title": "検品"})

    dry = detect_duplicate_companies.run(merge=False)
    assert len(dry["exact"]) == 1
    assert db.get_row("jobs", moved_job["id"])["company_id"] == duplicate["id"]

    summary = detect_duplicate_companies.run(merge=True)
    assert summary["merged"] == 1
    assert summary["jobs_moved"] == 1
    assert db.get_row("jobs", moved_job["id"])["company_id"] == master["id"]
    assert db.get_row("jobs", job["id"])["company_id"] == master["id"]
    merged = db.get_row("companies", duplicate["id"])
    assert merged["is_active"] == 0
    assert merged["notes"].startswith("[統合済み]")
