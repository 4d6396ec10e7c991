import json
from datetime import date
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

from webapp import db, main, services
from webapp.postal import lookup_postal_code, normalize_postal_code


@pytest.fixture
def client(database):
    return TestClient(main.app)


def _company_and_job(client, fee_amount=150000):
    company = client.post("/api/companies", json={"name": "A社"}).json()
    job = client.post(
        "/api/jobs",
        json={"company_id": company["id"], "title": "製造スタッフ", "fee_type": "fixed", "fee_amount": fee_amount},
    ).json()
    return company, job


def _register(client, name="山田太郎", phone="090-1111-2222"):
    return client.post("/api/job-seekers", json={"job_seeker": {"name": name, "phone": phone}})


def test_health_labels_and_home(client):
    assert client.get("/api/health").json()["status"] == "ok"
    labels = client.get("/api/labels").json()
    assert labels["referral_status"]["hired"] == "採用"
    page = client.get("/")
    assert page.status_code == 200
    assert "今月の新規応募" in page.text


def test_crud_routes(client, database):
    created = client.post("/api/companies", json={"name": "A社", "phone": "0521234567"})
    assert created.status_code == 201
    company = created.json()
    assert company["tenant_id"] == database

    assert client.get(f"/api/companies/{company['id']}").json()["name"] == "A社"
    assert client.get("/api/companies?name=A社").json()["total"] == 1
    assert client.get("/api/companies?name=B社").json()["total"] == 0

    updated = client.patch(f"/api/companies/{company['id']}", json={"contact_person": "佐藤"})
    assert updated.json()["contact_person"] == "佐藤"
    assert client.patch(f"/api/companies/{company['id']}", json={"bogus": 1}).status_code == 400
    assert client.patch("/api/companies/missing", json={"name": "x"}).status_code == 404

    assert client.delete(f"/api/companies/{company['id']}").json() == {"deleted": company["id"]}
    assert client.get(f"/api/companies/{company['id']}").status_code == 404
    assert client.delete(f"/api/companies/{company['id']}").status_code == 404


def test_register_job_seeker_reuses_phone(client):
    first = _register(client)
    assert first.status_code == 201
    assert first.json()["existing"] is False

    second = _register(client, phone="09011112222")
    assert second.status_code == 200
    assert second.json()["job_seeker"]["id"] == first.json()["job_seeker"]["id"]
    assert db.count_rows("job_seekers") == 1
    assert db.count_rows("applications") == 2

    assert _register(client, phone="").status_code == 400

    check = client.get("/api/job-seekers/check-phone", params={"phone": "090 1111 2222"}).json()
    assert check["exists"] is True
    assert len(check["job_seeker"]["applications"]) == 2
    assert client.get("/api/job-seekers/check-phone", params={"phone": "000"}).json()["exists"] is False

    listing = client.get("/api/job-seekers", params={"search": "山田"}).json()
    assert listing["total"] == 2
    assert listing["pages"] == 1
    assert client.get("/api/job-seekers", params={"status": "valid"}).json()["total"] == 0

    seeker_id = first.json()["job_seeker"]["id"]
    detail = client.get(f"/api/job-seekers/{seeker_id}").json()
    assert detail["phone_display"] == "090-1111-2222"
    assert len(detail["applications"]) == 2
    assert detail["applications"][0]["referrals"] == []
    assert client.get("/api/job-seekers/missing").status_code == 404


def test_coordinators_exclude_admin_department(client, database):
    db.insert_row("users", {"tenant_id": database, "email": "a@example.com", "name": "佐藤", "department": "営業部"})
    db.insert_row("users", {"tenant_id": database, "email": "b@example.com", "name": "管理者", "department": "管理部"})
    db.insert_row("users", {"tenant_id": database, "email": "c@example.com", "name": "鈴木"})
    names = [u["name"] for u in client.get("/api/coordinators").json()]
    assert sorted(names) == ["佐藤", "鈴木"]


def test_referral_hire_and_payment_flow(client):
    company, job = _company_and_job(client)
    registered = _register(client).json()
    application_id = registered["application"]["id"]

    missing = client.post("/api/referrals", json={"application_id": "nope", "job_id": job["id"]})
    assert missing.status_code == 404

    referral = client.post("/api/referrals", json={"application_id": application_id, "job_id": job["id"]})
    assert referral.status_code == 201
    referral = referral.json()
    assert referral["referral_status"] == "referred"
    assert db.get_row("applications", application_id)["progress_status"] == "referred"

    assert client.post(f"/api/referrals/{referral['id']}/status", json={"status": "bogus"}).status_code == 400
    assert client.post("/api/referrals/missing/status", json={"status": "hired"}).status_code == 404

    hired = client.post(f"/api/referrals/{referral['id']}/status", json={"status": "hired"}).json()
    assert hired["referral"]["hired_at"]
    sale = hired["sale"]
    assert sale["status"] == "expected"
    assert sale["amount"] == 150000
    assert db.get_row("applications", application_id)["progress_status"] == "hired"

    again = client.post(f"/api/referrals/{referral['id']}/status", json={"status": "hired"}).json()
    assert again["sale"] is None
    assert again["referral"]["hired_at"] == hired["referral"]["hired_at"]
    assert db.count_rows("sales") == 1

    paid = client.post(f"/api/sales/{sale['id']}/status", json={"status": "paid"}).json()
    assert paid["status"] == "paid"
    assert paid["paid_date"]
    assert db.get_row("applications", application_id)["progress_status"] == "full_paid"
    assert client.post(f"/api/sales/{sale['id']}/status", json={"status": "lost"}).status_code == 400

    sales = client.get("/api/sales").json()
    assert [s["company_name"] for s in sales["sales"]] == ["A社"]
    assert sales["totals"]["paid"] == 150000
    assert sales["totals_display"]["paid"] == "¥150,000"
    assert client.get("/api/sales", params={"search": "別人"}).json()["sales"] == []
    assert client.get("/api/sales", params={"company_id": company["id"], "status": "paid"}).json()["totals"]["total"] == 150000
    assert client.get("/api/sales", params={"range": "someday"}).status_code == 400


def test_hire_without_fee_creates_no_sale(client):
    _, job = _company_and_job(client, fee_amount=None)
    application_id = _register(client).json()["application"]["id"]
    referral = client.post("/api/referrals", json={"application_id": application_id, "job_id": job["id"]}).json()
    hired = client.post(f"/api/referrals/{referral['id']}/status", json={"status": "hired"}).json()
    assert hired["sale"] is None


def test_sale_in_range():
    today = date(2025, 6, 15)
    assert services.sale_in_range({"expected_date": "2025-06-01"}, "thisMonth", today)
    assert services.sale_in_range({"expected_date": None, "paid_date": "2025-05-31"}, "lastMonth", today)
    assert services.sale_in_range({"expected_date": "2025-01-01"}, "thisYear", today)
    assert not services.sale_in_range({}, "thisYear", today)
    assert services.sale_in_range({}, "all", today)


def test_slash_dates_do_not_break_reads(client):
    _, job = _company_and_job(client)
    registered = client.post(
        "/api/job-seekers",
        json={"job_seeker": {"name": "山田太郎", "phone": "090-1111-2222", "birth_date": "1990/05/01"}},
    )
    assert registered.status_code == 201
    seeker_id = registered.json()["job_seeker"]["id"]
    application_id = registered.json()["application"]["id"]

    detail = client.get(f"/api/job-seekers/{seeker_id}")
    assert detail.status_code == 200
    assert isinstance(detail.json()["age"], int)

    referral = client.post("/api/referrals", json={"application_id": application_id, "job_id": job["id"]}).json()
    this_month = date.today().strftime("%Y/%m/01")
    for expected_date in ("2000/03/01", this_month, "未定"):
        created = client.post(
            "/api/sales", json={"referral_id": referral["id"], "amount": 1000, "expected_date": expected_date}
        )
        assert created.status_code == 201
    sales = client.get("/api/sales", params={"range": "thisMonth"})
    assert sales.status_code == 200
    assert [s["expected_date"] for s in sales.json()["sales"]] == [this_month]

    client.patch(f"/api/applications/{application_id}", json={"application_status": "valid"})
    contact = client.post(
        "/api/contact-logs",
        json={
            "application_id": application_id,
            "contact_type": "phone",
            "direction": "outbound",
            "contacted_at": "2025/01/05 10:00",
        },
    )
    assert contact.status_code == 201
    dashboard = client.get("/api/dashboard")
    assert dashboard.status_code == 200
    dig_up = dashboard.json()["dig_up"]
    assert dig_up[0]["last_contact_date"] == "2025/01/05 10:00"
    assert dig_up[0]["days_since_contact"] == (date.today() - date(2025, 1, 5)).days
    assert client.get("/").status_code == 200


def test_deleting_a_job_seeker_cascades(client, database):
    _, job = _company_and_job(client)
    registered = _register(client).json()
    seeker_id = registered["job_seeker"]["id"]
    application_id = registered["application"]["id"]
    referral = client.post("/api/referrals", json={"application_id": application_id, "job_id": job["id"]}).json()
    sale = client.post("/api/sales", json={"referral_id": referral["id"], "amount": 150000}).json()
    client.post("/api/payments", json={"sale_id": sale["id"], "amount": 50000})
    client.post(
        "/api/contact-logs",
        json={"application_id": application_id, "contact_type": "phone", "direction": "outbound"},
    )
    client.post("/api/interviews", json={"application_id": application_id, "scheduled_at": "2025-04-03T10:00:00"})

    dependents = ("applications", "referrals", "contact_logs", "interviews", "sales", "payments")
    assert all(db.count_rows(table) == 1 for table in dependents)

    assert client.delete(f"/api/job-seekers/{seeker_id}").json() == {"deleted": seeker_id}
    assert {table: db.count_rows(table) for table in dependents} == {table: 0 for table in dependents}
    assert db.count_rows("jobs") == 1


def test_deleting_a_sale_removes_its_payments(client):
    _, job = _company_and_job(client)
    application_id = _register(client).json()["application"]["id"]
    referral = client.post("/api/referrals", json={"application_id": application_id, "job_id": job["id"]}).json()
    sale = client.post("/api/sales", json={"referral_id": referral["id"], "amount": 150000}).json()
    client.post("/api/payments", json={"sale_id": sale["id"], "amount": 150000})

    client.delete(f"/api/sales/{sale['id']}")
    assert db.count_rows("payments") == 0
    assert db.count_rows("referrals") == 1


def test_patch_refreshes_updated_at(client, database):
    company = db.insert_row(
        "companies", {"tenant_id": database, "name": "A社", "updated_at": "2020-01-01T00:00:00"}
    )
    updated = client.patch(f"/api/companies/{company['id']}", json={"contact_person": "佐藤"}).json()
    assert updated["updated_at"] > "2020-01-01T00:00:00"
    assert updated["created_at"] == company["created_at"]


def test_import_template_download(client):
    response = client.get("/api/import/jobs/template")
    assert response.status_code == 200
    assert quote("求人インポートテンプレート.csv") in response.headers["content-disposition"]
    text = response.content.decode("utf-8")
    assert text.startswith("\ufeff派遣会社名,求人タイトル,職種")
    assert text.split("\n")[1].startswith("サンプル派遣会社名,サンプル求人タイトル,,")
    assert client.get("/api/import/payroll/template").status_code == 404


def _upload(client, target, text, **form):
    return client.post(
        f"/api/import/{target}",
        files={"file": ("import.csv", text.encode("utf-8"), "text/csv")},
        data=form,
    )


def test_import_job_seekers_duplicate_actions(client, database):
    _register(client)
    db.insert_row("sources", {"tenant_id": database, "name": "Indeed"})
    text = "氏名,電話番号,応募媒体,応募日\n山田太郎,090-1111-2222,Indeed,\n佐藤花子,080-2222-3333,Indeed,2025/4/1\n名無し,,,\n"

    skipped = _upload(client, "job_seekers", text, duplicate_action="skip").json()
    assert (skipped["success"], skipped["skipped"], skipped["updated"]) == (1, 1, 0)
    assert skipped["errors"] == ["行4: 氏名と電話番号は必須です"]
    assert skipped["mapping"]["電話番号"] == "phone"
    sato = [a for a in db.fetch_all_rows("applications") if a["applied_at"] == "2025-04-01"]
    assert len(sato) == 1 and sato[0]["source_id"]

    updated = _upload(client, "job_seekers", text, duplicate_action="update").json()
    assert (updated["success"], updated["updated"]) == (0, 2)

    created = _upload(client, "job_seekers", text, duplicate_action="create").json()
    assert created["success"] == 2
    assert db.count_rows("job_seekers") == 4

    assert _upload(client, "job_seekers", text, duplicate_action="merge").status_code == 400
    assert _upload(client, "job_seekers", "氏名,電話番号\n").status_code == 400


def test_import_with_explicit_mapping(client):
    text = "名前,連絡先\n鈴木一郎,070-1234-5678\n"
    result = _upload(client, "job_seekers", text, mapping=json.dumps({"連絡先": "phone"})).json()
    assert result["success"] == 1
    assert result["mapping"] == {"名前": "name", "連絡先": "phone"}
    assert db.fetch_all_rows("job_seekers")[0]["phone"] == "07012345678"

    assert _upload(client, "job_seekers", text, mapping="[]").status_code == 400
    assert _upload(client, "job_seekers", text, mapping="\"phone\"").status_code == 400


def test_import_jobs(client):
    _company_and_job(client)
    text = "派遣会社名,求人タイトル,成功報酬（円）,寮あり\nA社,検品,200000,あり\nB社,軽作業,,\n,梱包,,\n"
    result = _upload(client, "jobs", text).json()
    assert result["success"] == 1
    assert result["errors"] == [
        "行3: 派遣会社「B社」が見つかりません",
        "行4: 派遣会社名と求人タイトルは必須です",
    ]
    job = [j for j in db.fetch_all_rows("jobs") if j["title"] == "検品"][0]
    assert (job["fee_type"], job["fee_amount"], job["has_dormitory"], job["status"]) == ("fixed", 200000, 1, "open")


def test_suggest_mappings_without_ai(client):
    response = client.post(
        "/api/import/jobs/suggest-mappings", json={"headers": ["会社名", "謎の列"], "use_ai": False}
    )
    assert response.json()["suggested_mappings"] == {"会社名": "company_name"}
    assert client.post("/api/import/jobs/suggest-mappings", json={"headers": []}).status_code == 400


def test_reports_and_ledgers(client):
    assert client.get("/api/reports/action-date").json() == {"months": {}}
    applied = client.get("/api/reports/applied", params={"period": "3months"}).json()
    assert applied["period"] == "3months"
    assert client.get("/api/reports/applied", params={"period": "forever"}).status_code == 400
    assert client.get("/api/dashboard").json()["stats"]["new_applications"] == 0

    ledger = client.get("/api/ledgers/job-seeker", params={"month": "2025-04"}).json()
    assert ledger["title"] == "求職管理簿"
    assert ledger["columns"]["name"] == "氏名"
    assert ledger["rows"] == []
    assert client.get("/api/ledgers/job-seeker", params={"month": "April"}).status_code == 400
    assert client.get("/api/ledgers/payroll", params={"month": "2025-04"}).status_code == 404

    csv_response = client.get("/api/ledgers/fee/csv", params={"month": "2025-04"})
    assert csv_response.headers["content-type"].startswith("text/csv")
    assert quote("手数料管理簿_2025-04.csv") in csv_response.headers["content-disposition"]


def test_postal_route(client, monkeypatch):
    monkeypatch.setattr(main, "lookup_postal_code", lambda code: {"postal_code": "4600001", "prefecture": "愛知県", "city": "名古屋市中区三の丸"})
    assert client.get("/api/postal/460-0001").json()["prefecture"] == "愛知県"

    monkeypatch.setattr(main, "lookup_postal_code", lambda code: None)
    assert client.get("/api/postal/0000000").status_code == 404

    def boom(code):
        raise RuntimeError("service down")

    monkeypatch.setattr(main, "lookup_postal_code", boom)
    assert client.get("/api/postal/4600001").status_code == 500


class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, payload):
        self.payload = payload
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append(params)
        return FakeResponse(self.payload)


def test_lookup_postal_code():
    session = FakeSession({"results": [{"address1": "愛知県", "address2": "名古屋市中区", "address3": "三の丸"}]})
    assert lookup_postal_code("460-0001", session=session) == {
        "postal_code": "4600001",
        "prefecture": "愛知県",
        "city": "名古屋市中区三の丸",
    }
    assert session.calls == [{"zipcode": "4600001"}]
    assert lookup_postal_code("12", session=session) is None
    assert lookup_postal_code("1234567", session=FakeSession({"results": None})) is None
    assert normalize_postal_code("〒123-4567") == "1234567"
