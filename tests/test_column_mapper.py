from types import SimpleNamespace

import pytest

from ingestion.agents.column_mapper import (
    apply_mapping,
    create_column_mapping,
    extract_json_mapping,
    map_columns,
    suggest_mappings_with_llm,
)
from ingestion.config.column_mappings import find_mapping


class FakeMessages:
    def __init__(self, text):
        self.text = text
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(content=[SimpleNamespace(text=self.text)])


class FakeClient:
    def __init__(self, text):
        self.messages = FakeMessages(text)


def test_find_mapping_known_aliases():
    assert find_mapping("派遣会社", "jobs") == "company_name"
    assert find_mapping(" TEL ", "job_seekers") == "phone"
    assert find_mapping("salary_max", "jobs") == "salary_max"
    assert find_mapping("不明な列", "jobs") is None
    assert find_mapping("氏名", "unknown") is None


def test_map_columns_never_reuses_a_key():
    mapping = map_columns(["氏名", "名前", "電話"], "job_seekers")
    assert mapping == {"氏名": "name", "電話": "phone"}


def test_extract_json_mapping():
    assert extract_json_mapping('Here you go:\n{"A": "name", "B": null}') == {"A": "name"}
    with pytest.raises(ValueError):
        extract_json_mapping("no json here")


def test_suggest_mappings_filters_unknown_keys():
    client = FakeClient('{"連絡先": "phone", "謎": "salary", "メモ欄": "skip"}')
    suggested = suggest_mappings_with_llm(["連絡先", "謎", "メモ欄"], "job_seekers", client=client)
    assert suggested == {"連絡先": "phone"}
    call = client.messages.calls[0]
    assert call["model"] == "claude-sonnet-4-5-20250929"
    assert "連絡先" in call["messages"][0]["content"]


def test_suggest_mappings_requires_api_key(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    with pytest.raises(ValueError):
        suggest_mappings_with_llm(["x"], "jobs")


def test_create_column_mapping_ai_fills_only_unclaimed_keys():
    client = FakeClient('{"連絡先": "phone", "フルネーム": "name"}')
    mapping = create_column_mapping(["氏名", "連絡先", "フルネーム"], "job_seekers", use_llm=True, client=client)
    assert mapping == {"氏名": "name", "連絡先": "phone"}


def test_create_column_mapping_without_ai_skips_client():
    client = FakeClient("{}")
    mapping = create_column_mapping(["会社名", "タイトル", "謎"], "jobs", client=client)
    assert mapping == {"会社名": "company_name", "タイトル": "title"}
    assert client.messages.calls == []


def test_apply_mapping_first_non_empty_wins():
    rows = [{"氏名": "", "名前": "山田", "電話": " 090 "}]
    records = apply_mapping(rows, {"氏名": "name", "名前": "name", "電話": "phone", "謎": "skip"})
    assert records == [{"name": "山田", "phone": "090"}]
