"""
Known header variations for the CSV imports.

Maps header spellings seen in exported sheets to standard column keys.
"""

from typing import Optional

from .standard_schema import TARGETS

KNOWN_MAPPINGS = {
    "jobs": {
        "company_name": ["派遣会社名", "派遣会社", "会社名", "企業名", "company", "company_name"],
        "title": ["求人タイトル", "求人名", "タイトル", "案件名", "title"],
        "job_type": ["職種", "job_type"],
        "prefecture": ["都道府県", "prefecture"],
        "city": ["市区町村", "city"],
        "address": ["番地", "住所", "勤務地住所", "address"],
        "salary_min": ["給与（最低）", "給与(最低)", "時給（最低）", "最低給与", "salary_min"],
        "salary_max": ["給与（最高）", "給与(最高)", "時給（最高）", "最高給与", "salary_max"],
        "working_hours": ["勤務時間", "working_hours"],
        "holidays": ["休日", "休日休暇", "holidays"],
        "has_dormitory": ["寮あり", "寮", "寮の有無", "has_dormitory"],
        "fee_amount": ["成功報酬（円）", "成功報酬", "紹介料", "fee_amount"],
        "description": ["仕事内容", "業務内容", "description"],
        "notes": ["備考", "メモ", "notes"],
    },
    "job_seekers": {
        "name": ["氏名", "名前", "お名前", "name"],
        "name_kana": ["フリガナ", "ふりがな", "カナ", "name_kana"],
        "phone": ["電話番号", "電話", "携帯番号", "tel", "phone"],
        "email": ["メールアドレス", "メール", "email"],
        "birth_date": ["生年月日", "誕生日", "birth_date"],
        "gender": ["性別", "gender"],
        "postal_code": ["郵便番号", "〒", "postal_code"],
        "prefecture": ["都道府県", "prefecture"],
        "city": ["市区町村", "city"],
        "address": ["住所", "番地", "address"],
        "source": ["応募媒体", "媒体", "source"],
        "job_type": ["職種", "希望職種", "job_type"],
        "applied_at": ["応募日", "応募日時", "applied_at"],
        "notes": ["備考", "メモ", "notes"],
    },
}


def find_mapping(source_column: str, target: str) -> Optional[str]:
    """
    Find the standard column key for a header of an import file.

    Args:
        source_column: Header as it appears in the CSV
        target: Import target ("jobs" or "job_seekers")

    Returns:
        Standard column key if found, None otherwise
    """
    if not source_column or target not in KNOWN_MAPPINGS:
        return None
    header = source_column.strip().lower()
    for key, variations in KNOWN_MAPPINGS[target].items():
        if header in [v.lower() for v in variations]:
            return key
    if header in [key for key, _ in TARGETS[target]]:
        return header
    return None
