"""
Standard columns of the CSV imports.

Each import target (jobs, job seekers) defines its columns in template
order with the Japanese header used by the downloadable template.
"""

JOB_COLUMNS = [
    ("company_name", "派遣会社名"),
    ("title", "求人タイトル"),
    ("job_type", "職種"),
    ("prefecture", "都道府県"),
    ("city", "市区町村"),
    ("address", "番地"),
    ("salary_min", "給与（最低）"),
    ("salary_max", "給与（最高）"),
    ("working_hours", "勤務時間"),
    ("holidays", "休日"),
    ("has_dormitory", "寮あり"),
    ("fee_amount", "成功報酬（円）"),
    ("description", "仕事内容"),
    ("notes", "備考"),
]

JOB_SEEKER_COLUMNS = [
    ("name", "氏名"),
    ("name_kana", "フリガナ"),
    ("phone", "電話番号"),
    ("email", "メールアドレス"),
    ("birth_date", "生年月日"),
    ("gender", "性別"),
    ("postal_code", "郵便番号"),
    ("prefecture", "都道府県"),
    ("city", "市区町村"),
    ("address", "住所"),
    ("source", "応募媒体"),
    ("job_type", "職種"),
    ("applied_at", "応募日"),
    ("notes", "備考"),
]

TARGETS = {
    "jobs": JOB_COLUMNS,
    "job_seekers": JOB_SEEKER_COLUMNS,
}

REQUIRED_COLUMNS = {
    "jobs": ["company_name", "title"],
    "job_seekers": ["name", "phone"],
}

# Used in the AI mapping prompt
COLUMN_DESCRIPTIONS = {
    "company_name": "Name of the staffing client company (must already exist)",
    "title": "Job posting title",
    "job_type": "Job category, e.g. 製造 or 軽作業",
    "prefecture": "Prefecture",
    "city": "City / ward",
    "address": "Street address",
    "salary_min": "Minimum wage (number)",
    "salary_max": "Maximum wage (number)",
    "working_hours": "Working hours",
    "holidays": "Days off",
    "has_dormitory": "Dormitory available (あり / true / 1)",
    "fee_amount": "Success fee in yen",
    "description": "Job description",
    "notes": "Free-form notes",
    "name": "Full name of the job seeker",
    "name_kana": "Name reading in katakana",
    "phone": "Phone number",
    "email": "Email address",
    "birth_date": "Birth date",
    "gender": "Gender (男 / 女)",
    "postal_code": "Postal code (7 digits)",
    "source": "Application source / media name",
    "applied_at": "Application date",
}


def columns_for(target: str):
    """Column keys of an import target, in template order."""
    if target not in TARGETS:
        raise ValueError(f"Unknown import target: {target}")
    return [key for key, _ in TARGETS[target]]


def get_schema_description(target: str) -> str:
    """Get a formatted description of an import target for LLM context."""
    required = REQUIRED_COLUMNS[target]
    lines = []
    for key, label in TARGETS[target]:
        flag = " (required)" if key in required else ""
        lines.append(f"- {key} [{label}]{flag}: {COLUMN_DESCRIPTIONS.get(key, '')}")
    return f"Import columns for {target}:\n" + "\n".join(lines)
