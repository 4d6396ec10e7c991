"""
Sheet status text -> database status values.

Coordinators type free text into the status columns; these tables cover the
spellings seen in the sheet.
"""

# AJ (問い合わせ状態) -> applications.application_status
STATUS_MAP = {
    "新規": "new",
    "有効": "valid",
    "有効応募": "valid",
    "無効": "invalid",
    "無効応募": "invalid",
    "不通": "no_answer",
    "電話出ず": "no_answer",
    "繋ぎ済み": "connected",
    "繋ぎ": "connected",
    "稼働中": "working",
    "稼働前": "working",
    "完了": "completed",
}

# BM (進捗) / BF (繋ぎ状況) -> applications.progress_status
PROGRESS_MAP = {
    "電話面談予約済み": "phone_interview_scheduled",
    "電話面談済み": "phone_interview_done",
    "紹介済み": "referred",
    "繋ぎ": "referred",
    "派遣面接予定": "dispatch_interview_scheduled",
    "派遣面接済み": "dispatch_interview_done",
    "済み": "dispatch_interview_done",
    "採用": "hired",
    "赴任前": "pre_assignment",
    "赴任済み": "assigned",
    "稼働中": "working",
    "全額入金": "full_paid",
    "確定": "full_paid",
}

# BM (進捗) / BF (繋ぎ状況) -> referrals.referral_status
REFERRAL_STATUS_MAP = {
    "紹介済み": "referred",
    "繋ぎ": "referred",
    "面接予定": "interview_scheduled",
    "面接済み": "interview_done",
    "済み": "interview_done",
    "採用": "hired",
    "赴任前": "pre_assignment",
    "赴任済み": "assigned",
    "稼働中": "working",
    "キャンセル": "cancelled",
    "不採用": "declined",
    "辞退": "declined",
    "流れ": "cancelled",
}

# AZ (面談ステータス) -> interviews.result
INTERVIEW_RESULT_MAP = {
    "済み": "completed",
    "流れ": "cancelled",
    "辞退": "declined",
}


def map_application_status(raw: str) -> str:
    return STATUS_MAP.get((raw or "").strip(), "new")
