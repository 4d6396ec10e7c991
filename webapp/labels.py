"""Status vocabularies and their Japanese display labels."""

APPLICATION_STATUS_LABELS = {
    "new": "新規応募",
    "valid": "有効応募",
    "invalid": "無効応募",
    "no_answer": "電話出ず",
    "connected": "繋ぎ済み",
    "working": "稼働中",
    "completed": "完了",
}

PROGRESS_STATUS_LABELS = {
    "phone_interview_scheduled": "電話面談予約済み",
    "phone_interview_done": "電話面談済み",
    "referred": "派遣会社紹介済み",
    "dispatch_interview_scheduled": "派遣面接予定",
    "dispatch_interview_done": "派遣面接済み",
    "hired": "採用",
    "pre_assignment": "赴任前",
    "assigned": "赴任済み",
    "working": "稼働中",
    "full_paid": "全額入金",
}

REFERRAL_STATUS_LABELS = {
    "referred": "紹介済み",
    "interview_scheduled": "面接予定",
    "interview_done": "面接済み",
    "hired": "採用",
    "pre_assignment": "赴任前",
    "assigned": "赴任済み",
    "working": "稼働中",
    "cancelled": "キャンセル",
    "declined": "不採用",
}

SALE_STATUS_LABELS = {
    "expected": "売上見込",
    "confirmed": "売上確定",
    "invoiced": "請求済み",
    "paid": "入金済み",
}

USER_ROLE_LABELS = {
    "super_admin": "スーパー管理者",
    "admin": "管理者",
    "coordinator": "コーディネーター",
    "viewer": "閲覧者",
}

EMPLOYMENT_STATUS_LABELS = {
    "active": "在職中",
    "retired": "退職済み",
}

CONTACT_RESULT_LABELS = {
    "connected": "繋がった",
    "absent": "不在",
    "callback": "折り返し依頼",
    "voicemail": "留守電",
    "other": "その他",
}

INTERVIEW_RESULT_LABELS = {
    "connected": "つなぎ",
    "not_connected": "つなげず",
    "considering": "検討中",
    "waiting_referral": "紹介先連絡待ち",
    # Values written by the sheet import
    "completed": "済み",
    "cancelled": "流れ",
    "declined": "辞退",
}

# Referral status -> application progress status it implies.
REFERRAL_TO_PROGRESS = {
    "interview_scheduled": "dispatch_interview_scheduled",
    "interview_done": "dispatch_interview_done",
    "hired": "hired",
    "pre_assignment": "pre_assignment",
    "assigned": "assigned",
    "working": "working",
}

FEE_TYPE_LABELS = {
    "fixed": "定額",
    "percentage": "歩合",
}

GENDER_LABELS = {
    "male": "男",
    "female": "女",
    "other": "その他",
}


def label_for(labels: dict, value) -> str:
    """Display label, falling back to the raw value."""
    if value is None:
        return "-"
    return labels.get(value, str(value))
