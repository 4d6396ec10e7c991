"""
Positional column layout of the application sheet export.

The sheet has no stable header names (coordinators rename them), so every
column is addressed by its 0-based position. The comments give the
spreadsheet letter and the meaning of the column.
"""

COL = {
    "NO": 0,              # A: 通し番号
    "DATE": 5,            # F: 応募日
    "STATUS": 6,          # G: 状態
    "NOTES": 7,           # H: 備考
    "RESPONSE": 8,        # I: 応募対応
    "SOURCE": 9,          # J: 媒体
    "JOB_TYPE": 10,       # K: 職種
    "LOCATION": 12,       # M: 勤務地
    "NAME_LAST": 13,      # N: 氏名(姓)
    "NAME_FIRST": 14,     # O: 氏名(名)
    "NAME": 15,           # P: 氏名
    "KANA_LAST": 16,      # Q: カナ(姓)
    "KANA_FIRST": 17,     # R: カナ(名)
    "KANA": 18,           # S: カナ
    "PHONE": 19,          # T: 電話番号
    "BIRTH_DATE": 20,     # U: 生年月日
    "POSTAL": 23,         # X: 郵便番号
    "PREF": 24,           # Y: 都道府県
    "CITY": 25,           # Z: 市区町村
    "GENDER": 26,         # AA: 性別
    "TATTOO": 27,         # AB: タトゥー
    "DISABILITY": 28,     # AC: 障害者手帳
    "MEDICAL": 29,        # AD: 持病
    "SPOUSE": 30,         # AE: 配偶者
    "CHILDREN": 31,       # AF: 子供
    "HEIGHT": 32,         # AG: 身長
    "WEIGHT": 33,         # AH: 体重
    "INQUIRY_STATUS": 35, # AJ: 問い合わせ状態
    "AU": 46,             # AU: 日程_年
    "AV": 47,             # AV: 日程_月
    "AX": 49,             # AX: 面談時間
    "AY": 50,             # AY: 面談日程
    "AZ": 51,             # AZ: 面談ステータス (済み/流れ/辞退)
    "BB": 53,             # BB: 担当 (姓)
    "BF": 57,             # BF: 繋ぎ状況
    "BG": 58,             # BG: 派遣予定_年
    "BH": 59,             # BH: 派遣予定_月
    "BJ": 61,             # BJ: 面接日
    "BL": 63,             # BL: 紹介先 (会社)
    "BM": 64,             # BM: 進捗
    "BN": 65,             # BN: 合否 (採用/不採用)
    "BO": 66,             # BO: 案件
    "BS": 70,             # BS: 赴任予定日
    "BX": 75,             # BX: 見込み売上
    "CF": 83,             # CF: 稼働日 (MM/DD)
    "CG": 84,             # CG: 確定売上
    "CH": 85,             # CH: 入金金額
    "CJ": 87,             # CJ: 入金進捗
}

# Summary row + header row precede the data.
HEADER_ROWS = 2

INTERVIEW_OUTCOMES = ("済み", "流れ", "辞退")
INTERVIEW_DONE = "済み"
REFERRAL_MARK = "繋ぎ"
HIRED_MARK = "採用"
PAYMENT_CONFIRMED_MARK = "確定"
PLACEHOLDER_NAME = "未定"


def column_letter(index: int) -> str:
    """Spreadsheet letter for a 0-based column index (0 -> A, 26 -> AA)."""
    letters = ""
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def column_index(letter: str) -> int:
    """0-based column index for a spreadsheet letter (A -> 0, AA -> 26)."""
    n = 0
    for ch in letter.strip().upper():
        if not "A" <= ch <= "Z":
            raise ValueError(f"Invalid column letter: {letter}")
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n - 1


def cell(row, key: str) -> str:
    """Stripped cell value by column name; short rows read as empty."""
    index = COL[key]
    if index >= len(row):
        return ""
    value = row[index]
    return value.strip() if value else ""


# Per-month "CSV用" exports: one header row, a much shorter layout.
MONTHLY_COL = {
    "DATE": 0,            # A: 年月日
    "INTERVIEW": 22,      # W: 面談日
    "REFERRAL": 24,       # Y: 繋ぎ状況
    "COMPANY": 25,        # Z: 紹介先
}
MONTHLY_HEADER_ROWS = 1
