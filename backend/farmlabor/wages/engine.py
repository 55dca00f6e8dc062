"""
工資與出勤計算之純函式（日比例 → 單筆工資 → 期間結算；預支扣款檢核；多農場分攤）。

金額一律以 Decimal 計算並取到 0.01（分），不使用 float。

規則：
- 日比例：full_day = 1、half_day = 0.5、absent = 0。其餘計算皆由此組成。
- 單筆工資 = (覆寫日薪 ?? 工人目前日薪) × 日比例；缺勤一律 0，不論覆寫值。
- 未覆寫的歷史出勤以工人「目前」日薪計算（日薪調整會回溯影響未覆寫紀錄）。
- 分攤：base = floor(金額 / N, 0.01)，前 N-1 筆為 base，最後一筆為 金額 - base*(N-1)，
  加總恆等於原金額。例：100 分 3 個農場 → 33.33, 33.33, 33.34。
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_FLOOR, ROUND_HALF_UP
from enum import Enum
from typing import Any, Iterable, List, Optional

from farmlabor.errors import (
    DeductionExceedsGross,
    ExceedsAdvanceBalance,
    InvalidAmount,
    InvalidFraction,
    InvalidPeriod,
)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
DEFAULT_RATE_TOLERANCE = Decimal("0.01")
DEFAULT_MAX_FARMS = 20


class WorkStatus(str, Enum):
    FULL_DAY = "full_day"
    HALF_DAY = "half_day"
    ABSENT = "absent"


class AttendanceFormStatus(str, Enum):
    """表單輸入用：多一個「未設定」，不可直接進入計算"""
    NOT_SET = "not_set"
    FULL_DAY = "full_day"
    HALF_DAY = "half_day"
    ABSENT = "absent"


DAY_FRACTIONS = {
    WorkStatus.FULL_DAY: Decimal("1"),
    WorkStatus.HALF_DAY: Decimal("0.5"),
    WorkStatus.ABSENT: Decimal("0"),
}


# ---------- 金額與狀態轉換 ----------


def to_money(value: Any, label: str = "金額") -> Decimal:
    """轉為 Decimal 並取到分；None、非數字、NaN/Infinity 一律 InvalidAmount。"""
    if value is None or isinstance(value, bool):
        raise InvalidAmount(f"{label}未填寫")
    if isinstance(value, Decimal):
        d = value
    else:
        try:
            d = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidAmount(f"{label}格式錯誤：{value!r}")
    if not d.is_finite():
        raise InvalidAmount(f"{label}必須為有限數值")
    return d.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_work_status(value: Any) -> WorkStatus:
    """表單/資料庫字串 → WorkStatus。not_set 或未知值視為無日比例（InvalidFraction）。"""
    if isinstance(value, WorkStatus):
        return value
    raw = value.value if isinstance(value, AttendanceFormStatus) else str(value or "").strip().lower()
    try:
        return WorkStatus(raw)
    except ValueError:
        raise InvalidFraction(f"出勤狀態未設定或無效：{raw or '(空白)'}")


def status_to_fraction(status: WorkStatus) -> Decimal:
    """出勤狀態 → 日比例（1 / 0.5 / 0）"""
    return DAY_FRACTIONS[parse_work_status(status)]


def default_hours_for_status(
    status: WorkStatus,
    full_day_hours: Decimal = Decimal("8"),
    half_day_hours: Decimal = Decimal("4"),
) -> Decimal:
    """臨時工建議工時：全天 8、半天 4、缺勤 0。僅供帶入，不強制。"""
    s = parse_work_status(status)
    if s is WorkStatus.FULL_DAY:
        return Decimal(full_day_hours)
    if s is WorkStatus.HALF_DAY:
        return Decimal(half_day_hours)
    return Decimal("0")


# ---------- 單筆工資 ----------


def effective_rate(record: Any, worker: Any) -> Decimal:
    """該筆出勤採用之日薪：有覆寫值用覆寫值，否則用工人目前日薪。覆寫值 <= 0 視為無效。"""
    override = getattr(record, "daily_rate_override", None)
    if override is not None:
        rate = to_money(override, "覆寫日薪")
        if rate <= 0:
            raise InvalidAmount("覆寫日薪必須大於 0")
        return rate
    rate = to_money(getattr(worker, "daily_rate", None), "日薪")
    if rate <= 0:
        raise InvalidAmount("工人日薪必須大於 0")
    return rate


def record_pay(record: Any, worker: Any) -> Decimal:
    """單筆出勤工資 = 日薪 × 日比例；缺勤恆為 0。"""
    status = parse_work_status(record.work_status)
    if status is WorkStatus.ABSENT:
        return ZERO
    return salary_for_status(effective_rate(record, worker), status)


def salary_for_status(daily_rate: Any, status: WorkStatus) -> Decimal:
    """日薪 × 日比例，亦供表單預帶「當日工資」"""
    return (to_money(daily_rate, "日薪") * status_to_fraction(status)).quantize(CENT, rounding=ROUND_HALF_UP)


def infer_rate_override(
    entered_salary: Any,
    status: WorkStatus,
    default_rate: Optional[Any],
    tolerance: Decimal = DEFAULT_RATE_TOLERANCE,
) -> Optional[Decimal]:
    """
    由使用者輸入之「當日工資」反推日薪：per_day = 工資 / 日比例。
    - 缺勤無日比例 → InvalidFraction（不做除以 0）
    - per_day 非正數 → InvalidAmount
    - 與工人預設日薪差距 <= tolerance → 回傳 None（不存覆寫，之後調薪仍會反映）
    """
    fraction = status_to_fraction(status)
    if fraction == 0:
        raise InvalidFraction("缺勤無法由工資換算日薪")
    salary = to_money(entered_salary, "當日工資")
    per_day = (salary / fraction).quantize(CENT, rounding=ROUND_HALF_UP)
    if per_day <= 0:
        raise InvalidAmount("當日工資必須大於 0")
    if default_rate is not None:
        default = to_money(default_rate, "日薪")
        if default > 0 and abs(per_day - default) <= tolerance:
            return None
    return per_day


# ---------- 期間結算 ----------


@dataclass(frozen=True)
class AttendanceDetail:
    date: date
    work_status: WorkStatus
    work_type: str
    rate: Decimal
    earnings: Decimal


@dataclass(frozen=True)
class SettlementCalculation:
    worker_id: Optional[int]
    farm_id: Optional[int]
    period_start: date
    period_end: date
    days_worked: Decimal
    gross_amount: Decimal
    attendance_details: List[AttendanceDetail] = field(default_factory=list)


def _record_in_farm(record: Any, farm_id: Optional[int]) -> bool:
    if farm_id is None:
        return True
    farm_ids = getattr(record, "farm_ids", None) or []
    return farm_id in {int(f) for f in farm_ids}


def calculate_settlement(
    worker: Any,
    records: Iterable[Any],
    period_start: date,
    period_end: date,
    farm_id: Optional[int] = None,
) -> SettlementCalculation:
    """
    期間結算試算（純投影，不改餘額、不建結算單）。
    期間含起訖日；farm_id 有值時僅計入農場集合含該農場之紀錄。
    明細依日期遞增，僅列有工資之紀錄；缺勤不計日數、工資，也不列明細。
    """
    if period_start > period_end:
        raise InvalidPeriod("結算起日不可晚於訖日")
    worker_id = getattr(worker, "id", None)
    selected = [
        r for r in records
        if (worker_id is None or getattr(r, "worker_id", worker_id) == worker_id)
        and period_start <= r.date <= period_end
        and _record_in_farm(r, farm_id)
    ]
    selected.sort(key=lambda r: (r.date, getattr(r, "id", 0) or 0))

    days = Decimal("0")
    gross = ZERO
    details: List[AttendanceDetail] = []
    for r in selected:
        status = parse_work_status(r.work_status)
        if status is WorkStatus.ABSENT:
            continue
        earnings = record_pay(r, worker)
        days += DAY_FRACTIONS[status]
        gross += earnings
        details.append(AttendanceDetail(
            date=r.date,
            work_status=status,
            work_type=getattr(r, "work_type", "") or "",
            rate=effective_rate(r, worker),
            earnings=earnings,
        ))
    return SettlementCalculation(
        worker_id=worker_id,
        farm_id=farm_id,
        period_start=period_start,
        period_end=period_end,
        days_worked=days,
        gross_amount=gross.quantize(CENT),
        attendance_details=details,
    )


def validate_settlement(advance_balance: Any, total_salary: Any, advance_deduction: Any) -> Decimal:
    """
    結算確認前檢核（依序，各自獨立錯誤），回傳實發 = 總工資 - 扣款。
    1. 總工資 < 0 → InvalidAmount
    2. 扣款 < 0 → InvalidAmount
    3. 扣款 > 預支餘額 → ExceedsAdvanceBalance
    4. 扣款 > 總工資 → DeductionExceedsGross
    """
    total = to_money(total_salary, "總工資")
    deduction = to_money(advance_deduction, "預支扣款")
    balance = to_money(advance_balance, "預支餘額")
    if total < 0:
        raise InvalidAmount("總工資不可為負數")
    if deduction < 0:
        raise InvalidAmount("預支扣款不可為負數")
    if deduction > balance:
        raise ExceedsAdvanceBalance(f"預支扣款 {deduction} 超過目前餘額 {balance}")
    if deduction > total:
        raise DeductionExceedsGross(f"預支扣款 {deduction} 超過總工資 {total}")
    return total - deduction


# ---------- 預支 ----------


def validate_advance(amount: Any) -> Decimal:
    """預支金額須 > 0"""
    value = to_money(amount, "預支金額")
    if value <= 0:
        raise InvalidAmount("預支金額必須大於 0")
    return value


def validate_deduction(amount: Any, advance_balance: Any) -> Decimal:
    """預支扣款須 0 < 金額 <= 餘額"""
    value = to_money(amount, "預支扣款")
    if value <= 0:
        raise InvalidAmount("預支扣款必須大於 0")
    balance = to_money(advance_balance, "預支餘額")
    if value > balance:
        raise ExceedsAdvanceBalance(f"預支扣款 {value} 超過目前餘額 {balance}")
    return value


# ---------- 多農場分攤 ----------


def apportion(amount: Any, parts: int, max_parts: int = DEFAULT_MAX_FARMS) -> List[Decimal]:
    """將一筆金額拆成 parts 筆（每個農場一筆），零頭給最後一筆，加總恆等於原金額。"""
    total = to_money(amount, "分攤金額")
    if total < 0:
        raise InvalidAmount("分攤金額不可為負數")
    if parts < 1:
        raise InvalidAmount("至少需選擇一個農場")
    if parts > max_parts:
        raise InvalidAmount(f"最多只能選擇 {max_parts} 個農場")
    base = (total / Decimal(parts)).quantize(CENT, rounding=ROUND_FLOOR)
    remainder = total - base * (parts - 1)
    return [base] * (parts - 1) + [remainder]
