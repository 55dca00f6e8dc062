"""
工人預支/扣款/結算/出勤登錄之異動流程。

每個方法只 flush，不 commit；由呼叫端（API 的 get_db）在同一交易內一次提交或整批回滾。
預支餘額異動一律：重新讀取工人 → 檢核 → 比對版本更新（crud.update_advance_balance_cas），
版本衝突時重讀重試一次，再衝突即拋出 OptimisticConflict。
檢核全部在第一次寫入前完成，檢核失敗不會留下任何紀錄。
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from farmlabor import crud
from farmlabor.config import settings
from farmlabor.errors import (
    DuplicateAttendance,
    InvalidAmount,
    InvalidFraction,
    LaborError,
    OptimisticConflict,
    UnknownAttendance,
    UnknownWorker,
)
from farmlabor.models import (
    TemporaryWorkerEntry,
    Worker,
    WorkerAttendance,
    WorkerSettlement,
    WorkerTransaction,
)
from farmlabor.rules.work_types import normalize_work_type
from farmlabor.wages.engine import (
    AttendanceFormStatus,
    SettlementCalculation,
    WorkStatus,
    apportion,
    default_hours_for_status,
    infer_rate_override,
    parse_work_status,
    to_money,
    validate_advance,
    validate_deduction,
    validate_settlement,
)

logger = logging.getLogger(__name__)

TX_ADVANCE_GIVEN = "advance_given"
TX_ADVANCE_DEDUCTED = "advance_deducted"
TX_PAYMENT = "payment"


def _period_note(prefix: str, start: date, end: date) -> str:
    return f"{prefix} for settlement {start.isoformat()} to {end.isoformat()}"


def attendance_deduction_note(day: date) -> str:
    return f"Attendance deduction for {day.strftime('%d %b %Y')}"


class LaborService:
    """工人預支、扣款、結算確認、出勤登錄/修改。"""

    def __init__(
        self,
        db: AsyncSession,
        max_farms: Optional[int] = None,
        rate_tolerance: Optional[Decimal] = None,
    ):
        self.db = db
        self.max_farms = max_farms or settings.max_farms_per_entry
        self.rate_tolerance = Decimal(rate_tolerance if rate_tolerance is not None else settings.rate_override_tolerance)

    # ---------- 工人讀取與餘額比對更新 ----------

    async def _fresh_worker(self, worker_id: int) -> Worker:
        worker = await crud.get_worker(self.db, worker_id)
        if worker is None:
            raise UnknownWorker(f"工人不存在：{worker_id}")
        await self.db.refresh(worker)
        return worker

    async def _change_balance(self, worker_id: int, apply: Callable[[Worker], Decimal]) -> Worker:
        """apply(worker) 依最新餘額檢核並回傳新餘額；版本衝突時重讀重試一次。"""
        for attempt in range(2):
            worker = await self._fresh_worker(worker_id)
            new_balance = apply(worker)
            try:
                await crud.update_advance_balance_cas(self.db, worker_id, worker.version, new_balance)
            except OptimisticConflict:
                if attempt:
                    logger.warning("advance balance conflict persisted after retry worker=%s", worker_id)
                    raise
                logger.warning("advance balance conflict, retrying worker=%s version=%s", worker_id, worker.version)
                continue
            await self.db.refresh(worker)
            return worker
        raise OptimisticConflict(f"工人 {worker_id} 預支餘額已被更新，請重新讀取")

    # ---------- 預支 / 扣款 ----------

    async def give_advance(
        self,
        worker_id: int,
        amount: Any,
        date: date,
        farm_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> WorkerTransaction:
        """預支：新增 advance_given 交易並增加餘額"""
        value = validate_advance(amount)
        if farm_id is not None:
            await crud.ensure_farms_exist(self.db, [farm_id])
        await self._change_balance(worker_id, lambda w: to_money(w.advance_balance) + value)
        tx = await crud.create_transaction(
            self.db, worker_id, TX_ADVANCE_GIVEN, value, date, farm_id=farm_id, notes=notes,
        )
        logger.info("advance given worker=%s amount=%s", worker_id, value)
        return tx

    async def deduct_advance(
        self,
        worker_id: int,
        amount: Any,
        date: date,
        farm_id: Optional[int] = None,
        notes: Optional[str] = None,
        settlement_id: Optional[int] = None,
    ) -> WorkerTransaction:
        """扣回預支：以最新餘額檢核，新增 advance_deducted 交易並減少餘額"""
        value = to_money(amount, "預支扣款")
        if farm_id is not None:
            await crud.ensure_farms_exist(self.db, [farm_id])

        def apply(w: Worker) -> Decimal:
            return to_money(w.advance_balance) - validate_deduction(value, w.advance_balance)

        try:
            await self._change_balance(worker_id, apply)
        except LaborError as e:
            logger.warning("advance deduction rejected worker=%s amount=%s: %s", worker_id, value, e)
            raise
        tx = await crud.create_transaction(
            self.db, worker_id, TX_ADVANCE_DEDUCTED, value, date,
            farm_id=farm_id, settlement_id=settlement_id, notes=notes,
        )
        logger.info("advance deducted worker=%s amount=%s", worker_id, value)
        return tx

    # ---------- 結算確認 ----------

    async def confirm_settlement(
        self,
        worker_id: int,
        calculation: SettlementCalculation,
        total_salary: Any,
        advance_deduction: Any,
        farm_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> WorkerSettlement:
        """
        確認結算（不具冪等性：呼叫兩次即兩張結算單）。
        同一交易內：扣預支餘額、建立結算單（confirmed）、扣款交易（扣款 > 0）、發薪交易（實發 > 0）。
        total_salary 可與試算 gross 不同。
        """
        total = to_money(total_salary, "總工資")
        deduction = to_money(advance_deduction, "預支扣款")
        farm = farm_id if farm_id is not None else calculation.farm_id
        if farm is not None:
            await crud.ensure_farms_exist(self.db, [farm])

        def apply(w: Worker) -> Decimal:
            validate_settlement(w.advance_balance, total, deduction)
            return to_money(w.advance_balance) - deduction

        try:
            await self._change_balance(worker_id, apply)
        except LaborError as e:
            logger.warning("settlement rejected worker=%s total=%s deduction=%s: %s", worker_id, total, deduction, e)
            raise

        net = total - deduction
        start, end = calculation.period_start, calculation.period_end
        settlement = await crud.create_settlement(
            self.db,
            worker_id=worker_id,
            farm_id=farm,
            period_start=start,
            period_end=end,
            days_worked=calculation.days_worked,
            gross_amount=total,
            advance_deducted=deduction,
            net_payment=net,
            status="confirmed",
            notes=notes,
            confirmed_at=datetime.utcnow(),
        )
        today = date.today()
        if deduction > 0:
            await crud.create_transaction(
                self.db, worker_id, TX_ADVANCE_DEDUCTED, deduction, today,
                farm_id=farm, settlement_id=settlement.id,
                notes=_period_note("Advance deduction", start, end),
            )
        if net > 0:
            await crud.create_transaction(
                self.db, worker_id, TX_PAYMENT, net, today,
                farm_id=farm, settlement_id=settlement.id,
                notes=_period_note("Payment", start, end),
            )
        logger.info(
            "settlement confirmed worker=%s id=%s total=%s deduction=%s net=%s",
            worker_id, settlement.id, total, deduction, net,
        )
        return settlement

    # ---------- 出勤登錄（多農場）----------

    async def record_attendance(
        self,
        date: date,
        farm_ids: Sequence[int],
        entries: Sequence[Any],
    ) -> Dict[str, list]:
        """
        一次登錄多位工人當日出勤，並可同時勾選多個農場。
        - 長期工人：一人一筆出勤（farm_ids 為全部勾選農場），由當日工資反推覆寫日薪
        - 當日預支扣款：依農場數分攤，每農場一筆 advance_deducted，餘額只扣一次總額
        - 臨時工：每農場一筆，工資與工時依農場數分攤
        entries 每筆需有 worker_id / is_temporary / temp_name / status / salary /
        advance_deduction / work_type / hours_worked / notes（即 AttendanceEntryItem）。
        """
        farms = list(dict.fromkeys(int(f) for f in farm_ids))
        if not farms:
            raise InvalidAmount("至少需選擇一個農場")
        if len(farms) > self.max_farms:
            raise InvalidAmount(f"最多只能選擇 {self.max_farms} 個農場")
        if not entries:
            raise InvalidAmount("至少需登錄一位工人")
        await crud.ensure_farms_exist(self.db, farms)

        # 先全部檢核，再寫入
        plans: List[dict] = []
        seen_workers = set()
        for entry in entries:
            status = parse_work_status(getattr(entry, "status", AttendanceFormStatus.NOT_SET))
            work_type = normalize_work_type(getattr(entry, "work_type", None))
            notes = getattr(entry, "notes", None)
            if getattr(entry, "is_temporary", False):
                name = (getattr(entry, "temp_name", None) or "").strip()
                if not name:
                    raise InvalidAmount("臨時工姓名必填")
                if status is WorkStatus.ABSENT:
                    raise InvalidFraction("臨時工缺勤不需登錄")
                salary = to_money(getattr(entry, "salary", None), "當日工資")
                if salary <= 0:
                    raise InvalidAmount(f"{name} 當日工資必須大於 0")
                hours = getattr(entry, "hours_worked", None)
                if hours is None:
                    hours = default_hours_for_status(status, settings.full_day_hours, settings.half_day_hours)
                plans.append({
                    "temporary": True,
                    "name": name,
                    "amounts": apportion(salary, len(farms), self.max_farms),
                    "hours": apportion(hours, len(farms), self.max_farms),
                    "notes": notes,
                })
                continue

            worker_id = getattr(entry, "worker_id", None)
            if worker_id is None:
                raise UnknownWorker("請選擇工人")
            if worker_id in seen_workers:
                raise DuplicateAttendance(f"工人 {worker_id} 於同一次登錄重複出現")
            seen_workers.add(worker_id)
            worker = await self._fresh_worker(worker_id)
            if not worker.is_active:
                raise UnknownWorker(f"工人已停用：{worker.name}")

            override: Optional[Decimal] = None
            if status is not WorkStatus.ABSENT:
                override = infer_rate_override(
                    getattr(entry, "salary", None), status, worker.daily_rate, self.rate_tolerance,
                )
            deduction = to_money(getattr(entry, "advance_deduction", None) or 0, "預支扣款")
            if deduction < 0:
                raise InvalidAmount("預支扣款不可為負數")
            if deduction > 0:
                validate_deduction(deduction, worker.advance_balance)
            plans.append({
                "temporary": False,
                "worker_id": worker_id,
                "status": status,
                "work_type": work_type,
                "override": override,
                "deduction": deduction,
                "notes": notes,
            })

        attendance: List[WorkerAttendance] = []
        temporary: List[TemporaryWorkerEntry] = []
        transactions: List[WorkerTransaction] = []
        note = attendance_deduction_note(date)
        for plan in plans:
            if plan["temporary"]:
                for farm_id, amount, hours in zip(farms, plan["amounts"], plan["hours"]):
                    entry = TemporaryWorkerEntry(
                        farm_id=farm_id,
                        date=date,
                        name=plan["name"],
                        hours_worked=hours,
                        amount_paid=amount,
                        notes=plan["notes"],
                    )
                    self.db.add(entry)
                    temporary.append(entry)
                continue

            worker_id = plan["worker_id"]
            row = await crud.upsert_attendance(
                self.db, worker_id, date, farms, plan["status"].value, plan["work_type"],
                plan["override"], plan["notes"],
            )
            attendance.append(row)
            deduction = plan["deduction"]
            if deduction > 0:
                await self._change_balance(
                    worker_id,
                    lambda w, d=deduction: to_money(w.advance_balance) - validate_deduction(d, w.advance_balance),
                )
                for farm_id, amount in zip(farms, apportion(deduction, len(farms), self.max_farms)):
                    # 分攤為 0 之農場不記交易
                    if amount <= 0:
                        continue
                    tx = await crud.create_transaction(
                        self.db, worker_id, TX_ADVANCE_DEDUCTED, amount, date, farm_id=farm_id, notes=note,
                    )
                    transactions.append(tx)
        if temporary:
            await self.db.flush()
            for entry in temporary:
                await self.db.refresh(entry)
        logger.info(
            "attendance recorded date=%s farms=%s workers=%s temporary=%s deductions=%s",
            date, farms, len(attendance), len(temporary), len(transactions),
        )
        return {"attendance": attendance, "temporary_entries": temporary, "transactions": transactions}

    # ---------- 出勤修改 / 刪除 ----------

    async def update_attendance(
        self,
        attendance_id: int,
        status: Any,
        salary: Any = None,
        date: Optional[date] = None,
        work_type: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> WorkerAttendance:
        """修改單筆出勤：缺勤不存覆寫日薪、工資 0；其餘依工人目前日薪重新反推覆寫值。"""
        row = await crud.get_attendance(self.db, attendance_id)
        if row is None:
            raise UnknownAttendance(f"出勤紀錄不存在：{attendance_id}")
        new_status = parse_work_status(status)
        worker = await self._fresh_worker(row.worker_id)
        override: Optional[Decimal] = None
        if new_status is not WorkStatus.ABSENT:
            override = infer_rate_override(salary, new_status, worker.daily_rate, self.rate_tolerance)
        if date is not None and date != row.date:
            other = await crud.get_attendance_for_day(self.db, row.worker_id, date)
            if other is not None and other.id != row.id:
                raise DuplicateAttendance(f"{worker.name} 於 {date.isoformat()} 已有出勤紀錄")
            row.date = date
        row.work_status = new_status.value
        row.daily_rate_override = override
        if work_type is not None:
            row.work_type = normalize_work_type(work_type)
        if notes is not None:
            row.notes = notes or None
        await self.db.flush()
        await self.db.refresh(row)
        logger.info("attendance updated id=%s status=%s override=%s", row.id, row.work_status, override)
        return row

    async def delete_attendance(self, attendance_id: int) -> None:
        row = await crud.get_attendance(self.db, attendance_id)
        if row is None:
            raise UnknownAttendance(f"出勤紀錄不存在：{attendance_id}")
        await crud.delete_attendance(self.db, row)
        logger.info("attendance deleted id=%s worker=%s", attendance_id, row.worker_id)

