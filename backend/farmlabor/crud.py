"""CRUD 操作 - 工人、農場、工作類別、出勤、交易、結算、臨時工。
預支餘額只能透過 update_advance_balance_cas 異動（比對 version，不符即 OptimisticConflict）。"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Iterable, Sequence
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from farmlabor.errors import OptimisticConflict, UnknownFarm
from farmlabor.models import (
    Farm, WorkType, Worker, WorkerAttendance, WorkerTransaction, WorkerSettlement,
    TemporaryWorkerEntry,
)
from farmlabor.schemas import (
    WorkerCreate, WorkerUpdate, FarmCreate, TemporaryWorkerCreate, TemporaryWorkerUpdate,
)


# ---------- 工人 ----------
async def get_worker(db: AsyncSession, worker_id: int) -> Optional[Worker]:
    r = await db.execute(select(Worker).where(Worker.id == worker_id))
    return r.scalar_one_or_none()


async def list_workers(
    db: AsyncSession,
    include_inactive: bool = False,
    search: Optional[str] = None,
) -> List[Worker]:
    q = select(Worker).order_by(Worker.name, Worker.id)
    if not include_inactive:
        q = q.where(Worker.is_active == True)  # noqa: E712
    if search and search.strip():
        q = q.where(Worker.name.ilike(f"%{search.strip()}%"))
    r = await db.execute(q)
    return list(r.scalars().all())


async def create_worker(db: AsyncSession, data: WorkerCreate) -> Worker:
    worker = Worker(
        name=data.name.strip(),
        daily_rate=data.daily_rate,
        advance_balance=data.advance_balance,
        is_active=True,
        version=1,
    )
    db.add(worker)
    await db.flush()
    await db.refresh(worker)
    return worker


async def update_worker(db: AsyncSession, worker: Worker, data: WorkerUpdate) -> Worker:
    update_data = data.model_dump(exclude_unset=True)
    if "name" in update_data and update_data["name"]:
        update_data["name"] = update_data["name"].strip()
    for k, v in update_data.items():
        if v is None:
            continue
        setattr(worker, k, v)
    await db.flush()
    await db.refresh(worker)
    return worker


async def deactivate_worker(db: AsyncSession, worker: Worker) -> Worker:
    """軟刪除：is_active=False；出勤/交易/結算紀錄保留。"""
    worker.is_active = False
    await db.flush()
    await db.refresh(worker)
    return worker


async def update_advance_balance_cas(
    db: AsyncSession,
    worker_id: int,
    expected_version: int,
    new_balance: Decimal,
) -> int:
    """
    比對版本後更新預支餘額：UPDATE ... WHERE id = :id AND version = :expected。
    影響 0 筆代表其他操作已先更新 → OptimisticConflict。回傳新版本號。
    """
    r = await db.execute(
        update(Worker)
        .where(Worker.id == worker_id, Worker.version == expected_version)
        .values(
            advance_balance=new_balance,
            version=Worker.version + 1,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if r.rowcount != 1:
        raise OptimisticConflict(f"工人 {worker_id} 預支餘額已被更新，請重新讀取")
    return expected_version + 1


# ---------- 農場 ----------
async def get_farm(db: AsyncSession, farm_id: int) -> Optional[Farm]:
    r = await db.execute(select(Farm).where(Farm.id == farm_id))
    return r.scalar_one_or_none()


async def list_farms(db: AsyncSession, include_inactive: bool = False) -> List[Farm]:
    q = select(Farm).order_by(Farm.id)
    if not include_inactive:
        q = q.where(Farm.is_active == True)  # noqa: E712
    r = await db.execute(q)
    return list(r.scalars().all())


async def create_farm(db: AsyncSession, data: FarmCreate) -> Farm:
    farm = Farm(name=data.name.strip(), is_active=True)
    db.add(farm)
    await db.flush()
    await db.refresh(farm)
    return farm


async def ensure_farms_exist(db: AsyncSession, farm_ids: Iterable[int]) -> None:
    """任一農場不存在即 UnknownFarm"""
    ids = {int(f) for f in farm_ids}
    if not ids:
        return
    r = await db.execute(select(Farm.id).where(Farm.id.in_(ids)))
    found = set(r.scalars().all())
    missing = sorted(ids - found)
    if missing:
        raise UnknownFarm(f"農場不存在：{', '.join(str(m) for m in missing)}")


# ---------- 工作類別 ----------
async def list_work_types(db: AsyncSession) -> List[WorkType]:
    r = await db.execute(select(WorkType).order_by(WorkType.is_default.desc(), WorkType.name))
    return list(r.scalars().all())


async def get_work_type_by_name(db: AsyncSession, name: str) -> Optional[WorkType]:
    r = await db.execute(select(WorkType).where(WorkType.name == name.strip().lower()))
    return r.scalar_one_or_none()


async def create_work_type(db: AsyncSession, name: str, is_default: bool = False) -> WorkType:
    wt = WorkType(name=name.strip().lower(), is_default=is_default)
    db.add(wt)
    await db.flush()
    await db.refresh(wt)
    return wt


async def ensure_default_work_types(db: AsyncSession, names: Sequence[str]) -> int:
    """補齊預設工作類別；已存在者略過。回傳新增筆數。"""
    r = await db.execute(select(WorkType.name))
    existing = set(r.scalars().all())
    added = 0
    for name in names:
        key = name.strip().lower()
        if not key or key in existing:
            continue
        db.add(WorkType(name=key, is_default=True))
        existing.add(key)
        added += 1
    if added:
        await db.flush()
    return added


# ---------- 出勤 ----------
async def get_attendance(db: AsyncSession, attendance_id: int) -> Optional[WorkerAttendance]:
    r = await db.execute(select(WorkerAttendance).where(WorkerAttendance.id == attendance_id))
    return r.scalar_one_or_none()


async def get_attendance_for_day(db: AsyncSession, worker_id: int, day: date) -> Optional[WorkerAttendance]:
    r = await db.execute(
        select(WorkerAttendance).where(
            WorkerAttendance.worker_id == worker_id,
            WorkerAttendance.date == day,
        )
    )
    return r.scalar_one_or_none()


async def list_attendance(
    db: AsyncSession,
    start: Optional[date] = None,
    end: Optional[date] = None,
    worker_id: Optional[int] = None,
    farm_id: Optional[int] = None,
) -> List[WorkerAttendance]:
    """依日期區間（含起訖）/工人/農場查詢。farm_ids 為 JSON 陣列，農場篩選在 Python 端做。"""
    q = select(WorkerAttendance).order_by(WorkerAttendance.date, WorkerAttendance.id)
    if start is not None:
        q = q.where(WorkerAttendance.date >= start)
    if end is not None:
        q = q.where(WorkerAttendance.date <= end)
    if worker_id is not None:
        q = q.where(WorkerAttendance.worker_id == worker_id)
    r = await db.execute(q)
    rows = list(r.scalars().all())
    if farm_id is not None:
        rows = [a for a in rows if farm_id in {int(f) for f in (a.farm_ids or [])}]
    return rows


async def upsert_attendance(
    db: AsyncSession,
    worker_id: int,
    day: date,
    farm_ids: List[int],
    work_status: str,
    work_type: str,
    daily_rate_override: Optional[Decimal],
    notes: Optional[str] = None,
) -> WorkerAttendance:
    """同一工人同一天只保留一筆：已存在則覆蓋內容。"""
    row = await get_attendance_for_day(db, worker_id, day)
    if row is None:
        row = WorkerAttendance(worker_id=worker_id, date=day)
        db.add(row)
    row.farm_ids = [int(f) for f in farm_ids]
    row.work_status = work_status
    row.work_type = work_type
    row.daily_rate_override = daily_rate_override
    row.notes = notes
    await db.flush()
    await db.refresh(row)
    return row


async def delete_attendance(db: AsyncSession, row: WorkerAttendance) -> None:
    await db.delete(row)
    await db.flush()


# ---------- 交易 ----------
async def create_transaction(
    db: AsyncSession,
    worker_id: int,
    type: str,
    amount: Decimal,
    day: date,
    farm_id: Optional[int] = None,
    settlement_id: Optional[int] = None,
    notes: Optional[str] = None,
) -> WorkerTransaction:
    tx = WorkerTransaction(
        worker_id=worker_id,
        farm_id=farm_id,
        date=day,
        type=type,
        amount=amount,
        settlement_id=settlement_id,
        notes=notes,
    )
    db.add(tx)
    await db.flush()
    await db.refresh(tx)
    return tx


async def list_transactions(
    db: AsyncSession,
    worker_id: Optional[int] = None,
    type: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    farm_id: Optional[int] = None,
) -> List[WorkerTransaction]:
    q = select(WorkerTransaction).order_by(WorkerTransaction.date.desc(), WorkerTransaction.id.desc())
    if worker_id is not None:
        q = q.where(WorkerTransaction.worker_id == worker_id)
    if type:
        q = q.where(WorkerTransaction.type == type)
    if start is not None:
        q = q.where(WorkerTransaction.date >= start)
    if end is not None:
        q = q.where(WorkerTransaction.date <= end)
    if farm_id is not None:
        q = q.where(WorkerTransaction.farm_id == farm_id)
    r = await db.execute(q)
    return list(r.scalars().all())


# ---------- 結算 ----------
async def create_settlement(db: AsyncSession, **fields) -> WorkerSettlement:
    settlement = WorkerSettlement(**fields)
    db.add(settlement)
    await db.flush()
    await db.refresh(settlement)
    return settlement


async def get_settlement(db: AsyncSession, settlement_id: int) -> Optional[WorkerSettlement]:
    r = await db.execute(select(WorkerSettlement).where(WorkerSettlement.id == settlement_id))
    return r.scalar_one_or_none()


async def list_settlements(db: AsyncSession, worker_id: Optional[int] = None) -> List[WorkerSettlement]:
    q = select(WorkerSettlement).order_by(WorkerSettlement.created_at.desc(), WorkerSettlement.id.desc())
    if worker_id is not None:
        q = q.where(WorkerSettlement.worker_id == worker_id)
    r = await db.execute(q)
    return list(r.scalars().all())


async def count_settlements(db: AsyncSession, worker_id: int) -> int:
    r = await db.execute(select(func.count(WorkerSettlement.id)).where(WorkerSettlement.worker_id == worker_id))
    return int(r.scalar() or 0)


# ---------- 臨時工 ----------
async def get_temporary_entry(db: AsyncSession, entry_id: int) -> Optional[TemporaryWorkerEntry]:
    r = await db.execute(select(TemporaryWorkerEntry).where(TemporaryWorkerEntry.id == entry_id))
    return r.scalar_one_or_none()


async def list_temporary_entries(
    db: AsyncSession,
    start: Optional[date] = None,
    end: Optional[date] = None,
    farm_id: Optional[int] = None,
) -> List[TemporaryWorkerEntry]:
    q = select(TemporaryWorkerEntry).order_by(TemporaryWorkerEntry.date.desc(), TemporaryWorkerEntry.id)
    if start is not None:
        q = q.where(TemporaryWorkerEntry.date >= start)
    if end is not None:
        q = q.where(TemporaryWorkerEntry.date <= end)
    if farm_id is not None:
        q = q.where(TemporaryWorkerEntry.farm_id == farm_id)
    r = await db.execute(q)
    return list(r.scalars().all())


async def create_temporary_entry(db: AsyncSession, data: TemporaryWorkerCreate) -> TemporaryWorkerEntry:
    entry = TemporaryWorkerEntry(**data.model_dump())
    entry.name = entry.name.strip()
    db.add(entry)
    await db.flush()
    await db.refresh(entry)
    return entry


async def update_temporary_entry(
    db: AsyncSession, entry: TemporaryWorkerEntry, data: TemporaryWorkerUpdate
) -> TemporaryWorkerEntry:
    for k, v in data.model_dump(exclude_unset=True).items():
        if v is None and k != "notes":
            continue
        setattr(entry, k, v)
    await db.flush()
    await db.refresh(entry)
    return entry


async def delete_temporary_entry(db: AsyncSession, entry: TemporaryWorkerEntry) -> None:
    await db.delete(entry)
    await db.flush()
