"""
多農場出勤登錄與出勤修改測試。
覆蓋：覆寫日薪反推、扣款依農場分攤、臨時工每農場一筆、先全部檢核再寫入、缺勤修改。
"""
from datetime import date
from decimal import Decimal
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from farmlabor.database import Base
from farmlabor import crud
from farmlabor.errors import (
    DuplicateAttendance,
    ExceedsAdvanceBalance,
    InvalidAmount,
    InvalidFraction,
    UnknownAttendance,
    UnknownFarm,
    UnknownWorker,
)
from farmlabor.schemas import AttendanceEntryItem, FarmCreate, WorkerCreate, WorkerUpdate
from farmlabor.services.labor_service import LaborService
from farmlabor.wages.engine import record_pay

DAY = date(2024, 6, 3)


@pytest.fixture
async def async_engine_and_session():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield engine, async_session
    await engine.dispose()


async def _farms(db, n):
    return [await crud.create_farm(db, FarmCreate(name=f"Block {i + 1}")) for i in range(n)]


async def _worker(db, name="Ana", rate="300", balance="500"):
    return await crud.create_worker(db, WorkerCreate(name=name, daily_rate=Decimal(rate), advance_balance=Decimal(balance)))


@pytest.mark.asyncio
async def test_multi_farm_entry_with_deduction_and_temporary_worker(async_engine_and_session):
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        f1, f2 = await _farms(db, 2)
        worker = await _worker(db)
        entries = [
            AttendanceEntryItem(worker_id=worker.id, status="full_day", salary=Decimal("300"),
                                advance_deduction=Decimal("100"), work_type="Pruning"),
            AttendanceEntryItem(is_temporary=True, temp_name=" Joe ", status="half_day", salary=Decimal("150")),
        ]
        result = await LaborService(db).record_attendance(DAY, [f1.id, f2.id], entries)
        await db.commit()

        assert len(result["attendance"]) == 1
        row = result["attendance"][0]
        assert row.farm_ids == [f1.id, f2.id]
        assert row.work_status == "full_day"
        assert row.work_type == "pruning"
        assert row.daily_rate_override is None

        txs = result["transactions"]
        assert [t.farm_id for t in txs] == [f1.id, f2.id]
        assert [t.amount for t in txs] == [Decimal("50"), Decimal("50")]
        assert all(t.type == "advance_deducted" for t in txs)
        assert txs[0].notes == "Attendance deduction for 03 Jun 2024"

        temps = result["temporary_entries"]
        assert [t.farm_id for t in temps] == [f1.id, f2.id]
        assert [t.name for t in temps] == ["Joe", "Joe"]
        assert sum(t.amount_paid for t in temps) == Decimal("150")
        assert sum(t.hours_worked for t in temps) == Decimal("4")

        await db.refresh(worker)
        assert worker.advance_balance == Decimal("400")
        # 餘額只扣一次總額
        assert worker.version == 2


@pytest.mark.asyncio
async def test_deduction_split_across_three_farms(async_engine_and_session):
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        farms = await _farms(db, 3)
        worker = await _worker(db)
        entries = [AttendanceEntryItem(worker_id=worker.id, status="full_day", salary=Decimal("300"),
                                       advance_deduction=Decimal("100"))]
        result = await LaborService(db).record_attendance(DAY, [f.id for f in farms], entries)
        assert [t.amount for t in result["transactions"]] == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
        await db.refresh(worker)
        assert worker.advance_balance == Decimal("400")


@pytest.mark.asyncio
async def test_tiny_deduction_across_farms_skips_zero_parts(async_engine_and_session):
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        farms = await _farms(db, 3)
        worker = await _worker(db)
        entries = [AttendanceEntryItem(worker_id=worker.id, status="full_day", salary=Decimal("300"),
                                       advance_deduction=Decimal("0.02"))]
        result = await LaborService(db).record_attendance(DAY, [f.id for f in farms], entries)
        await db.commit()

        txs = result["transactions"]
        assert [(t.farm_id, t.amount) for t in txs] == [(farms[2].id, Decimal("0.02"))]
        stored = await crud.list_transactions(db, worker.id)
        assert all(t.amount > 0 for t in stored)
        assert sum(t.amount for t in stored) == Decimal("0.02")
        await db.refresh(worker)
        assert worker.advance_balance == Decimal("499.98")


@pytest.mark.asyncio
async def test_entered_salary_becomes_override_only_when_different(async_engine_and_session):
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        (farm,) = await _farms(db, 1)
        a = await _worker(db, "Ana")
        b = await _worker(db, "Ben")
        c = await _worker(db, "Cai")
        entries = [
            AttendanceEntryItem(worker_id=a.id, status="full_day", salary=Decimal("350")),
            AttendanceEntryItem(worker_id=b.id, status="half_day", salary=Decimal("150")),
            AttendanceEntryItem(worker_id=c.id, status="absent"),
        ]
        result = await LaborService(db).record_attendance(DAY, [farm.id], entries)
        by_worker = {r.worker_id: r for r in result["attendance"]}
        assert by_worker[a.id].daily_rate_override == Decimal("350")
        assert by_worker[b.id].daily_rate_override is None
        assert by_worker[c.id].daily_rate_override is None
        assert record_pay(by_worker[a.id], a) == Decimal("350")
        assert record_pay(by_worker[b.id], b) == Decimal("150")
        assert record_pay(by_worker[c.id], c) == Decimal("0")


@pytest.mark.asyncio
async def test_rerecording_same_day_replaces_row(async_engine_and_session):
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        f1, f2 = await _farms(db, 2)
        worker = await _worker(db)
        service = LaborService(db)
        await service.record_attendance(DAY, [f1.id], [AttendanceEntryItem(worker_id=worker.id, status="full_day", salary=Decimal("300"))])
        await service.record_attendance(DAY, [f2.id], [AttendanceEntryItem(worker_id=worker.id, status="half_day", salary=Decimal("150"))])
        rows = await crud.list_attendance(db, worker_id=worker.id)
        assert len(rows) == 1
        assert rows[0].work_status == "half_day"
        assert rows[0].farm_ids == [f2.id]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "bad_entry,error",
    [
        ({"status": "not_set", "salary": Decimal("300")}, InvalidFraction),
        ({"status": "full_day", "salary": Decimal("0")}, InvalidAmount),
        ({"status": "full_day"}, InvalidAmount),
        ({"status": "full_day", "salary": Decimal("300"), "advance_deduction": Decimal("-1")}, InvalidAmount),
        ({"status": "full_day", "salary": Decimal("300"), "advance_deduction": Decimal("501")}, ExceedsAdvanceBalance),
    ],
)
async def test_invalid_entry_aborts_whole_batch(async_engine_and_session, bad_entry, error):
    """任一列檢核失敗 → 整批不寫入（含前面合法的列）"""
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        (farm,) = await _farms(db, 1)
        good = await _worker(db, "Ana")
        bad = await _worker(db, "Ben")
        entries = [
            AttendanceEntryItem(worker_id=good.id, status="full_day", salary=Decimal("300"), advance_deduction=Decimal("50")),
            AttendanceEntryItem(worker_id=bad.id, **bad_entry),
        ]
        with pytest.raises(error):
            await LaborService(db).record_attendance(DAY, [farm.id], entries)
        assert await crud.list_attendance(db) == []
        assert await crud.list_transactions(db) == []
        await db.refresh(good)
        assert good.advance_balance == Decimal("500")


@pytest.mark.asyncio
async def test_farm_selection_rules(async_engine_and_session):
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        (farm,) = await _farms(db, 1)
        worker = await _worker(db)
        entry = [AttendanceEntryItem(worker_id=worker.id, status="full_day", salary=Decimal("300"))]
        service = LaborService(db)
        with pytest.raises(InvalidAmount):
            await service.record_attendance(DAY, [], entry)
        with pytest.raises(InvalidAmount):
            await service.record_attendance(DAY, list(range(1, 22)), entry)
        with pytest.raises(UnknownFarm):
            await service.record_attendance(DAY, [farm.id, 999], entry)


@pytest.mark.asyncio
async def test_inactive_unknown_and_duplicate_workers(async_engine_and_session):
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        (farm,) = await _farms(db, 1)
        worker = await _worker(db)
        service = LaborService(db)
        twice = [
            AttendanceEntryItem(worker_id=worker.id, status="full_day", salary=Decimal("300")),
            AttendanceEntryItem(worker_id=worker.id, status="half_day", salary=Decimal("150")),
        ]
        with pytest.raises(DuplicateAttendance):
            await service.record_attendance(DAY, [farm.id], twice)
        with pytest.raises(UnknownWorker):
            await service.record_attendance(DAY, [farm.id], [AttendanceEntryItem(worker_id=999, status="full_day", salary=Decimal("300"))])
        await crud.deactivate_worker(db, worker)
        with pytest.raises(UnknownWorker):
            await service.record_attendance(DAY, [farm.id], twice[:1])


@pytest.mark.asyncio
async def test_temporary_worker_hours_and_absent(async_engine_and_session):
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        (farm,) = await _farms(db, 1)
        service = LaborService(db)
        result = await service.record_attendance(DAY, [farm.id], [
            AttendanceEntryItem(is_temporary=True, temp_name="Joe", status="full_day", salary=Decimal("280")),
            AttendanceEntryItem(is_temporary=True, temp_name="Kim", status="full_day", salary=Decimal("200"),
                                hours_worked=Decimal("6")),
        ])
        hours = {t.name: t.hours_worked for t in result["temporary_entries"]}
        assert hours == {"Joe": Decimal("8"), "Kim": Decimal("6")}
        with pytest.raises(InvalidFraction):
            await service.record_attendance(DAY, [farm.id], [
                AttendanceEntryItem(is_temporary=True, temp_name="Lee", status="absent", salary=Decimal("100")),
            ])


# ---------- 出勤修改 ----------
@pytest.mark.asyncio
async def test_update_attendance_reinfers_override(async_engine_and_session):
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        (farm,) = await _farms(db, 1)
        worker = await _worker(db)
        row = await crud.upsert_attendance(db, worker.id, DAY, [farm.id], "full_day", "general", None)
        service = LaborService(db)

        row = await service.update_attendance(row.id, "full_day", salary="400", work_type="Weeding", notes="rain delay")
        assert row.daily_rate_override == Decimal("400")
        assert row.work_type == "weeding"
        assert row.notes == "rain delay"

        row = await service.update_attendance(row.id, "half_day", salary="150")
        assert row.daily_rate_override is None
        assert record_pay(row, worker) == Decimal("150")

        row = await service.update_attendance(row.id, "absent")
        assert row.work_status == "absent"
        assert row.daily_rate_override is None
        assert record_pay(row, worker) == Decimal("0")


@pytest.mark.asyncio
async def test_update_attendance_follows_current_rate(async_engine_and_session):
    """調薪後修改：與新日薪相同則不存覆寫值"""
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        (farm,) = await _farms(db, 1)
        worker = await _worker(db)
        row = await crud.upsert_attendance(db, worker.id, DAY, [farm.id], "full_day", "general", Decimal("350"))
        await crud.update_worker(db, worker, WorkerUpdate(daily_rate=Decimal("350")))
        row = await LaborService(db).update_attendance(row.id, "full_day", salary="350")
        assert row.daily_rate_override is None


@pytest.mark.asyncio
async def test_update_attendance_rejections(async_engine_and_session):
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        (farm,) = await _farms(db, 1)
        worker = await _worker(db)
        first = await crud.upsert_attendance(db, worker.id, DAY, [farm.id], "full_day", "general", None)
        other_day = date(2024, 6, 4)
        await crud.upsert_attendance(db, worker.id, other_day, [farm.id], "full_day", "general", None)
        service = LaborService(db)
        with pytest.raises(UnknownAttendance):
            await service.update_attendance(999, "full_day", salary="300")
        with pytest.raises(InvalidFraction):
            await service.update_attendance(first.id, "not_set", salary="300")
        with pytest.raises(InvalidAmount):
            await service.update_attendance(first.id, "full_day", salary="0")
        with pytest.raises(DuplicateAttendance):
            await service.update_attendance(first.id, "full_day", salary="300", date=other_day)


@pytest.mark.asyncio
async def test_delete_attendance(async_engine_and_session):
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        (farm,) = await _farms(db, 1)
        worker = await _worker(db)
        row = await crud.upsert_attendance(db, worker.id, DAY, [farm.id], "full_day", "general", None)
        service = LaborService(db)
        await service.delete_attendance(row.id)
        assert await crud.list_attendance(db) == []
        with pytest.raises(UnknownAttendance):
            await service.delete_attendance(row.id)
