"""人力成本統計測試：缺勤排除、覆寫日薪、農場篩選、預支回收、臨時工彙總。"""
from datetime import date
from decimal import Decimal
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from farmlabor.database import Base
from farmlabor import crud
from farmlabor.errors import InvalidPeriod
from farmlabor.schemas import FarmCreate, TemporaryWorkerCreate, WorkerCreate
from farmlabor.services.labor_analytics import labor_cost_summary
from farmlabor.services.labor_service import LaborService

START, END = date(2024, 6, 1), date(2024, 6, 30)


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


async def _seed(db):
    f1 = await crud.create_farm(db, FarmCreate(name="North Block"))
    f2 = await crud.create_farm(db, FarmCreate(name="River Vineyard"))
    ana = await crud.create_worker(db, WorkerCreate(name="Ana", daily_rate=Decimal("300"), advance_balance=Decimal("200")))
    ben = await crud.create_worker(db, WorkerCreate(name="Ben", daily_rate=Decimal("400")))
    await crud.upsert_attendance(db, ana.id, date(2024, 6, 3), [f1.id], "full_day", "pruning", None)
    await crud.upsert_attendance(db, ana.id, date(2024, 6, 4), [f1.id, f2.id], "half_day", "harvesting", None)
    await crud.upsert_attendance(db, ben.id, date(2024, 6, 3), [f2.id], "full_day", "pruning", Decimal("500"))
    await crud.upsert_attendance(db, ben.id, date(2024, 6, 4), [f1.id], "absent", "general", None)
    # 期間外
    await crud.upsert_attendance(db, ana.id, date(2024, 7, 1), [f1.id], "full_day", "pruning", None)

    service = LaborService(db)
    await service.deduct_advance(ana.id, "50", date(2024, 6, 5), farm_id=f1.id)
    await service.deduct_advance(ana.id, "30", date(2024, 6, 6), farm_id=f2.id)
    await crud.create_temporary_entry(db, TemporaryWorkerCreate(
        farm_id=f1.id, date=date(2024, 6, 3), name="Joe", hours_worked=Decimal("8"), amount_paid=Decimal("200")))
    await crud.create_temporary_entry(db, TemporaryWorkerCreate(
        farm_id=f2.id, date=date(2024, 6, 4), name="Joe", hours_worked=Decimal("4"), amount_paid=Decimal("100")))
    return f1, f2, ana, ben


@pytest.mark.asyncio
async def test_summary_all_farms(async_engine_and_session):
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        f1, f2, ana, ben = await _seed(db)
        s = await labor_cost_summary(db, START, END)

        assert s.total_labor_cost == Decimal("950")
        assert s.total_days_worked == Decimal("2.5")
        types = {t.work_type: t for t in s.by_work_type}
        assert set(types) == {"pruning", "harvesting"}
        assert types["pruning"].total_cost == Decimal("800")
        assert types["pruning"].days_worked == Decimal("2")
        assert types["pruning"].avg_daily_rate == Decimal("400")
        assert types["harvesting"].avg_daily_rate == Decimal("300")

        workers = {w.worker_id: w for w in s.by_worker}
        assert workers[ana.id].total_cost == Decimal("450")
        assert workers[ana.id].advance_recovered == Decimal("80")
        assert workers[ana.id].advance_balance == Decimal("120")
        assert workers[ben.id].total_cost == Decimal("500")
        assert workers[ben.id].days_worked == Decimal("1")
        # 成本高者在前
        assert s.by_worker[0].worker_id == ben.id

        assert s.advance_recovered == Decimal("80")
        assert s.temporary_total_paid == Decimal("300")
        assert len(s.temporary_workers) == 1
        joe = s.temporary_workers[0]
        assert (joe.name, joe.total_paid, joe.total_hours, joe.entries) == ("Joe", Decimal("300"), Decimal("12"), 2)


@pytest.mark.asyncio
async def test_summary_single_farm(async_engine_and_session):
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        f1, f2, ana, ben = await _seed(db)
        s = await labor_cost_summary(db, START, END, farm_id=f1.id)
        assert s.farm_id == f1.id
        # 多農場出勤全額計入各農場
        assert s.total_labor_cost == Decimal("450")
        assert s.total_days_worked == Decimal("1.5")
        assert s.advance_recovered == Decimal("50")
        assert s.temporary_total_paid == Decimal("200")
        assert [w.worker_id for w in s.by_worker] == [ana.id]


@pytest.mark.asyncio
async def test_summary_empty_and_reversed_period(async_engine_and_session):
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        s = await labor_cost_summary(db, START, END)
        assert s.total_labor_cost == Decimal("0")
        assert s.by_worker == []
        with pytest.raises(InvalidPeriod):
            await labor_cost_summary(db, END, START)
