"""
人力成本統計（期間含起訖日）。

- 長期工人：排除缺勤，單筆成本 = 日薪(覆寫優先) × 日比例，依工作類別、工人彙總。
- 指定農場時只計入農場集合含該農場之出勤；多農場出勤以全額計入（與結算試算一致）。
- 預支回收 = 期間內 advance_deducted 交易合計（指定農場時只算該農場交易）。
- 臨時工：依姓名彙總實付金額與工時。
"""
from collections import OrderedDict
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from farmlabor import crud
from farmlabor.errors import InvalidPeriod
from farmlabor.models import Worker
from farmlabor.schemas import LaborCostSummary, TemporaryWorkerCost, WorkerCost, WorkTypeCost
from farmlabor.wages.engine import CENT, ZERO, WorkStatus, parse_work_status, record_pay, status_to_fraction, to_money


def _avg(cost: Decimal, days: Decimal) -> Decimal:
    if days <= 0:
        return ZERO
    return (cost / days).quantize(CENT, rounding=ROUND_HALF_UP)


async def labor_cost_summary(
    db: AsyncSession,
    start: date,
    end: date,
    farm_id: Optional[int] = None,
) -> LaborCostSummary:
    if start > end:
        raise InvalidPeriod("統計起日不可晚於訖日")
    workers: Dict[int, Worker] = {w.id: w for w in await crud.list_workers(db, include_inactive=True)}
    records = await crud.list_attendance(db, start=start, end=end, farm_id=farm_id)

    total_cost = ZERO
    total_days = Decimal("0")
    by_type: "OrderedDict[str, dict]" = OrderedDict()
    by_worker: "OrderedDict[int, dict]" = OrderedDict()
    for r in records:
        if parse_work_status(r.work_status) is WorkStatus.ABSENT:
            continue
        worker = workers.get(r.worker_id)
        if worker is None:
            continue
        cost = record_pay(r, worker)
        fraction = status_to_fraction(r.work_status)
        total_cost += cost
        total_days += fraction
        t = by_type.setdefault(r.work_type or "general", {"cost": ZERO, "days": Decimal("0")})
        t["cost"] += cost
        t["days"] += fraction
        w = by_worker.setdefault(r.worker_id, {"cost": ZERO, "days": Decimal("0")})
        w["cost"] += cost
        w["days"] += fraction

    recovered_by_worker: Dict[int, Decimal] = {}
    advance_recovered = ZERO
    for tx in await crud.list_transactions(db, type="advance_deducted", start=start, end=end, farm_id=farm_id):
        amount = to_money(tx.amount)
        advance_recovered += amount
        recovered_by_worker[tx.worker_id] = recovered_by_worker.get(tx.worker_id, ZERO) + amount
        by_worker.setdefault(tx.worker_id, {"cost": ZERO, "days": Decimal("0")})

    temps: "OrderedDict[str, dict]" = OrderedDict()
    temporary_total = ZERO
    for e in sorted(await crud.list_temporary_entries(db, start=start, end=end, farm_id=farm_id), key=lambda x: (x.date, x.id)):
        paid = to_money(e.amount_paid)
        temporary_total += paid
        t = temps.setdefault(e.name, {"paid": ZERO, "hours": Decimal("0"), "entries": 0})
        t["paid"] += paid
        t["hours"] += Decimal(e.hours_worked or 0)
        t["entries"] += 1

    worker_rows = []
    for worker_id, data in by_worker.items():
        worker = workers.get(worker_id)
        worker_rows.append(WorkerCost(
            worker_id=worker_id,
            worker_name=worker.name if worker else "Unknown",
            total_cost=data["cost"],
            days_worked=data["days"],
            advance_recovered=recovered_by_worker.get(worker_id, ZERO),
            advance_balance=to_money(worker.advance_balance) if worker else ZERO,
        ))
    worker_rows.sort(key=lambda x: (-x.total_cost, x.worker_name))

    return LaborCostSummary(
        period_start=start,
        period_end=end,
        farm_id=farm_id,
        total_labor_cost=total_cost,
        total_days_worked=total_days,
        advance_recovered=advance_recovered,
        temporary_total_paid=temporary_total,
        by_work_type=[
            WorkTypeCost(work_type=k, total_cost=v["cost"], days_worked=v["days"], avg_daily_rate=_avg(v["cost"], v["days"]))
            for k, v in by_type.items()
        ],
        by_worker=worker_rows,
        temporary_workers=[
            TemporaryWorkerCost(name=k, total_paid=v["paid"], total_hours=v["hours"], entries=v["entries"])
            for k, v in temps.items()
        ],
    )
