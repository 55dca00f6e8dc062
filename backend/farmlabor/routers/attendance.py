"""出勤 API：多農場批次登錄、查詢、修改、刪除。"""
from datetime import date
from typing import Optional, List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from farmlabor.database import get_db
from farmlabor import crud, schemas
from farmlabor.services.labor_service import LaborService
from farmlabor.wages.engine import record_pay

router = APIRouter(prefix="/api/attendance", tags=["attendance"])


async def _with_earnings(db: AsyncSession, rows) -> List[schemas.AttendanceRead]:
    workers = {w.id: w for w in await crud.list_workers(db, include_inactive=True)}
    out = []
    for r in rows:
        item = schemas.AttendanceRead.model_validate(r)
        worker = workers.get(r.worker_id)
        if worker is not None:
            item.earnings = record_pay(r, worker)
        out.append(item)
    return out


@router.get("", response_model=List[schemas.AttendanceRead])
async def list_attendance(
    start: Optional[date] = Query(None, description="起日（含）"),
    end: Optional[date] = Query(None, description="訖日（含）"),
    worker_id: Optional[int] = Query(None),
    farm_id: Optional[int] = Query(None, description="只列出農場集合含此農場之出勤"),
    db: AsyncSession = Depends(get_db),
):
    rows = await crud.list_attendance(db, start=start, end=end, worker_id=worker_id, farm_id=farm_id)
    return await _with_earnings(db, rows)


@router.post("/batch", response_model=schemas.AttendanceBatchResult, status_code=201)
async def record_attendance(data: schemas.AttendanceBatchCreate, db: AsyncSession = Depends(get_db)):
    """同一天、同一組農場，一次登錄多位工人（含臨時工與當日預支扣款）"""
    result = await LaborService(db).record_attendance(data.date, data.farm_ids, data.entries)
    return schemas.AttendanceBatchResult(
        attendance=await _with_earnings(db, result["attendance"]),
        temporary_entries=[schemas.TemporaryWorkerRead.model_validate(e) for e in result["temporary_entries"]],
        transactions=[schemas.TransactionRead.model_validate(t) for t in result["transactions"]],
    )


@router.put("/{attendance_id}", response_model=schemas.AttendanceRead)
async def update_attendance(
    attendance_id: int,
    data: schemas.AttendanceUpdate,
    db: AsyncSession = Depends(get_db),
):
    row = await LaborService(db).update_attendance(
        attendance_id,
        data.status,
        salary=data.salary,
        date=data.date,
        work_type=data.work_type,
        notes=data.notes,
    )
    return (await _with_earnings(db, [row]))[0]


@router.delete("/{attendance_id}", status_code=204)
async def delete_attendance(attendance_id: int, db: AsyncSession = Depends(get_db)):
    await LaborService(db).delete_attendance(attendance_id)
