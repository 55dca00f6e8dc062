"""結算 API：期間試算（不異動）、確認結算（扣預支、建結算單與交易）、查詢。"""
from datetime import date
from typing import Optional, List
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from farmlabor.database import get_db
from farmlabor import crud, schemas
from farmlabor.errors import UnknownWorker
from farmlabor.services.labor_service import LaborService
from farmlabor.wages.engine import calculate_settlement

router = APIRouter(prefix="/api/settlements", tags=["settlements"])


async def _calculate(db: AsyncSession, worker_id: int, period_start: date, period_end: date, farm_id: Optional[int]):
    worker = await crud.get_worker(db, worker_id)
    if worker is None:
        raise UnknownWorker(f"工人不存在：{worker_id}")
    if farm_id is not None:
        await crud.ensure_farms_exist(db, [farm_id])
    records = await crud.list_attendance(db, start=period_start, end=period_end, worker_id=worker_id)
    return worker, calculate_settlement(worker, records, period_start, period_end, farm_id=farm_id)


@router.get("/preview", response_model=schemas.SettlementPreview)
async def preview_settlement(
    worker_id: int = Query(...),
    period_start: date = Query(..., description="起日（含）"),
    period_end: date = Query(..., description="訖日（含）"),
    farm_id: Optional[int] = Query(None, description="不傳則跨全部農場"),
    db: AsyncSession = Depends(get_db),
):
    worker, calc = await _calculate(db, worker_id, period_start, period_end, farm_id)
    return schemas.SettlementPreview(
        worker_id=worker_id,
        farm_id=farm_id,
        period_start=calc.period_start,
        period_end=calc.period_end,
        days_worked=calc.days_worked,
        gross_amount=calc.gross_amount,
        advance_balance=worker.advance_balance,
        attendance_details=[schemas.AttendanceDetailRead.model_validate(d) for d in calc.attendance_details],
    )


@router.post("", response_model=schemas.SettlementRead, status_code=201)
async def confirm_settlement(data: schemas.SettlementConfirm, db: AsyncSession = Depends(get_db)):
    """確認即定案（status=confirmed）；重複送出會建立第二張結算單"""
    _, calc = await _calculate(db, data.worker_id, data.period_start, data.period_end, data.farm_id)
    return await LaborService(db).confirm_settlement(
        data.worker_id,
        calc,
        data.total_salary,
        data.advance_deduction,
        farm_id=data.farm_id,
        notes=data.notes,
    )


@router.get("", response_model=List[schemas.SettlementRead])
async def list_settlements(
    worker_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_settlements(db, worker_id=worker_id)


@router.get("/{settlement_id}", response_model=schemas.SettlementRead)
async def get_settlement(settlement_id: int, db: AsyncSession = Depends(get_db)):
    s = await crud.get_settlement(db, settlement_id)
    if not s:
        raise HTTPException(status_code=404, detail="結算單不存在")
    return s
