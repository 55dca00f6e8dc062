"""工人 CRUD 與預支/扣款 API。停用為軟刪除；預支餘額只能經 /advances、/deductions 或結算異動。"""
from datetime import date
from typing import Optional, List
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from farmlabor.database import get_db
from farmlabor import crud, schemas
from farmlabor.services.labor_service import LaborService
from farmlabor.wages.engine import record_pay

router = APIRouter(prefix="/api/workers", tags=["workers"])


async def _get_worker_or_404(db: AsyncSession, worker_id: int):
    worker = await crud.get_worker(db, worker_id)
    if not worker:
        raise HTTPException(status_code=404, detail="工人不存在")
    return worker


@router.get("", response_model=List[schemas.WorkerRead])
async def list_workers(
    include_inactive: bool = Query(False, description="是否含已停用工人"),
    search: Optional[str] = Query(None, description="搜尋姓名（部分符合）"),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_workers(db, include_inactive=include_inactive, search=search)


@router.post("", response_model=schemas.WorkerRead, status_code=201)
async def create_worker(data: schemas.WorkerCreate, db: AsyncSession = Depends(get_db)):
    return await crud.create_worker(db, data)


@router.get("/{worker_id}", response_model=schemas.WorkerRead)
async def get_worker(worker_id: int, db: AsyncSession = Depends(get_db)):
    return await _get_worker_or_404(db, worker_id)


@router.patch("/{worker_id}", response_model=schemas.WorkerRead)
async def update_worker(
    worker_id: int,
    data: schemas.WorkerUpdate,
    db: AsyncSession = Depends(get_db),
):
    worker = await _get_worker_or_404(db, worker_id)
    return await crud.update_worker(db, worker, data)


@router.delete("/{worker_id}", response_model=schemas.WorkerRead)
async def deactivate_worker(worker_id: int, db: AsyncSession = Depends(get_db)):
    """軟刪除：歷史出勤、交易、結算保留"""
    worker = await _get_worker_or_404(db, worker_id)
    return await crud.deactivate_worker(db, worker)


# ---------- 歷史 ----------
@router.get("/{worker_id}/attendance", response_model=List[schemas.AttendanceRead])
async def list_worker_attendance(
    worker_id: int,
    start: Optional[date] = Query(None, description="起日（含）"),
    end: Optional[date] = Query(None, description="訖日（含）"),
    db: AsyncSession = Depends(get_db),
):
    worker = await _get_worker_or_404(db, worker_id)
    rows = await crud.list_attendance(db, start=start, end=end, worker_id=worker_id)
    out = []
    for r in reversed(rows):
        item = schemas.AttendanceRead.model_validate(r)
        item.earnings = record_pay(r, worker)
        out.append(item)
    return out


@router.get("/{worker_id}/transactions", response_model=List[schemas.TransactionRead])
async def list_worker_transactions(
    worker_id: int,
    type: Optional[str] = Query(None, description="advance_given / advance_deducted / payment"),
    db: AsyncSession = Depends(get_db),
):
    await _get_worker_or_404(db, worker_id)
    return await crud.list_transactions(db, worker_id=worker_id, type=type)


@router.get("/{worker_id}/settlements", response_model=List[schemas.SettlementRead])
async def list_worker_settlements(worker_id: int, db: AsyncSession = Depends(get_db)):
    await _get_worker_or_404(db, worker_id)
    return await crud.list_settlements(db, worker_id=worker_id)


# ---------- 預支 / 扣款 ----------
@router.post("/{worker_id}/advances", response_model=schemas.TransactionRead, status_code=201)
async def give_advance(
    worker_id: int,
    data: schemas.AdvanceCreate,
    db: AsyncSession = Depends(get_db),
):
    return await LaborService(db).give_advance(
        worker_id, data.amount, data.date, farm_id=data.farm_id, notes=data.notes,
    )


@router.post("/{worker_id}/deductions", response_model=schemas.TransactionRead, status_code=201)
async def deduct_advance(
    worker_id: int,
    data: schemas.AdvanceCreate,
    db: AsyncSession = Depends(get_db),
):
    return await LaborService(db).deduct_advance(
        worker_id, data.amount, data.date, farm_id=data.farm_id, notes=data.notes,
    )
