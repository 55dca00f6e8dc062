"""臨時工紀錄 API：無工人主檔、無預支，金額由操作者直接輸入。"""
from datetime import date
from typing import Optional, List
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from farmlabor.database import get_db
from farmlabor import crud, schemas

router = APIRouter(prefix="/api/temporary-workers", tags=["temporary-workers"])


async def _get_entry_or_404(db: AsyncSession, entry_id: int):
    entry = await crud.get_temporary_entry(db, entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail="臨時工紀錄不存在")
    return entry


@router.get("", response_model=List[schemas.TemporaryWorkerRead])
async def list_temporary_entries(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    farm_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_temporary_entries(db, start=start, end=end, farm_id=farm_id)


@router.post("", response_model=schemas.TemporaryWorkerRead, status_code=201)
async def create_temporary_entry(data: schemas.TemporaryWorkerCreate, db: AsyncSession = Depends(get_db)):
    await crud.ensure_farms_exist(db, [data.farm_id])
    return await crud.create_temporary_entry(db, data)


@router.patch("/{entry_id}", response_model=schemas.TemporaryWorkerRead)
async def update_temporary_entry(
    entry_id: int,
    data: schemas.TemporaryWorkerUpdate,
    db: AsyncSession = Depends(get_db),
):
    entry = await _get_entry_or_404(db, entry_id)
    if data.farm_id is not None:
        await crud.ensure_farms_exist(db, [data.farm_id])
    return await crud.update_temporary_entry(db, entry, data)


@router.delete("/{entry_id}", status_code=204)
async def delete_temporary_entry(entry_id: int, db: AsyncSession = Depends(get_db)):
    entry = await _get_entry_or_404(db, entry_id)
    await crud.delete_temporary_entry(db, entry)
