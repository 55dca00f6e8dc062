"""農場與工作類別 API（出勤/交易引用檢核用）"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from farmlabor.database import get_db
from farmlabor import crud, schemas

router = APIRouter(prefix="/api/farms", tags=["farms"])
work_types_router = APIRouter(prefix="/api/work-types", tags=["work-types"])


@router.get("", response_model=List[schemas.FarmRead])
async def list_farms(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_farms(db, include_inactive=include_inactive)


@router.post("", response_model=schemas.FarmRead, status_code=201)
async def create_farm(data: schemas.FarmCreate, db: AsyncSession = Depends(get_db)):
    return await crud.create_farm(db, data)


@router.get("/{farm_id}", response_model=schemas.FarmRead)
async def get_farm(farm_id: int, db: AsyncSession = Depends(get_db)):
    farm = await crud.get_farm(db, farm_id)
    if not farm:
        raise HTTPException(status_code=404, detail="農場不存在")
    return farm


# ---------- 工作類別 ----------
@work_types_router.get("", response_model=List[schemas.WorkTypeRead])
async def list_work_types(db: AsyncSession = Depends(get_db)):
    return await crud.list_work_types(db)


@work_types_router.post("", response_model=schemas.WorkTypeRead, status_code=201)
async def create_work_type(data: schemas.WorkTypeCreate, db: AsyncSession = Depends(get_db)):
    if await crud.get_work_type_by_name(db, data.name):
        raise HTTPException(status_code=409, detail="工作類別已存在")
    return await crud.create_work_type(db, data.name)
