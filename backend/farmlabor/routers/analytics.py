"""人力成本統計 API"""
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from farmlabor.database import get_db
from farmlabor import schemas
from farmlabor.services.labor_analytics import labor_cost_summary

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/labor-cost", response_model=schemas.LaborCostSummary)
async def get_labor_cost(
    start: date = Query(..., description="起日（含）"),
    end: date = Query(..., description="訖日（含）"),
    farm_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await labor_cost_summary(db, start, end, farm_id=farm_id)
