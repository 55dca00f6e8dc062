"""農場工人出勤與薪資結算 API"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from farmlabor.config import settings
from farmlabor.database import AsyncSessionLocal, init_db
from farmlabor.errors import LaborError, http_status_for
from farmlabor.routers import analytics, attendance, farms, settlements, temporary_workers, workers

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


async def _seed_work_types() -> None:
    from farmlabor import crud
    from farmlabor.rules.work_types import load_default_work_types

    async with AsyncSessionLocal() as db:
        added = await crud.ensure_default_work_types(db, load_default_work_types())
        await db.commit()
    if added:
        logger.info("default work types added: %s", added)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await init_db()
    # 開發模式自動建表時一併補齊預設工作類別；正式環境由 scripts/seed_work_types.py 處理
    if settings.auto_create_tables:
        await _seed_work_types()
    yield


app = FastAPI(
    title=settings.app_name,
    description="Farm labor attendance, advances and wage settlement",
    version="1.0.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(workers.router)
app.include_router(farms.router)
app.include_router(farms.work_types_router)
app.include_router(attendance.router)
app.include_router(settlements.router)
app.include_router(temporary_workers.router)
app.include_router(analytics.router)


@app.exception_handler(LaborError)
async def labor_error_handler(request, exc: LaborError):
    return JSONResponse(
        status_code=http_status_for(exc),
        content={"detail": exc.message, "code": exc.code},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request, exc):
    if isinstance(exc, HTTPException):
        raise exc
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    detail = str(exc) if exc else "Internal Server Error"
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
    )


@app.get("/")
def home():
    return {"message": "農場工人薪資系統運行中"}
