"""
資料庫連線與 Session（Async SQLAlchemy）
- PostgreSQL 一律改用 asyncpg driver（postgresql+asyncpg://）
- 正式環境不要在啟動時 create_all（交給 Alembic）；開發可設 AUTO_CREATE_TABLES=1
"""
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from farmlabor.config import settings


def normalize_database_url(url: str) -> str:
    """postgres:// / postgresql:// / postgresql+psycopg2:// → postgresql+asyncpg://"""
    db_url = str(url or "").strip()
    if db_url.startswith("postgres://"):
        return "postgresql+asyncpg://" + db_url[len("postgres://"):]
    if db_url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + db_url[len("postgresql://"):]
    if db_url.startswith("postgresql+psycopg2://"):
        return "postgresql+asyncpg://" + db_url[len("postgresql+psycopg2://"):]
    return db_url


engine = create_async_engine(
    normalize_database_url(settings.database_url),
    echo=settings.debug,
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    if not settings.auto_create_tables:
        return
    # models 需先載入，Base.metadata 才有資料表
    from farmlabor import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
