"""Alembic 環境：使用 farmlabor 的 Base 與 database_url，支援 SQLite / PostgreSQL 遷移。
Alembic 以同步連線執行：asyncpg -> psycopg2、aiosqlite -> sqlite。"""
from pathlib import Path
import sys

from logging.config import fileConfig

from alembic import context

# backend 目錄加入 sys.path，不依賴 cwd
_script_dir = Path(__file__).resolve().parent
_project_root = _script_dir.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from farmlabor.config import settings
from farmlabor.database import Base, normalize_database_url
from farmlabor import models  # noqa: F401

config = context.config
if config.config_file_name is not None:
    config_path = Path(config.config_file_name).resolve()
    if config_path.exists():
        fileConfig(str(config_path))


def sync_database_url(url: str) -> str:
    """SQLite 相對路徑改為以 backend 為基準的絕對路徑"""
    db_url = normalize_database_url(url)
    if db_url.startswith("sqlite+aiosqlite"):
        db_url = db_url.replace("sqlite+aiosqlite", "sqlite", 1)
    if db_url.startswith("sqlite:///./"):
        rel = db_url.replace("sqlite:///./", "").strip()
        return "sqlite:///" + (_project_root / rel).resolve().as_posix()
    return db_url.replace("postgresql+asyncpg", "postgresql+psycopg2", 1)


target_metadata = Base.metadata
config.set_main_option("sqlalchemy.url", sync_database_url(settings.database_url))


def run_migrations_offline() -> None:
    """離線模式：只產生 SQL，不連 DB"""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=url.startswith("sqlite"),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """線上模式：連 DB 執行遷移"""
    from sqlalchemy import create_engine
    url = config.get_main_option("sqlalchemy.url")
    connectable = create_engine(url)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=url.startswith("sqlite"),
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
