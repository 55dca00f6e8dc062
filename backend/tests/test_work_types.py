"""
工作類別規則測試。
測試：config/work_types.yaml 載入、自訂 YAML、無檔案時內建預設、資料庫補齊預設類別。
"""
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from farmlabor.database import Base
from farmlabor import crud
from farmlabor.rules.work_types import (
    DEFAULT_WORK_TYPES,
    default_work_type,
    load_default_work_types,
    normalize_work_type,
)


def test_bundled_yaml_lists_default_work_types():
    names = load_default_work_types()
    assert names == ["pruning", "harvesting", "spraying", "weeding", "fertigation", "general"]
    assert default_work_type() == "general"


def test_custom_yaml_is_lowercased_and_deduplicated(tmp_path):
    path = tmp_path / "work_types.yaml"
    path.write_text("work_types:\n  - Pruning\n  - ' pruning '\n  - Irrigation\ndefault: Irrigation\n", encoding="utf-8")
    assert load_default_work_types(path) == ["pruning", "irrigation"]
    assert default_work_type(path) == "irrigation"
    assert normalize_work_type("", path) == "irrigation"


def test_missing_yaml_falls_back_to_builtin(tmp_path):
    missing = tmp_path / "nope.yaml"
    assert load_default_work_types(missing) == DEFAULT_WORK_TYPES
    assert default_work_type(missing) == "general"


def test_normalize_work_type():
    assert normalize_work_type("Harvesting ") == "harvesting"
    assert normalize_work_type(None) == "general"
    assert normalize_work_type("   ") == "general"


@pytest.fixture
async def async_engine_and_session():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield engine, async_session
    await engine.dispose()


@pytest.mark.asyncio
async def test_ensure_default_work_types_is_repeatable(async_engine_and_session):
    engine, async_session = async_engine_and_session
    async with async_session() as db:
        await crud.create_work_type(db, "Trellising")
        assert await crud.ensure_default_work_types(db, load_default_work_types()) == 6
        assert await crud.ensure_default_work_types(db, load_default_work_types()) == 0
        types = await crud.list_work_types(db)
        assert len(types) == 7
        # 預設類別排在自訂類別前
        assert types[-1].name == "trellising"
        assert types[-1].is_default is False
