"""
預設工作類別：依 config/work_types.yaml 載入，無檔案時用內建預設。
名稱一律小寫；自訂類別存資料庫，不寫回 YAML。
"""
from pathlib import Path
from typing import List, Optional
import yaml

DEFAULT_WORK_TYPES = ["pruning", "harvesting", "spraying", "weeding", "fertigation", "general"]
FALLBACK_WORK_TYPE = "general"


def _rules_path() -> Path:
    # 從 farmlabor/rules 往上兩層到 backend，取 config
    return Path(__file__).resolve().parents[2] / "config" / "work_types.yaml"


def _load(path: Optional[Path] = None) -> dict:
    path = path or _rules_path()
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_default_work_types(path: Optional[Path] = None) -> List[str]:
    """回傳預設工作類別名稱（小寫、去重、保留順序）"""
    data = _load(path)
    names = data.get("work_types") or DEFAULT_WORK_TYPES
    out: List[str] = []
    for n in names:
        key = str(n or "").strip().lower()
        if key and key not in out:
            out.append(key)
    return out or list(DEFAULT_WORK_TYPES)


def default_work_type(path: Optional[Path] = None) -> str:
    data = _load(path)
    return str(data.get("default") or FALLBACK_WORK_TYPE).strip().lower()


def normalize_work_type(value: Optional[str], path: Optional[Path] = None) -> str:
    """空白 → 預設類別；其餘轉小寫"""
    key = str(value or "").strip().lower()
    return key or default_work_type(path)
