"""Seed 預設工作類別：依 config/work_types.yaml 補齊 work_types（需先執行 alembic upgrade）。
可加 --farm 名稱 一併建立農場，例：python scripts/seed_work_types.py --farm "North Block" --farm "River Vineyard"
"""
import argparse
import asyncio
import sys
from pathlib import Path

# 專案根目錄
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from farmlabor import crud
from farmlabor.database import AsyncSessionLocal
from farmlabor.rules.work_types import load_default_work_types
from farmlabor.schemas import FarmCreate


async def run(farm_names):
    names = load_default_work_types()
    async with AsyncSessionLocal() as db:
        added = await crud.ensure_default_work_types(db, names)
        print(f"工作類別：新增 {added} 筆（預設共 {len(names)} 筆）")
        existing = {f.name for f in await crud.list_farms(db, include_inactive=True)}
        for name in farm_names:
            if name in existing:
                print(f"農場已存在，略過：{name}")
                continue
            farm = await crud.create_farm(db, FarmCreate(name=name))
            print(f"已建立農場：{farm.id} {farm.name}")
        await db.commit()
    print("Seed 完成。")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--farm", action="append", default=[], help="建立農場（可重複）")
    args = parser.parse_args()
    asyncio.run(run(args.farm))
