# src/design2code/dao/asset/path_asset_dao.py

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects import postgresql, sqlite
from typing import Optional

from design2code.dao.base_dao import BaseDao
from design2code.db.base import utcnow
from design2code.models.asset import PathAsset

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

class PathAssetDao(BaseDao[PathAsset]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(PathAsset, db_session)

    async def get_by_digest(self, digest: str) -> Optional[PathAsset]:
        return await self.get_by_pk(digest)

    async def upsert(self, digest: str, image_url: str, path_data: str, fill_style: Optional[str]) -> None:
        """
        以 digest 为键的幂等写入。并发转换同一 digest 时后写覆盖先写, 内容相同故结果一致。
        """
        dialect = self.db_session.bind.dialect.name
        insert_fn = _UPSERT_DIALECTS.get(dialect)
        if insert_fn is None:
            raise NotImplementedError(f"Upsert is not supported for dialect '{dialect}'")

        now = utcnow()
        stmt = insert_fn(PathAsset).values(
            digest=digest,
            image_url=image_url,
            path_data=path_data,
            fill_style=fill_style,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[PathAsset.digest],
            set_={
                "image_url": stmt.excluded.image_url,
                "path_data": stmt.excluded.path_data,
                "fill_style": stmt.excluded.fill_style,
                "updated_at": now,
            }
        )
        await self.db_session.execute(stmt)
