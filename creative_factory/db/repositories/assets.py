from typing import Any, List, Optional

from sqlalchemy import select

from creative_factory.db.enums import CreativeAssetTypeEnum
from creative_factory.db.models import CreativeAsset
from creative_factory.db.repositories.base import Repository


class CreativeAssetsRepository(Repository):
    def add(
        self,
        *,
        workspace_id: str,
        job_id: str,
        asset_type: CreativeAssetTypeEnum,
        url: Optional[str],
        meta: Optional[dict[str, Any]] = None,
        commit: bool = True,
    ) -> CreativeAsset:
        row = CreativeAsset(
            workspace_id=workspace_id,
            job_id=job_id,
            asset_type=asset_type,
            url=url,
            meta=meta or {},
        )
        return self._persist(row, commit=commit)

    def list_for_job(
        self,
        workspace_id: str,
        job_id: str,
        asset_types: Optional[list[CreativeAssetTypeEnum]] = None,
    ) -> List[CreativeAsset]:
        stmt = select(CreativeAsset).where(
            CreativeAsset.workspace_id == workspace_id,
            CreativeAsset.job_id == job_id,
        )
        if asset_types:
            stmt = stmt.where(CreativeAsset.asset_type.in_(asset_types))
        stmt = stmt.order_by(CreativeAsset.created_at, CreativeAsset.id)
        return list(self.session.scalars(stmt).all())
