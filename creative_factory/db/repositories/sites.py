from typing import Optional

from sqlalchemy import select

from creative_factory.db.models import BrandKit, Site
from creative_factory.db.repositories.base import Repository


class SitesRepository(Repository):
    def get(self, workspace_id: str, site_id: str) -> Optional[Site]:
        stmt = select(Site).where(Site.workspace_id == workspace_id, Site.id == site_id)
        return self.session.scalars(stmt).first()

    def create(self, workspace_id: str, name: Optional[str] = None, domain: Optional[str] = None) -> Site:
        return self.save(Site(workspace_id=workspace_id, name=name, domain=domain))

    def get_brand_kit(self, workspace_id: str, site_id: str) -> Optional[BrandKit]:
        stmt = select(BrandKit).where(BrandKit.workspace_id == workspace_id, BrandKit.site_id == site_id)
        return self.session.scalars(stmt).first()

    def upsert_brand_kit(self, workspace_id: str, site_id: str, **fields) -> BrandKit:
        kit = self.get_brand_kit(workspace_id, site_id)
        if kit is None:
            kit = BrandKit(workspace_id=workspace_id, site_id=site_id)
        for key, value in fields.items():
            setattr(kit, key, value)
        return self.save(kit)
