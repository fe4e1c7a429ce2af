from typing import Optional

from sqlalchemy import select

from creative_factory.db.models import Workspace, WorkspaceMember
from creative_factory.db.repositories.base import Repository


class WorkspacesRepository(Repository):
    def get(self, workspace_id: str) -> Optional[Workspace]:
        return self.session.get(Workspace, workspace_id)

    def create(self, name: str) -> Workspace:
        return self.save(Workspace(name=name))

    def get_member(self, workspace_id: str, user_id: str) -> Optional[WorkspaceMember]:
        stmt = select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == user_id,
        )
        return self.session.scalars(stmt).first()

    def add_member(self, workspace_id: str, user_id: str, role: str = "member") -> WorkspaceMember:
        return self.save(WorkspaceMember(workspace_id=workspace_id, user_id=user_id, role=role))
