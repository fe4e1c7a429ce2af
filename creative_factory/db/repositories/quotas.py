from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from creative_factory.db.models import WorkspaceQuota
from creative_factory.db.repositories.base import Repository


class WorkspaceQuotasRepository(Repository):
    """
    Concurrency counter per workspace.

    The counter is only ever changed through conditional UPDATE statements so two
    request handlers admitting work for the same workspace cannot both read the same
    value and write back a stale one.
    """

    def get(self, workspace_id: str) -> Optional[WorkspaceQuota]:
        return self.session.get(WorkspaceQuota, workspace_id)

    def ensure_row(self, workspace_id: str) -> None:
        if self.get(workspace_id) is not None:
            return
        self.session.add(WorkspaceQuota(workspace_id=workspace_id, concurrent_runs=0))
        try:
            self.session.commit()
        except IntegrityError:
            # Another handler created it first.
            self.session.rollback()

    def try_increment(self, workspace_id: str, ceiling: int) -> bool:
        stmt = (
            update(WorkspaceQuota)
            .where(
                WorkspaceQuota.workspace_id == workspace_id,
                WorkspaceQuota.concurrent_runs < ceiling,
            )
            .values(
                concurrent_runs=WorkspaceQuota.concurrent_runs + 1,
                updated_at=datetime.now(timezone.utc),
            )
        )
        result = self.session.execute(stmt)
        self.session.commit()
        return result.rowcount == 1

    def decrement(self, workspace_id: str) -> bool:
        stmt = (
            update(WorkspaceQuota)
            .where(
                WorkspaceQuota.workspace_id == workspace_id,
                WorkspaceQuota.concurrent_runs > 0,
            )
            .values(
                concurrent_runs=WorkspaceQuota.concurrent_runs - 1,
                updated_at=datetime.now(timezone.utc),
            )
        )
        result = self.session.execute(stmt)
        self.session.commit()
        return result.rowcount == 1

    def current(self, workspace_id: str) -> int:
        row = self.get(workspace_id)
        if row is None:
            return 0
        self.session.refresh(row)
        return row.concurrent_runs
