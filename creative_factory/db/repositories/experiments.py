from typing import Optional

from sqlalchemy import select

from creative_factory.db.models import Experiment
from creative_factory.db.repositories.base import Repository


class ExperimentsRepository(Repository):
    def get(self, workspace_id: str, experiment_id: str) -> Optional[Experiment]:
        stmt = select(Experiment).where(
            Experiment.workspace_id == workspace_id,
            Experiment.id == experiment_id,
        )
        return self.session.scalars(stmt).first()

    def create(
        self,
        workspace_id: str,
        variants: list[str],
        hypothesis: Optional[str] = None,
        status: str = "planned",
    ) -> Experiment:
        return self.save(
            Experiment(workspace_id=workspace_id, variants=variants, hypothesis=hypothesis, status=status)
        )
