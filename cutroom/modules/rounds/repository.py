import uuid
from typing import Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.modules.rounds.models import WorkflowRound

class RoundRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, project_id: uuid.UUID, *, round_number: int, steps: list[dict]) -> WorkflowRound:
        obj = WorkflowRound(project_id=project_id, round_number=round_number, steps=steps, client_decision="pending")
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, round_id: uuid.UUID, *, for_update: bool = False) -> WorkflowRound | None:
        q = select(WorkflowRound).where(
            WorkflowRound.id == round_id,
            WorkflowRound.deleted_at.is_(None),
        )
        if for_update:
            # the locked read must win over anything the identity map already holds
            q = q.with_for_update().execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_for_project(self, project_id: uuid.UUID) -> Sequence[WorkflowRound]:
        q = select(WorkflowRound).where(
            WorkflowRound.project_id == project_id,
            WorkflowRound.deleted_at.is_(None),
        ).order_by(WorkflowRound.round_number.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

    async def active_for_project(self, project_id: uuid.UUID) -> WorkflowRound | None:
        # latest open round; when every round is decided, the last one
        rounds = await self.list_for_project(project_id)
        for r in reversed(rounds):
            if r.is_open:
                return r
        return rounds[-1] if rounds else None
