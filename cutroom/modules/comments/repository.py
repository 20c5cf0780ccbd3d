import uuid
from typing import Sequence
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.modules.comments.models import ReviewComment

class CommentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, round_id: uuid.UUID, project_id: uuid.UUID, **data) -> ReviewComment:
        obj = ReviewComment(round_id=round_id, project_id=project_id, resolved=False, **data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, comment_id: uuid.UUID) -> ReviewComment | None:
        q = select(ReviewComment).where(
            ReviewComment.id == comment_id,
            ReviewComment.deleted_at.is_(None),
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_for_round(self, round_id: uuid.UUID) -> Sequence[ReviewComment]:
        q = select(ReviewComment).where(
            ReviewComment.round_id == round_id,
            ReviewComment.deleted_at.is_(None),
        ).order_by(ReviewComment.created_at.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

    async def unresolved_for_round(self, round_id: uuid.UUID) -> Sequence[ReviewComment]:
        q = select(ReviewComment).where(
            ReviewComment.round_id == round_id,
            ReviewComment.deleted_at.is_(None),
            ReviewComment.resolved.is_(False),
        ).order_by(ReviewComment.created_at.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

    async def mark_resolved(self, comment_ids: Sequence[uuid.UUID]) -> int:
        if not comment_ids:
            return 0
        res = await self.session.execute(
            update(ReviewComment)
            .where(ReviewComment.id.in_(list(comment_ids)))
            .values(resolved=True)
            .execution_options(synchronize_session="fetch")
        )
        return res.rowcount

    async def delete(self, comment: ReviewComment) -> None:
        await self.session.delete(comment)
        await self.session.flush()
