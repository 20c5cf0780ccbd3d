import uuid
from typing import Sequence
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.modules.review_links.models import ReviewLink

class ReviewLinkRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, project_id: uuid.UUID, **data) -> ReviewLink:
        obj = ReviewLink(project_id=project_id, **data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, project_id: uuid.UUID, link_id: uuid.UUID) -> ReviewLink | None:
        q = select(ReviewLink).where(
            ReviewLink.id == link_id,
            ReviewLink.project_id == project_id,
            ReviewLink.deleted_at.is_(None),
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_by_token(self, token: str) -> ReviewLink | None:
        q = select(ReviewLink).where(
            ReviewLink.token == token,
            ReviewLink.deleted_at.is_(None),
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list(self, project_id: uuid.UUID, media_id: uuid.UUID | None = None) -> Sequence[ReviewLink]:
        q = select(ReviewLink).where(
            ReviewLink.project_id == project_id,
            ReviewLink.deleted_at.is_(None),
        )
        if media_id:
            q = q.where(ReviewLink.media_id == media_id)
        res = await self.session.execute(q.order_by(ReviewLink.created_at.desc()))
        return res.scalars().all()

    async def repoint(self, old_root_id: uuid.UUID, new_root_id: uuid.UUID) -> int:
        """Move every link of a group onto its newly promoted root."""
        res = await self.session.execute(
            update(ReviewLink)
            .where(ReviewLink.media_id == old_root_id)
            .values(media_id=new_root_id)
            .execution_options(synchronize_session="fetch")
        )
        return res.rowcount

    async def detach(self, root_id: uuid.UUID) -> int:
        # group is gone; links stay but can no longer resolve
        res = await self.session.execute(
            update(ReviewLink)
            .where(ReviewLink.media_id == root_id)
            .values(media_id=None)
            .execution_options(synchronize_session="fetch")
        )
        return res.rowcount

    async def delete(self, link: ReviewLink) -> None:
        await self.session.delete(link)
        await self.session.flush()
