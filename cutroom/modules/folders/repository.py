import uuid
from typing import Sequence
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.modules.folders.models import MediaFolder
from cutroom.modules.media.models import MediaAsset

class FolderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, project_id: uuid.UUID, **data) -> MediaFolder:
        obj = MediaFolder(project_id=project_id, **data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, project_id: uuid.UUID, folder_id: uuid.UUID) -> MediaFolder | None:
        q = select(MediaFolder).where(
            MediaFolder.id == folder_id,
            MediaFolder.project_id == project_id,
            MediaFolder.deleted_at.is_(None),
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_for_project(self, project_id: uuid.UUID) -> Sequence[MediaFolder]:
        q = select(MediaFolder).where(
            MediaFolder.project_id == project_id,
            MediaFolder.deleted_at.is_(None),
        ).order_by(MediaFolder.display_order.asc(), MediaFolder.created_at.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

    async def sibling_named(self, project_id: uuid.UUID, parent_id: uuid.UUID | None, name: str, *, exclude: uuid.UUID | None = None) -> MediaFolder | None:
        q = select(MediaFolder).where(
            MediaFolder.project_id == project_id,
            MediaFolder.deleted_at.is_(None),
            MediaFolder.parent_folder_id.is_(None) if parent_id is None else MediaFolder.parent_folder_id == parent_id,
            func.lower(MediaFolder.name) == name.lower(),
        )
        if exclude:
            q = q.where(MediaFolder.id != exclude)
        res = await self.session.execute(q.limit(1))
        return res.scalar_one_or_none()

    async def next_display_order(self, project_id: uuid.UUID, parent_id: uuid.UUID | None) -> int:
        q = select(func.max(MediaFolder.display_order)).where(
            MediaFolder.project_id == project_id,
            MediaFolder.deleted_at.is_(None),
            MediaFolder.parent_folder_id.is_(None) if parent_id is None else MediaFolder.parent_folder_id == parent_id,
        )
        last = (await self.session.execute(q)).scalar_one_or_none()
        return 0 if last is None else last + 1

    async def group_counts(self, project_id: uuid.UUID) -> dict[uuid.UUID, int]:
        """Number of media groups filed directly in each folder."""
        q = select(MediaAsset.folder_id, func.count()).where(
            MediaAsset.project_id == project_id,
            MediaAsset.deleted_at.is_(None),
            MediaAsset.parent_id.is_(None),
            MediaAsset.folder_id.is_not(None),
        ).group_by(MediaAsset.folder_id)
        res = await self.session.execute(q)
        return {folder_id: n for folder_id, n in res.all()}

    async def delete(self, folder: MediaFolder) -> None:
        await self.session.delete(folder)
        await self.session.flush()
