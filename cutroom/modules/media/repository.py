import uuid
from typing import Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.modules.media.models import MediaAsset

class MediaRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, project_id: uuid.UUID, **data) -> MediaAsset:
        obj = MediaAsset(id=uuid.uuid4(), project_id=project_id, **data)
        if obj.group_id is None:
            obj.group_id = obj.parent_id or obj.id
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, project_id: uuid.UUID, asset_id: uuid.UUID) -> MediaAsset | None:
        q = select(MediaAsset).where(
            MediaAsset.id == asset_id,
            MediaAsset.project_id == project_id,
            MediaAsset.deleted_at.is_(None),
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def members(self, project_id: uuid.UUID, root_id: uuid.UUID) -> list[MediaAsset]:
        """Root and versions of one group, newest version first."""
        q = select(MediaAsset).where(
            MediaAsset.project_id == project_id,
            MediaAsset.deleted_at.is_(None),
            MediaAsset.group_id == root_id,
        ).order_by(MediaAsset.version_number.desc())
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def current_of(self, project_id: uuid.UUID, root_id: uuid.UUID) -> MediaAsset | None:
        for asset in await self.members(project_id, root_id):
            if asset.is_current:
                return asset
        return None

    async def list_for_project(self, project_id: uuid.UUID) -> Sequence[MediaAsset]:
        q = select(MediaAsset).where(
            MediaAsset.project_id == project_id,
            MediaAsset.deleted_at.is_(None),
        ).order_by(MediaAsset.created_at.desc(), MediaAsset.version_number.desc())
        res = await self.session.execute(q)
        return res.scalars().all()

    async def delete(self, asset: MediaAsset) -> None:
        await self.session.delete(asset)
        await self.session.flush()

    async def in_folders(self, project_id: uuid.UUID, folder_ids: Sequence[uuid.UUID]) -> list[MediaAsset]:
        q = select(MediaAsset).where(
            MediaAsset.project_id == project_id,
            MediaAsset.deleted_at.is_(None),
            MediaAsset.folder_id.in_(list(folder_ids)),
        ).order_by(MediaAsset.created_at.desc(), MediaAsset.version_number.desc())
        res = await self.session.execute(q)
        return list(res.scalars().all())
