"""Folders for filing media groups inside a project.

Folders nest; a group is filed by the ``folder_id`` every one of its members
carries. Deleting a folder deletes its subfolders and every group filed in
any of them. All mutations run under the project row lock, which also keeps
sibling names unique.
"""
import uuid
import logging
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.core.db import atomic
from cutroom.core.errors import FolderConflict, NotFound
from cutroom.core.security import Principal
from cutroom.platform.ports.object_storage import ObjectStoragePort
from cutroom.platform.provider_registry import registry
from cutroom.modules.events.outbox import OutboxService
from cutroom.modules.folders.models import MediaFolder
from cutroom.modules.folders.repository import FolderRepository
from cutroom.modules.folders.schemas import FolderCreate, FolderUpdate, FolderOut, FolderDeleteOut
from cutroom.modules.media.models import MediaAsset
from cutroom.modules.media.repository import MediaRepository
from cutroom.modules.media.schemas import MediaGroupOut
from cutroom.modules.media.service import discard, group_out
from cutroom.modules.projects.access import ProjectAccess, EDITORS, PARTICIPANTS
from cutroom.modules.review_links.repository import ReviewLinkRepository

log = logging.getLogger(__name__)

DEFAULT_COLOR = "#3B82F6"

def subtree(folders: Sequence[MediaFolder], root_id: uuid.UUID) -> list[uuid.UUID]:
    """``root_id`` and every folder below it, parents before children."""
    children: dict[uuid.UUID | None, list[uuid.UUID]] = {}
    for f in folders:
        children.setdefault(f.parent_folder_id, []).append(f.id)
    order = [root_id]
    for fid in order:
        order.extend(children.get(fid, []))
    return order

def _out(folder: MediaFolder, counts: dict[uuid.UUID, int]) -> FolderOut:
    return FolderOut.model_validate(folder).model_copy(update={"media_count": counts.get(folder.id, 0)})

class FolderService:
    def __init__(self, session: AsyncSession, storage: ObjectStoragePort | None = None):
        self.session = session
        self.repo = FolderRepository(session)
        self.media = MediaRepository(session)
        self.links = ReviewLinkRepository(session)
        self.access = ProjectAccess(session)
        self.outbox = OutboxService(session)
        self.storage = storage or registry.object_storage()

    async def _folder(self, project_id: uuid.UUID, folder_id: uuid.UUID) -> MediaFolder:
        folder = await self.repo.get(project_id, folder_id)
        if not folder:
            raise NotFound("Folder not found", folder_id=str(folder_id))
        return folder

    async def _ensure_free_name(self, project_id: uuid.UUID, parent_id: uuid.UUID | None, name: str, exclude: uuid.UUID | None = None) -> None:
        if await self.repo.sibling_named(project_id, parent_id, name, exclude=exclude):
            raise FolderConflict(f'A folder named "{name}" already exists here', name=name)

    # ---- reads ----
    async def list_folders(self, principal: Principal, project_id: uuid.UUID) -> list[FolderOut]:
        await self.access.require(project_id, principal, PARTICIPANTS, action="view folders")
        counts = await self.repo.group_counts(project_id)
        return [_out(f, counts) for f in await self.repo.list_for_project(project_id)]

    async def list_media(self, principal: Principal, project_id: uuid.UUID, folder_id: uuid.UUID) -> list[MediaGroupOut]:
        await self.access.require(project_id, principal, PARTICIPANTS, action="view media")
        await self._folder(project_id, folder_id)
        groups: dict[uuid.UUID, list[MediaAsset]] = {}
        for asset in await self.media.in_folders(project_id, [folder_id]):
            groups.setdefault(asset.group_id, []).append(asset)
        return [group_out(members) for members in groups.values()]

    # ---- folder edits ----
    async def create_folder(self, principal: Principal, project_id: uuid.UUID, payload: FolderCreate) -> FolderOut:
        name = payload.name.strip()
        async with atomic(self.session):
            await self.access.require(project_id, principal, EDITORS, for_update=True, action="create folders")
            if payload.parent_folder_id:
                await self._folder(project_id, payload.parent_folder_id)
            await self._ensure_free_name(project_id, payload.parent_folder_id, name)
            folder = await self.repo.create(
                project_id,
                parent_folder_id=payload.parent_folder_id,
                name=name,
                description=(payload.description or "").strip() or None,
                color=payload.color or DEFAULT_COLOR,
                display_order=await self.repo.next_display_order(project_id, payload.parent_folder_id),
                created_by=principal.user_id,
            )
        log.info("Folder %s created in project %s", folder.id, project_id)
        return _out(folder, {})

    async def update_folder(self, principal: Principal, project_id: uuid.UUID, folder_id: uuid.UUID, payload: FolderUpdate) -> FolderOut:
        async with atomic(self.session):
            await self.access.require(project_id, principal, EDITORS, for_update=True, action="manage folders")
            folder = await self._folder(project_id, folder_id)
            if payload.name is not None and payload.name.strip() != folder.name:
                await self._ensure_free_name(project_id, folder.parent_folder_id, payload.name.strip(), exclude=folder.id)
                folder.name = payload.name.strip()
            if payload.description is not None:
                folder.description = payload.description.strip() or None
            if payload.color is not None:
                folder.color = payload.color
        return _out(folder, await self.repo.group_counts(project_id))

    async def move_folder(self, principal: Principal, project_id: uuid.UUID, folder_id: uuid.UUID, parent_id: uuid.UUID | None) -> FolderOut:
        async with atomic(self.session):
            await self.access.require(project_id, principal, EDITORS, for_update=True, action="move folders")
            folder = await self._folder(project_id, folder_id)
            if parent_id is not None:
                await self._folder(project_id, parent_id)
                if parent_id in subtree(await self.repo.list_for_project(project_id), folder.id):
                    raise FolderConflict("A folder cannot move into itself or one of its subfolders",
                                         folder_id=str(folder_id), parent_folder_id=str(parent_id))
            if parent_id != folder.parent_folder_id:
                await self._ensure_free_name(project_id, parent_id, folder.name, exclude=folder.id)
                folder.display_order = await self.repo.next_display_order(project_id, parent_id)
                folder.parent_folder_id = parent_id
        log.info("Folder %s moved under %s", folder_id, parent_id or "the project root")
        return _out(folder, await self.repo.group_counts(project_id))

    async def delete_folder(self, principal: Principal, project_id: uuid.UUID, folder_id: uuid.UUID) -> FolderDeleteOut:
        async with atomic(self.session):
            project, _ = await self.access.require(project_id, principal, EDITORS, for_update=True, action="delete folders")
            await self._folder(project_id, folder_id)
            folders = {f.id: f for f in await self.repo.list_for_project(project_id)}
            doomed = subtree(list(folders.values()), folder_id)
            assets = await self.media.in_folders(project_id, doomed)
            for asset in assets:
                if asset.parent_id is None:
                    await self.links.detach(asset.id)
            # versions before the roots they point at
            for asset in sorted(assets, key=lambda a: a.parent_id is None):
                await self.media.delete(asset)
            project.storage_used_bytes = max(project.storage_used_bytes - sum(a.size_bytes for a in assets), 0)
            # children before parents
            for fid in reversed(doomed):
                await self.repo.delete(folders[fid])
            groups = sum(1 for a in assets if a.parent_id is None)
            await self.outbox.enqueue(project_id, "FOLDER_DELETED", "folder", folder_id, {
                "folders": [str(f) for f in doomed],
                "media_groups": groups,
            })
        discard(self.storage, [a.storage_key for a in assets])
        log.info("Deleted folder %s with %d subfolder(s) and %d media group(s)", folder_id, len(doomed) - 1, groups)
        return FolderDeleteOut(deleted_folder_ids=doomed, deleted_media_count=groups)

    # ---- filing ----
    async def move_media(self, principal: Principal, project_id: uuid.UUID, media_id: uuid.UUID, folder_id: uuid.UUID | None) -> MediaGroupOut:
        """File a whole group (any member id names it) into a folder, or out of every folder."""
        async with atomic(self.session):
            await self.access.require(project_id, principal, EDITORS, for_update=True, action="move media")
            asset = await self.media.get(project_id, media_id)
            if not asset:
                raise NotFound("Media not found", media_id=str(media_id))
            if folder_id is not None:
                await self._folder(project_id, folder_id)
            members = await self.media.members(project_id, asset.group_id)
            previous = members[0].folder_id
            for member in members:
                member.folder_id = folder_id
            if previous != folder_id:
                await self.outbox.enqueue(project_id, "MEDIA_MOVED", "media", asset.group_id, {
                    "from_folder": str(previous) if previous else None,
                    "to_folder": str(folder_id) if folder_id else None,
                })
        return group_out(members)
