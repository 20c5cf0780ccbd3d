import uuid
import logging
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.core.config import settings
from cutroom.core.db import atomic
from cutroom.core.errors import (
    FileTooLarge, InvalidFileType, InvalidMerge, NotFound, QuotaExceeded, ValidationFailed,
)
from cutroom.core.files import UploadedFile
from cutroom.core.security import Principal
from cutroom.platform.ports.object_storage import ObjectStoragePort
from cutroom.platform.provider_registry import registry
from cutroom.modules.events.outbox import OutboxService
from cutroom.modules.folders.repository import FolderRepository
from cutroom.modules.media import versioning
from cutroom.modules.media.models import MediaAsset
from cutroom.modules.media.repository import MediaRepository
from cutroom.modules.media.schemas import MediaGroupOut, MediaAssetOut, MediaUpdate, MergeOut
from cutroom.modules.projects.access import ProjectAccess, EDITORS, PARTICIPANTS
from cutroom.modules.projects.models import Project
from cutroom.modules.review_links.repository import ReviewLinkRepository

log = logging.getLogger(__name__)

def discard(storage: ObjectStoragePort, keys: Sequence[str]) -> None:
    """Best-effort blob removal once the rows are gone."""
    for key in keys:
        try:
            storage.delete(key)
        except Exception:
            log.exception("Could not delete stored object %s", key)

def group_out(members: Sequence[MediaAsset]) -> MediaGroupOut:
    ordered = sorted(members, key=lambda a: a.version_number, reverse=True)
    root = next(a for a in ordered if a.parent_id is None)
    current = next(a for a in ordered if a.is_current)
    return MediaGroupOut(
        id=root.id,
        current=MediaAssetOut.model_validate(current),
        versions=[MediaAssetOut.model_validate(a) for a in ordered],
    )

async def _apply(session: AsyncSession, *groups: tuple[Sequence[MediaAsset], Sequence[versioning.Slot]], retire: Sequence[MediaAsset] = ()) -> None:
    """Write new group layouts.

    Rows that move are parked first (negative number, not current) and
    flushed, so no intermediate row state breaks the per-group unique
    version number or the single current version. ``retire`` parks rows
    that are about to be deleted.
    """
    moves: list[tuple[MediaAsset, versioning.Slot]] = []
    for members, layout in groups:
        versioning.validate_group(layout)
        by_id = {a.id: a for a in members}
        moves += [(by_id[s.id], s) for s in versioning.changed(versioning.slots_of(members), layout)]
    parked = [a for a, _ in moves] + list(retire)
    if not parked:
        return
    for n, asset in enumerate(parked, start=1):
        asset.version_number = -n
        asset.is_current = False
    await session.flush()
    for asset, slot in moves:
        asset.parent_id = slot.parent_id
        asset.group_id = slot.parent_id or slot.id
        asset.version_number = slot.version_number
        asset.is_current = slot.is_current
    await session.flush()

class MediaService:
    def __init__(self, session: AsyncSession, storage: ObjectStoragePort | None = None):
        self.session = session
        self.repo = MediaRepository(session)
        self.links = ReviewLinkRepository(session)
        self.folders = FolderRepository(session)
        self.access = ProjectAccess(session)
        self.outbox = OutboxService(session)
        self.storage = storage or registry.object_storage()

    # ---- helpers ----
    async def _lock_project(self, principal: Principal, project_id: uuid.UUID, action: str) -> Project:
        # the project row lock serializes every graph mutation and the storage counter
        project, _ = await self.access.require(project_id, principal, EDITORS, for_update=True, action=action)
        return project

    async def _group(self, project_id: uuid.UUID, asset_id: uuid.UUID) -> list[MediaAsset]:
        asset = await self.repo.get(project_id, asset_id)
        if not asset:
            raise NotFound("Media not found", media_id=str(asset_id))
        return await self.repo.members(project_id, asset.group_id)

    def _validate_file(self, file: UploadedFile) -> None:
        ctype = (file.content_type or "").lower()
        if not any(ctype.startswith(p) for p in settings.MEDIA_MIME_PREFIXES):
            raise InvalidFileType(f'"{file.filename}" has unsupported type {ctype or "unknown"}', filename=file.filename)
        if file.size > settings.MAX_UPLOAD_BYTES:
            raise FileTooLarge(
                f'"{file.filename}" is {file.size} bytes; the per-file limit is {settings.MAX_UPLOAD_BYTES}',
                filename=file.filename,
            )
        if file.size == 0:
            raise ValidationFailed(f'"{file.filename}" is empty', filename=file.filename)

    def _reserve(self, project: Project, nbytes: int) -> None:
        remaining = max(project.storage_quota_bytes - project.storage_used_bytes, 0)
        if nbytes > remaining:
            raise QuotaExceeded(nbytes - remaining, requested_bytes=nbytes, remaining_bytes=remaining)
        project.storage_used_bytes += nbytes

    def _release(self, project: Project, nbytes: int) -> None:
        project.storage_used_bytes = max(project.storage_used_bytes - nbytes, 0)

    def _store(self, project_id: uuid.UUID, file: UploadedFile) -> tuple[str, str]:
        key = f"projects/{project_id}/media/{uuid.uuid4().hex}{file.extension}"
        self.storage.put_bytes(key, file.data, content_type=file.content_type)
        return key, self.storage.public_url(key)

    def _discard(self, keys: Sequence[str]) -> None:
        discard(self.storage, keys)

    async def _insert(self, project_id: uuid.UUID, principal: Principal, file: UploadedFile, key: str, url: str, **graph) -> MediaAsset:
        return await self.repo.create(
            project_id,
            filename=file.filename,
            original_filename=file.filename,
            mime_type=file.content_type,
            size_bytes=file.size,
            storage_key=key,
            url=url,
            uploaded_by=principal.user_id,
            status="in_progress",
            **graph,
        )

    # ---- reads ----
    async def list_groups(self, principal: Principal, project_id: uuid.UUID) -> list[MediaGroupOut]:
        await self.access.require(project_id, principal, PARTICIPANTS, action="view media")
        groups: dict[uuid.UUID, list[MediaAsset]] = {}
        for asset in await self.repo.list_for_project(project_id):
            groups.setdefault(asset.group_id, []).append(asset)
        return [group_out(members) for members in groups.values()]

    async def get_group(self, principal: Principal, project_id: uuid.UUID, asset_id: uuid.UUID) -> MediaGroupOut:
        await self.access.require(project_id, principal, PARTICIPANTS, action="view media")
        return group_out(await self._group(project_id, asset_id))

    # ---- uploads ----
    async def upload(self, principal: Principal, project_id: uuid.UUID, files: Sequence[UploadedFile], folder_id: uuid.UUID | None = None) -> list[MediaGroupOut]:
        """Store a batch of files as new groups; the whole batch fits the quota or nothing is kept.

        ``folder_id`` files the new groups in one of the project's folders.
        """
        if not files:
            raise ValidationFailed("No files were uploaded")
        for f in files:
            self._validate_file(f)

        stored: list[str] = []
        created: list[MediaAsset] = []
        try:
            async with atomic(self.session):
                project = await self._lock_project(principal, project_id, "upload media")
                if folder_id and not await self.folders.get(project_id, folder_id):
                    raise NotFound("Folder not found", folder_id=str(folder_id))
                self._reserve(project, sum(f.size for f in files))
                for f in files:
                    key, url = self._store(project_id, f)
                    stored.append(key)
                    asset = await self._insert(project_id, principal, f, key, url, parent_id=None, version_number=1, is_current=True, folder_id=folder_id)
                    created.append(asset)
                    await self.outbox.enqueue(project_id, "MEDIA_UPLOADED", "media", asset.id,
                                              {"filename": asset.filename, "size_bytes": asset.size_bytes})
        except BaseException:
            # no row survives without its bytes, and no bytes without a row
            self._discard(stored)
            raise
        log.info("Uploaded %d file(s) to project %s", len(created), project_id)
        return [group_out([a]) for a in created]

    async def attach_version(self, principal: Principal, project_id: uuid.UUID, group_id: uuid.UUID, file: UploadedFile) -> MediaGroupOut:
        self._validate_file(file)
        stored: list[str] = []
        try:
            async with atomic(self.session):
                project = await self._lock_project(principal, project_id, "add versions")
                members = await self._group(project_id, group_id)
                root = versioning.group_root(versioning.slots_of(members))
                folder_id = next(a.folder_id for a in members if a.id == root.id)
                self._reserve(project, file.size)
                key, url = self._store(project_id, file)
                stored.append(key)
                asset = await self._insert(project_id, principal, file, key, url,
                                           parent_id=root.id, version_number=0, is_current=False,
                                           folder_id=folder_id)
                layout = versioning.append_version(versioning.slots_of(members), asset.id)
                members.append(asset)
                await _apply(self.session, (members, layout))
                await self.outbox.enqueue(project_id, "MEDIA_VERSION_ATTACHED", "media", root.id,
                                          {"asset_id": str(asset.id), "version_number": asset.version_number})
        except BaseException:
            self._discard(stored)
            raise
        log.info("Attached version %s to group %s", asset.id, root.id)
        return group_out(members)

    # ---- graph edits ----
    async def reorder(self, principal: Principal, project_id: uuid.UUID, group_id: uuid.UUID, order: Sequence[uuid.UUID]) -> MediaGroupOut:
        async with atomic(self.session):
            await self._lock_project(principal, project_id, "reorder versions")
            members = await self._group(project_id, group_id)
            if len(members) > 1:
                layout = versioning.renumber(versioning.slots_of(members), list(order))
                await _apply(self.session, (members, layout))
                await self.outbox.enqueue(project_id, "MEDIA_VERSIONS_REORDERED", "media", group_id,
                                          {"order": [str(i) for i in order]})
        return group_out(members)

    async def _remove_member(self, members: list[MediaAsset], victim: MediaAsset) -> list[MediaAsset]:
        """Take one asset out of its group and lay the survivors out again."""
        was_root = victim.parent_id is None
        old_root_id = victim.group_id
        survivors = [a for a in members if a.id != victim.id]
        layout = versioning.compact(versioning.slots_of(survivors), removed_was_root=was_root)
        await _apply(self.session, (survivors, layout), retire=[victim])
        if survivors and was_root:
            # let the old root's links follow the group before the row goes away
            new_root = next(a for a in survivors if a.parent_id is None)
            await self.links.repoint(old_root_id, new_root.id)
        elif not survivors:
            await self.links.detach(old_root_id)
        await self.session.flush()
        return survivors

    async def delete_version(self, principal: Principal, project_id: uuid.UUID, asset_id: uuid.UUID) -> MediaGroupOut | None:
        async with atomic(self.session):
            project = await self._lock_project(principal, project_id, "delete media")
            victim = await self.repo.get(project_id, asset_id)
            if not victim:
                raise NotFound("Media not found", media_id=str(asset_id))
            members = await self.repo.members(project_id, victim.group_id)
            survivors = await self._remove_member(members, victim)
            await self.repo.delete(victim)
            self._release(project, victim.size_bytes)
            await self.outbox.enqueue(project_id, "MEDIA_VERSION_DELETED", "media", asset_id,
                                      {"filename": victim.filename, "group_remaining": len(survivors)})
        self._discard([victim.storage_key])
        log.info("Deleted media %s (%d version(s) left in group)", asset_id, len(survivors))
        return group_out(survivors) if survivors else None

    async def delete_group(self, principal: Principal, project_id: uuid.UUID, group_id: uuid.UUID) -> None:
        async with atomic(self.session):
            project = await self._lock_project(principal, project_id, "delete media")
            members = await self._group(project_id, group_id)
            root_id = members[0].group_id
            await self.links.detach(root_id)
            # versions before the root they point at
            for asset in sorted(members, key=lambda a: a.parent_id is None):
                await self.repo.delete(asset)
            self._release(project, sum(a.size_bytes for a in members))
            await self.outbox.enqueue(project_id, "MEDIA_GROUP_DELETED", "media", root_id,
                                      {"deleted": [str(a.id) for a in members]})
        self._discard([a.storage_key for a in members])
        log.info("Deleted media group %s (%d asset(s))", root_id, len(members))

    async def merge(self, principal: Principal, project_id: uuid.UUID, target_id: uuid.UUID, source_id: uuid.UUID) -> MergeOut:
        """Drag ``source`` onto ``target``: the dragged asset becomes target's current version.

        ``source_id`` naming a group root moves that group's current version;
        naming a specific version moves that version.
        """
        async with atomic(self.session):
            await self._lock_project(principal, project_id, "merge media")
            target = await self._group(project_id, target_id)
            source = await self._group(project_id, source_id)
            target_root = target[0].group_id
            source_root = source[0].group_id
            if target_root != target_id:
                raise InvalidMerge("Drop onto a group, not onto one of its versions", target_id=str(target_id))
            if target_root == source_root:
                raise InvalidMerge("Cannot make a group a version of itself", target_id=str(target_id), source_id=str(source_id))

            if source_id == source_root:
                moved = next(a for a in source if a.is_current)
            else:
                moved = next(a for a in source if a.id == source_id)

            target_layout, source_layout = versioning.merge(
                versioning.slots_of(target), versioning.slots_of(source), moved.id
            )
            survivors = [a for a in source if a.id != moved.id]
            moved_was_root = moved.parent_id is None
            await _apply(self.session, (survivors, source_layout), (target + [moved], target_layout))
            moved.folder_id = next(a.folder_id for a in target if a.id == target_root)
            if survivors and moved_was_root:
                new_root = next(a for a in survivors if a.parent_id is None)
                await self.links.repoint(source_root, new_root.id)
            elif not survivors:
                await self.links.detach(source_root)
            await self.outbox.enqueue(project_id, "MEDIA_MERGED", "media", target_root,
                                      {"moved": str(moved.id), "from_group": str(source_root)})
        log.info("Merged %s from group %s into group %s", moved.id, source_root, target_root)
        return MergeOut(
            target=group_out(target + [moved]),
            source=group_out(survivors) if survivors else None,
        )

    async def update_asset(self, principal: Principal, project_id: uuid.UUID, asset_id: uuid.UUID, payload: MediaUpdate) -> MediaAssetOut:
        async with atomic(self.session):
            await self.access.require(project_id, principal, EDITORS, action="edit media")
            asset = await self.repo.get(project_id, asset_id)
            if not asset:
                raise NotFound("Media not found", media_id=str(asset_id))
            if payload.filename is not None:
                asset.filename = payload.filename.strip()
            if payload.status is not None and payload.status != asset.status:
                await self.outbox.enqueue(project_id, "MEDIA_STATUS_CHANGED", "media", asset.id,
                                          {"from": asset.status, "to": payload.status})
                asset.status = payload.status
        return MediaAssetOut.model_validate(asset)
