import asyncio
import logging
import secrets
import uuid
from functools import lru_cache
from typing import Sequence

import bcrypt
from sqlalchemy.ext.asyncio import AsyncSession

from cutroom.core.clock import as_utc, utcnow
from cutroom.core.config import settings
from cutroom.core.db import atomic
from cutroom.core.errors import LinkDenied, NotFound, ValidationFailed
from cutroom.core.security import Principal
from cutroom.platform.ports.object_storage import ObjectStoragePort
from cutroom.platform.provider_registry import registry
from cutroom.modules.media.models import MediaAsset
from cutroom.modules.media.repository import MediaRepository
from cutroom.modules.media.schemas import MediaAssetOut
from cutroom.modules.projects.access import ProjectAccess, EDITORS
from cutroom.modules.projects.repository import ProjectRepository
from cutroom.modules.review_links.models import ReviewLink
from cutroom.modules.review_links.repository import ReviewLinkRepository
from cutroom.modules.review_links.schemas import ReviewLinkCreate, ReviewLinkUpdate, ResolvedLinkOut

log = logging.getLogger(__name__)

def new_token() -> str:
    # 256 bits from the OS CSPRNG; nothing about the asset or the clock goes in
    return secrets.token_urlsafe(32)

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)).decode("utf-8")

def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))

@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password(secrets.token_urlsafe(16))

class ReviewLinkService:
    def __init__(self, session: AsyncSession, storage: ObjectStoragePort | None = None):
        self.session = session
        self.repo = ReviewLinkRepository(session)
        self.media = MediaRepository(session)
        self.projects = ProjectRepository(session)
        self.access = ProjectAccess(session)
        self.storage = storage or registry.object_storage()

    # ---- editor side ----
    async def _link(self, project_id: uuid.UUID, link_id: uuid.UUID) -> ReviewLink:
        link = await self.repo.get(project_id, link_id)
        if not link:
            raise NotFound("Review link not found", link_id=str(link_id))
        return link

    async def create_link(self, principal: Principal, project_id: uuid.UUID, media_id: uuid.UUID, payload: ReviewLinkCreate) -> ReviewLink:
        if payload.expires_at is not None and as_utc(payload.expires_at) <= utcnow():
            raise ValidationFailed("Expiry must be in the future", expires_at=payload.expires_at.isoformat())
        password_hash = None
        if payload.requires_password:
            if not payload.password:
                raise ValidationFailed("A password is required for a protected link")
            password_hash = await asyncio.to_thread(hash_password, payload.password)

        async with atomic(self.session):
            await self.access.require(project_id, principal, EDITORS, action="share media")
            asset = await self.media.get(project_id, media_id)
            if not asset:
                raise NotFound("Media not found", media_id=str(media_id))
            link = await self.repo.create(
                project_id,
                media_id=asset.group_id,  # the group, never a frozen version
                token=new_token(),
                title=payload.title,
                is_active=True,
                expires_at=payload.expires_at,
                password_hash=password_hash,
                allow_download=payload.allow_download,
                created_by=principal.user_id,
                view_count=0,
            )
        log.info("Review link %s created for group %s", link.id, link.media_id)
        return link

    async def list_links(self, principal: Principal, project_id: uuid.UUID, media_id: uuid.UUID | None = None) -> Sequence[ReviewLink]:
        await self.access.require(project_id, principal, EDITORS, action="view review links")
        group_id = None
        if media_id:
            asset = await self.media.get(project_id, media_id)
            if not asset:
                raise NotFound("Media not found", media_id=str(media_id))
            group_id = asset.group_id
        return await self.repo.list(project_id, group_id)

    async def toggle(self, principal: Principal, project_id: uuid.UUID, link_id: uuid.UUID) -> ReviewLink:
        async with atomic(self.session):
            await self.access.require(project_id, principal, EDITORS, action="manage review links")
            link = await self._link(project_id, link_id)
            link.is_active = not link.is_active
        log.info("Review link %s is now %s", link_id, "active" if link.is_active else "inactive")
        return link

    async def update(self, principal: Principal, project_id: uuid.UUID, link_id: uuid.UUID, payload: ReviewLinkUpdate) -> ReviewLink:
        new_hash = None
        if payload.password:
            new_hash = await asyncio.to_thread(hash_password, payload.password)
        async with atomic(self.session):
            await self.access.require(project_id, principal, EDITORS, action="manage review links")
            link = await self._link(project_id, link_id)
            if payload.title is not None:
                link.title = payload.title
            if payload.clear_expiry:
                link.expires_at = None
            elif payload.expires_at is not None:
                if as_utc(payload.expires_at) <= utcnow():
                    raise ValidationFailed("Expiry must be in the future", expires_at=payload.expires_at.isoformat())
                link.expires_at = payload.expires_at
            if payload.allow_download is not None:
                link.allow_download = payload.allow_download
            if payload.clear_password:
                link.password_hash = None
            elif new_hash:
                link.password_hash = new_hash
        return link

    async def delete(self, principal: Principal, project_id: uuid.UUID, link_id: uuid.UUID) -> None:
        async with atomic(self.session):
            await self.access.require(project_id, principal, EDITORS, action="manage review links")
            link = await self._link(project_id, link_id)
            await self.repo.delete(link)
        log.info("Review link %s deleted", link_id)

    # ---- public side ----
    async def _not_found(self, password: str | None) -> LinkDenied:
        # same bcrypt cost as a real password check
        if password:
            await asyncio.to_thread(verify_password, password, _dummy_hash())
        return LinkDenied(LinkDenied.NOT_FOUND)

    async def authorize(self, token: str, password: str | None = None) -> tuple[ReviewLink, MediaAsset]:
        """Check every gate of a link and return it with the group's current asset."""
        link = await self.repo.get_by_token(token)
        if not link:
            raise await self._not_found(password)
        project = await self.projects.get(link.project_id)
        if not project:
            raise await self._not_found(password)
        if not link.is_active:
            raise LinkDenied(LinkDenied.INACTIVE)
        if link.expires_at is not None and as_utc(link.expires_at) <= utcnow():
            raise LinkDenied(LinkDenied.EXPIRED)

        root = await self.media.get(link.project_id, link.media_id) if link.media_id else None
        current = await self.media.current_of(link.project_id, root.id) if root and root.parent_id is None else None
        if current is None:
            raise await self._not_found(password)

        if link.password_hash:
            if not password:
                raise LinkDenied(LinkDenied.PASSWORD_REQUIRED)
            if not await asyncio.to_thread(verify_password, password, link.password_hash):
                raise LinkDenied(LinkDenied.WRONG_PASSWORD)
        return link, current

    async def resolve(self, token: str, password: str | None = None) -> ResolvedLinkOut:
        async with atomic(self.session):
            link, current = await self.authorize(token, password)
            link.view_count = (link.view_count or 0) + 1
        download_url = None
        if link.allow_download:
            download_url = self.storage.presign_download(
                current.storage_key, expires_seconds=settings.DOWNLOAD_URL_TTL_SECONDS, filename=current.original_filename,
            )
        return ResolvedLinkOut(
            link_id=link.id,
            title=link.title,
            project_id=link.project_id,
            group_id=current.group_id,
            asset=MediaAssetOut.model_validate(current),
            allow_download=link.allow_download,
            download_url=download_url,
        )
