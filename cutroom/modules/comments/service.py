"""Review feedback on a round.

Participants comment with their account; outside reviewers comment through
a review link, identified only by the reviewer id their browser keeps. In
both cases a comment can only change while its round is undecided, and only
its author may change it.
"""
import re
import uuid
import logging
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.core.clock import utcnow
from cutroom.core.config import settings
from cutroom.core.db import atomic
from cutroom.core.errors import (
    CutroomError, EmptyComment, FileTooLarge, InvalidFileType, NotFound, RoundClosed,
    TooManyImages, Unauthorized, ValidationFailed,
)
from cutroom.core.files import UploadedFile
from cutroom.core.security import Principal
from cutroom.platform.ports.object_storage import ObjectStoragePort
from cutroom.platform.provider_registry import registry
from cutroom.modules.comments.models import ReviewComment
from cutroom.modules.comments.repository import CommentRepository
from cutroom.modules.comments.schemas import (
    CommentCreate, CommentUpdate, ReviewerCommentCreate, ImageRejection, ImageUploadOut,
)
from cutroom.modules.events.outbox import OutboxService
from cutroom.modules.projects.access import ProjectAccess, PARTICIPANTS
from cutroom.modules.review_links.service import ReviewLinkService
from cutroom.modules.rounds.models import WorkflowRound
from cutroom.modules.rounds.repository import RoundRepository

log = logging.getLogger(__name__)

_URL_RE = re.compile(r"https?://[^\s<>\"']+")

def extract_links(body: str) -> list[str]:
    seen: list[str] = []
    for match in _URL_RE.findall(body or ""):
        url = match.rstrip(".,;:!?)")
        if url not in seen:
            seen.append(url)
    return seen

def _check_content(body: str, images: Sequence[str]) -> None:
    if not body and not images:
        raise EmptyComment("A comment needs text or at least one image")
    if len(images) > settings.MAX_COMMENT_IMAGES:
        raise TooManyImages(
            f"A comment can carry at most {settings.MAX_COMMENT_IMAGES} images",
            limit=settings.MAX_COMMENT_IMAGES, received=len(images),
        )

def _ensure_open(rnd: WorkflowRound) -> None:
    if not rnd.is_open:
        raise RoundClosed(
            f"The client has already decided round {rnd.round_number}; its feedback can no longer change",
            round_id=str(rnd.id), decision=rnd.client_decision,
        )

class CommentService:
    def __init__(self, session: AsyncSession, storage: ObjectStoragePort | None = None):
        self.session = session
        self.repo = CommentRepository(session)
        self.rounds = RoundRepository(session)
        self.access = ProjectAccess(session)
        self.outbox = OutboxService(session)
        self.storage = storage or registry.object_storage()
        self.links = ReviewLinkService(session, self.storage)

    async def _round(self, round_id: uuid.UUID, *, for_update: bool = False) -> WorkflowRound:
        rnd = await self.rounds.get(round_id, for_update=for_update)
        if not rnd:
            raise NotFound("Round not found", round_id=str(round_id))
        return rnd

    async def _comment(self, comment_id: uuid.UUID, project_id: uuid.UUID | None = None) -> ReviewComment:
        comment = await self.repo.get(comment_id)
        if not comment or (project_id is not None and comment.project_id != project_id):
            raise NotFound("Comment not found", comment_id=str(comment_id))
        return comment

    async def _insert(self, rnd: WorkflowRound, payload: CommentCreate, **author) -> ReviewComment:
        body = payload.body.strip()
        _check_content(body, payload.images)
        comment = await self.repo.create(
            rnd.id, rnd.project_id,
            body=body,
            media_timestamp=payload.media_timestamp,
            images=list(payload.images),
            links=extract_links(body),
            **author,
        )
        await self.outbox.enqueue(rnd.project_id, "COMMENT_ADDED", "comment", comment.id, {
            "round_id": str(rnd.id),
            "round_number": rnd.round_number,
            "media_timestamp": comment.media_timestamp,
            "author": comment.author_display_name,
        })
        return comment

    def _apply(self, comment: ReviewComment, payload: CommentUpdate) -> None:
        body = comment.body if payload.body is None else payload.body.strip()
        images = comment.images if payload.images is None else list(payload.images)
        _check_content(body, images)
        comment.body = body
        comment.links = extract_links(body)
        comment.images = images
        if payload.clear_timestamp:
            comment.media_timestamp = None
        elif payload.media_timestamp is not None:
            comment.media_timestamp = payload.media_timestamp
        comment.edited_at = utcnow()

    # ---- authenticated participants ----
    async def list_for_round(self, principal: Principal, round_id: uuid.UUID) -> Sequence[ReviewComment]:
        rnd = await self._round(round_id)
        await self.access.require(rnd.project_id, principal, PARTICIPANTS, action="view feedback")
        return await self.repo.list_for_round(rnd.id)

    async def add(self, principal: Principal, round_id: uuid.UUID, payload: CommentCreate) -> ReviewComment:
        async with atomic(self.session):
            rnd = await self._round(round_id, for_update=True)
            await self.access.require(rnd.project_id, principal, PARTICIPANTS, action="leave feedback")
            _ensure_open(rnd)
            comment = await self._insert(
                rnd, payload,
                author_user_id=principal.user_id,
                author_display_name=(payload.author_display_name or principal.email or "Reviewer").strip(),
            )
        log.info("Comment %s added to round %s by %s", comment.id, round_id, principal.user_id)
        return comment

    async def _own(self, principal: Principal, comment_id: uuid.UUID) -> tuple[ReviewComment, WorkflowRound]:
        comment = await self._comment(comment_id)
        rnd = await self._round(comment.round_id, for_update=True)
        await self.access.require(rnd.project_id, principal, PARTICIPANTS, action="change feedback")
        if comment.author_user_id != principal.user_id:
            raise Unauthorized("Only the author can change this comment", comment_id=str(comment_id))
        _ensure_open(rnd)
        return comment, rnd

    async def edit(self, principal: Principal, comment_id: uuid.UUID, payload: CommentUpdate) -> ReviewComment:
        async with atomic(self.session):
            comment, _ = await self._own(principal, comment_id)
            self._apply(comment, payload)
        return comment

    async def delete(self, principal: Principal, comment_id: uuid.UUID) -> None:
        async with atomic(self.session):
            comment, _ = await self._own(principal, comment_id)
            await self.repo.delete(comment)
        log.info("Comment %s deleted by %s", comment_id, principal.user_id)

    # ---- reviewers holding a link ----
    async def _active_round(self, project_id: uuid.UUID) -> WorkflowRound:
        active = await self.rounds.active_for_project(project_id)
        if not active:
            raise NotFound("Project has no review round", project_id=str(project_id))
        return await self._round(active.id, for_update=True)

    async def list_via_link(self, token: str, password: str | None) -> Sequence[ReviewComment]:
        link, _ = await self.links.authorize(token, password)
        active = await self.rounds.active_for_project(link.project_id)
        if not active:
            return []
        return await self.repo.list_for_round(active.id)

    async def add_via_link(self, token: str, password: str | None, reviewer_id: str, payload: ReviewerCommentCreate) -> ReviewComment:
        reviewer_id = (reviewer_id or "").strip()
        if not reviewer_id:
            raise ValidationFailed("A reviewer id is required to comment through a review link")
        async with atomic(self.session):
            link, _ = await self.links.authorize(token, password)
            rnd = await self._active_round(link.project_id)
            _ensure_open(rnd)
            comment = await self._insert(
                rnd, payload,
                anon_author_id=reviewer_id,
                author_display_name=payload.author_display_name.strip(),
            )
        log.info("Reviewer comment %s added through link %s", comment.id, link.id)
        return comment

    async def _own_via_link(self, token: str, password: str | None, reviewer_id: str, comment_id: uuid.UUID) -> ReviewComment:
        link, _ = await self.links.authorize(token, password)
        comment = await self._comment(comment_id, link.project_id)
        rnd = await self._round(comment.round_id, for_update=True)
        if not reviewer_id or comment.anon_author_id != reviewer_id.strip():
            raise Unauthorized("Only the author can change this comment", comment_id=str(comment_id))
        _ensure_open(rnd)
        return comment

    async def edit_via_link(self, token: str, password: str | None, reviewer_id: str, comment_id: uuid.UUID, payload: CommentUpdate) -> ReviewComment:
        async with atomic(self.session):
            comment = await self._own_via_link(token, password, reviewer_id, comment_id)
            self._apply(comment, payload)
        return comment

    async def delete_via_link(self, token: str, password: str | None, reviewer_id: str, comment_id: uuid.UUID) -> None:
        async with atomic(self.session):
            comment = await self._own_via_link(token, password, reviewer_id, comment_id)
            await self.repo.delete(comment)

    # ---- image attachments ----
    def _check_image(self, file: UploadedFile) -> None:
        ctype = (file.content_type or "").lower()
        if ctype not in settings.COMMENT_IMAGE_TYPES:
            raise InvalidFileType(f'"{file.filename}" is not a JPEG, PNG or WebP image', filename=file.filename)
        if file.size > settings.MAX_COMMENT_IMAGE_BYTES:
            raise FileTooLarge(
                f'"{file.filename}" is larger than {settings.MAX_COMMENT_IMAGE_BYTES // (1024 * 1024)} MB',
                filename=file.filename,
            )

    def _store_images(self, project_id: uuid.UUID, files: Sequence[UploadedFile]) -> ImageUploadOut:
        if not files:
            raise ValidationFailed("No images were uploaded")
        if len(files) > settings.MAX_COMMENT_IMAGES:
            raise TooManyImages(
                f"At most {settings.MAX_COMMENT_IMAGES} images can be uploaded at once",
                limit=settings.MAX_COMMENT_IMAGES, received=len(files),
            )
        urls: list[str] = []
        rejected: list[ImageRejection] = []
        for f in files:
            try:
                self._check_image(f)
            except CutroomError as e:
                rejected.append(ImageRejection(filename=f.filename, error=e.code, reason=e.message))
                continue
            key = f"projects/{project_id}/comments/{uuid.uuid4().hex}{f.extension}"
            self.storage.put_bytes(key, f.data, content_type=f.content_type)
            urls.append(self.storage.public_url(key))
        return ImageUploadOut(urls=urls, rejected=rejected)

    async def upload_images(self, principal: Principal, project_id: uuid.UUID, files: Sequence[UploadedFile]) -> ImageUploadOut:
        await self.access.require(project_id, principal, PARTICIPANTS, action="upload feedback images")
        return self._store_images(project_id, files)

    async def upload_images_via_link(self, token: str, password: str | None, files: Sequence[UploadedFile]) -> ImageUploadOut:
        link, _ = await self.links.authorize(token, password)
        return self._store_images(link.project_id, files)
