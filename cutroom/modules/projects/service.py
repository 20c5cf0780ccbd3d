import uuid
import logging
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.core.config import settings
from cutroom.core.clock import utcnow
from cutroom.core.db import atomic
from cutroom.core.errors import NotFound, ValidationFailed
from cutroom.core.security import Principal
from cutroom.modules.projects.access import ProjectAccess, EDITORS, PARTICIPANTS, OWNER
from cutroom.modules.projects.models import Project, ProjectMember
from cutroom.modules.projects.repository import ProjectRepository, ProjectMemberRepository
from cutroom.modules.projects.schemas import ProjectCreate, MemberCreate, StorageUsageOut
from cutroom.modules.rounds.repository import RoundRepository
from cutroom.modules.rounds.steps import initial_steps, dump_steps

log = logging.getLogger(__name__)

class ProjectService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = ProjectRepository(session)
        self.members = ProjectMemberRepository(session)
        self.access = ProjectAccess(session)

    async def create_project(self, principal: Principal, payload: ProjectCreate) -> Project:
        async with atomic(self.session):
            obj = await self.repo.create(
                owner_id=principal.user_id,
                title=payload.title.strip(),
                description=payload.description,
                client_email=payload.client_email.strip().lower(),
                status="active",
                storage_quota_bytes=payload.storage_quota_bytes or settings.DEFAULT_STORAGE_QUOTA_BYTES,
                storage_used_bytes=0,
            )
            # Round 1 is born with the project
            await RoundRepository(self.session).create(
                obj.id, round_number=1, steps=dump_steps(initial_steps(payload.steps))
            )
        log.info("Project %s created by %s", obj.id, principal.user_id)
        return obj

    async def get_project(self, principal: Principal, project_id: uuid.UUID) -> Project:
        project, _ = await self.access.require(project_id, principal, PARTICIPANTS, action="view")
        return project

    async def list_projects(self, principal: Principal) -> Sequence[Project]:
        return await self.repo.list_visible(principal.user_id, principal.email)

    async def delete_project(self, principal: Principal, project_id: uuid.UUID) -> None:
        async with atomic(self.session):
            project, _ = await self.access.require(project_id, principal, frozenset({OWNER}), for_update=True, action="delete the project")
            project.deleted_at = utcnow()
        log.info("Project %s deleted by %s", project_id, principal.user_id)

    async def storage_usage(self, principal: Principal, project_id: uuid.UUID) -> StorageUsageOut:
        project, _ = await self.access.require(project_id, principal, EDITORS, action="view storage usage")
        return StorageUsageOut(
            quota_bytes=project.storage_quota_bytes,
            used_bytes=project.storage_used_bytes,
            remaining_bytes=max(project.storage_quota_bytes - project.storage_used_bytes, 0),
        )

    # ---- Members ----
    async def add_member(self, principal: Principal, project_id: uuid.UUID, payload: MemberCreate) -> ProjectMember:
        async with atomic(self.session):
            project, _ = await self.access.require(project_id, principal, frozenset({OWNER}), action="manage members")
            if payload.user_id == project.owner_id:
                raise ValidationFailed("The project owner cannot be added as a member")
            existing = await self.members.get(project_id, payload.user_id)
            if existing:
                existing.role = payload.role
                existing.email = payload.email or existing.email
                obj = existing
            else:
                obj = await self.members.add(project_id, payload.user_id, payload.role, payload.email)
        return obj

    async def list_members(self, principal: Principal, project_id: uuid.UUID) -> Sequence[ProjectMember]:
        await self.access.require(project_id, principal, PARTICIPANTS, action="view members")
        return await self.members.list(project_id)

    async def remove_member(self, principal: Principal, project_id: uuid.UUID, user_id: uuid.UUID) -> None:
        async with atomic(self.session):
            await self.access.require(project_id, principal, frozenset({OWNER}), action="manage members")
            if not await self.members.remove(project_id, user_id):
                raise NotFound("Member not found", user_id=str(user_id))
