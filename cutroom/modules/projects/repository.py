import uuid
from typing import Sequence
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.modules.projects.models import Project, ProjectMember

class ProjectRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **data) -> Project:
        obj = Project(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, project_id: uuid.UUID, *, for_update: bool = False) -> Project | None:
        q = select(Project).where(
            Project.id == project_id,
            Project.deleted_at.is_(None),
        )
        if for_update:
            q = q.with_for_update().execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_visible(self, user_id: uuid.UUID, email: str | None) -> Sequence[Project]:
        member_of = select(ProjectMember.project_id).where(
            ProjectMember.user_id == user_id,
            ProjectMember.deleted_at.is_(None),
        )
        visible = (Project.owner_id == user_id) | (Project.id.in_(member_of))
        if email:
            visible = visible | (Project.client_email == email.strip().lower())
        q = select(Project).where(Project.deleted_at.is_(None), visible).order_by(Project.created_at.desc())
        res = await self.session.execute(q)
        return res.scalars().all()

class ProjectMemberRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, project_id: uuid.UUID, user_id: uuid.UUID, role: str, email: str | None) -> ProjectMember:
        obj = ProjectMember(project_id=project_id, user_id=user_id, role=role, email=email)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, project_id: uuid.UUID, user_id: uuid.UUID) -> ProjectMember | None:
        q = select(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
            ProjectMember.deleted_at.is_(None),
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list(self, project_id: uuid.UUID) -> Sequence[ProjectMember]:
        q = select(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.deleted_at.is_(None),
        ).order_by(ProjectMember.created_at.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

    async def remove(self, project_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        res = await self.session.execute(
            delete(ProjectMember).where(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
        )
        return res.rowcount > 0
