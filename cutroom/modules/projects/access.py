"""Project-scoped authorization.

Every mutation in the other modules starts here: the caller's role on the
owning project is resolved before any row is touched, and callers with no
role at all are told the project does not exist.
"""
import uuid
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.core.errors import NotFound, Unauthorized
from cutroom.core.security import Principal
from cutroom.modules.projects.models import Project
from cutroom.modules.projects.repository import ProjectRepository, ProjectMemberRepository

OWNER = "owner"
COLLABORATOR = "collaborator"
VIEWER = "viewer"
CLIENT = "client"

EDITORS = frozenset({OWNER, COLLABORATOR})
PARTICIPANTS = frozenset({OWNER, COLLABORATOR, VIEWER, CLIENT})
CLIENTS = frozenset({CLIENT})

class ProjectAccess:
    def __init__(self, session: AsyncSession):
        self.projects = ProjectRepository(session)
        self.members = ProjectMemberRepository(session)

    async def role_of(self, project: Project, principal: Principal) -> str | None:
        if project.owner_id == principal.user_id:
            return OWNER
        member = await self.members.get(project.id, principal.user_id)
        if member:
            return member.role
        if principal.email_matches(project.client_email):
            return CLIENT
        return None

    async def require(self, project_id: uuid.UUID, principal: Principal, allowed: frozenset[str], *, for_update: bool = False, action: str = "perform this action") -> tuple[Project, str]:
        project = await self.projects.get(project_id, for_update=for_update)
        if not project:
            raise NotFound("Project not found", project_id=str(project_id))
        role = await self.role_of(project, principal)
        if role not in allowed and role != OWNER and CLIENT in allowed and principal.email_matches(project.client_email):
            # a client who was also added as a member still acts as the client
            role = CLIENT
        if role is None:
            raise NotFound("Project not found", project_id=str(project_id))
        if role not in allowed:
            raise Unauthorized(f"Your role ({role}) cannot {action} on this project", role=role)
        return project, role
