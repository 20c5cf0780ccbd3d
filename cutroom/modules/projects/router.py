import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.core.db import get_session
from cutroom.core.security import get_principal, Principal
from cutroom.modules.projects.schemas import ProjectCreate, ProjectOut, StorageUsageOut, MemberCreate, MemberOut
from cutroom.modules.projects.service import ProjectService

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> ProjectService:
    return ProjectService(session)

@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
async def create_project(payload: ProjectCreate, principal: Principal = Depends(get_principal), service: ProjectService = Depends(svc)):
    return await service.create_project(principal, payload)

@router.get("", response_model=list[ProjectOut])
async def list_projects(principal: Principal = Depends(get_principal), service: ProjectService = Depends(svc)):
    return await service.list_projects(principal)

@router.get("/{project_id}", response_model=ProjectOut)
async def get_project(project_id: uuid.UUID, principal: Principal = Depends(get_principal), service: ProjectService = Depends(svc)):
    return await service.get_project(principal, project_id)

@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(project_id: uuid.UUID, principal: Principal = Depends(get_principal), service: ProjectService = Depends(svc)):
    await service.delete_project(principal, project_id)

@router.get("/{project_id}/storage", response_model=StorageUsageOut)
async def storage_usage(project_id: uuid.UUID, principal: Principal = Depends(get_principal), service: ProjectService = Depends(svc)):
    return await service.storage_usage(principal, project_id)

# ---- Members ----

@router.get("/{project_id}/members", response_model=list[MemberOut])
async def list_members(project_id: uuid.UUID, principal: Principal = Depends(get_principal), service: ProjectService = Depends(svc)):
    return await service.list_members(principal, project_id)

@router.post("/{project_id}/members", response_model=MemberOut)
async def add_member(project_id: uuid.UUID, payload: MemberCreate, principal: Principal = Depends(get_principal), service: ProjectService = Depends(svc)):
    return await service.add_member(principal, project_id, payload)

@router.delete("/{project_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(project_id: uuid.UUID, user_id: uuid.UUID, principal: Principal = Depends(get_principal), service: ProjectService = Depends(svc)):
    await service.remove_member(principal, project_id, user_id)
