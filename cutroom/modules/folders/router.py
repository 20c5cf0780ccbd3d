import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.core.db import get_session
from cutroom.core.security import get_principal, Principal
from cutroom.modules.folders.schemas import FolderCreate, FolderUpdate, FolderMove, FolderOut, FolderDeleteOut, MediaMove
from cutroom.modules.folders.service import FolderService
from cutroom.modules.media.schemas import MediaGroupOut

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> FolderService:
    return FolderService(session)

@router.get("/projects/{project_id}/folders", response_model=list[FolderOut])
async def list_folders(project_id: uuid.UUID, principal: Principal = Depends(get_principal), service: FolderService = Depends(svc)):
    return await service.list_folders(principal, project_id)

@router.post("/projects/{project_id}/folders", response_model=FolderOut, status_code=status.HTTP_201_CREATED)
async def create_folder(project_id: uuid.UUID, payload: FolderCreate, principal: Principal = Depends(get_principal), service: FolderService = Depends(svc)):
    return await service.create_folder(principal, project_id, payload)

@router.patch("/projects/{project_id}/folders/{folder_id}", response_model=FolderOut)
async def update_folder(project_id: uuid.UUID, folder_id: uuid.UUID, payload: FolderUpdate, principal: Principal = Depends(get_principal), service: FolderService = Depends(svc)):
    return await service.update_folder(principal, project_id, folder_id, payload)

@router.post("/projects/{project_id}/folders/{folder_id}/move", response_model=FolderOut)
async def move_folder(project_id: uuid.UUID, folder_id: uuid.UUID, payload: FolderMove, principal: Principal = Depends(get_principal), service: FolderService = Depends(svc)):
    return await service.move_folder(principal, project_id, folder_id, payload.parent_folder_id)

@router.delete("/projects/{project_id}/folders/{folder_id}", response_model=FolderDeleteOut)
async def delete_folder(project_id: uuid.UUID, folder_id: uuid.UUID, principal: Principal = Depends(get_principal), service: FolderService = Depends(svc)):
    return await service.delete_folder(principal, project_id, folder_id)

@router.get("/projects/{project_id}/folders/{folder_id}/media", response_model=list[MediaGroupOut])
async def list_folder_media(project_id: uuid.UUID, folder_id: uuid.UUID, principal: Principal = Depends(get_principal), service: FolderService = Depends(svc)):
    return await service.list_media(principal, project_id, folder_id)

@router.put("/projects/{project_id}/media/{media_id}/folder", response_model=MediaGroupOut)
async def move_media(project_id: uuid.UUID, media_id: uuid.UUID, payload: MediaMove, principal: Principal = Depends(get_principal), service: FolderService = Depends(svc)):
    return await service.move_media(principal, project_id, media_id, payload.folder_id)
