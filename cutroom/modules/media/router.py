import uuid
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.core.db import get_session
from cutroom.core.files import read_upload
from cutroom.core.security import get_principal, Principal
from cutroom.modules.media.schemas import (
    MediaAssetOut, MediaGroupOut, MediaUpdate, ReorderIn, MergeIn, MergeOut, DeleteVersionOut,
)
from cutroom.modules.media.service import MediaService

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> MediaService:
    return MediaService(session)

@router.get("", response_model=list[MediaGroupOut])
async def list_media(project_id: uuid.UUID, principal: Principal = Depends(get_principal), service: MediaService = Depends(svc)):
    return await service.list_groups(principal, project_id)

@router.post("", response_model=list[MediaGroupOut], status_code=status.HTTP_201_CREATED)
async def upload_media(
    project_id: uuid.UUID,
    files: list[UploadFile] = File(...),
    folder_id: uuid.UUID | None = Form(default=None),
    principal: Principal = Depends(get_principal),
    service: MediaService = Depends(svc),
):
    uploads = [await read_upload(f) for f in files]
    return await service.upload(principal, project_id, uploads, folder_id)

@router.get("/{media_id}", response_model=MediaGroupOut)
async def get_media_group(project_id: uuid.UUID, media_id: uuid.UUID, principal: Principal = Depends(get_principal), service: MediaService = Depends(svc)):
    return await service.get_group(principal, project_id, media_id)

@router.patch("/{media_id}", response_model=MediaAssetOut)
async def update_media(project_id: uuid.UUID, media_id: uuid.UUID, payload: MediaUpdate, principal: Principal = Depends(get_principal), service: MediaService = Depends(svc)):
    return await service.update_asset(principal, project_id, media_id, payload)

@router.post("/{media_id}/versions", response_model=MediaGroupOut, status_code=status.HTTP_201_CREATED)
async def attach_version(
    project_id: uuid.UUID,
    media_id: uuid.UUID,
    file: UploadFile = File(...),
    principal: Principal = Depends(get_principal),
    service: MediaService = Depends(svc),
):
    return await service.attach_version(principal, project_id, media_id, await read_upload(file))

@router.put("/{media_id}/versions/order", response_model=MediaGroupOut)
async def reorder_versions(project_id: uuid.UUID, media_id: uuid.UUID, payload: ReorderIn, principal: Principal = Depends(get_principal), service: MediaService = Depends(svc)):
    return await service.reorder(principal, project_id, media_id, payload.asset_ids)

@router.delete("/{media_id}/versions/{asset_id}", response_model=DeleteVersionOut)
async def delete_version(project_id: uuid.UUID, media_id: uuid.UUID, asset_id: uuid.UUID, principal: Principal = Depends(get_principal), service: MediaService = Depends(svc)):
    # media_id only scopes the URL; the asset's own group is what gets compacted
    group = await service.delete_version(principal, project_id, asset_id)
    return DeleteVersionOut(group=group)

@router.delete("/{media_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group(project_id: uuid.UUID, media_id: uuid.UUID, principal: Principal = Depends(get_principal), service: MediaService = Depends(svc)):
    await service.delete_group(principal, project_id, media_id)

@router.post("/{media_id}/merge", response_model=MergeOut)
async def merge_groups(project_id: uuid.UUID, media_id: uuid.UUID, payload: MergeIn, principal: Principal = Depends(get_principal), service: MediaService = Depends(svc)):
    return await service.merge(principal, project_id, media_id, payload.source_id)
