import uuid
from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.core.db import get_session
from cutroom.core.security import get_principal, Principal
from cutroom.modules.review_links.schemas import ReviewLinkCreate, ReviewLinkUpdate, ReviewLinkOut, ResolvedLinkOut
from cutroom.modules.review_links.service import ReviewLinkService

router = APIRouter()
public_router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> ReviewLinkService:
    return ReviewLinkService(session)

@router.post("/projects/{project_id}/media/{media_id}/links", response_model=ReviewLinkOut, status_code=status.HTTP_201_CREATED)
async def create_link(project_id: uuid.UUID, media_id: uuid.UUID, payload: ReviewLinkCreate, principal: Principal = Depends(get_principal), service: ReviewLinkService = Depends(svc)):
    return await service.create_link(principal, project_id, media_id, payload)

@router.get("/projects/{project_id}/links", response_model=list[ReviewLinkOut])
async def list_links(project_id: uuid.UUID, media_id: uuid.UUID | None = None, principal: Principal = Depends(get_principal), service: ReviewLinkService = Depends(svc)):
    return await service.list_links(principal, project_id, media_id)

@router.post("/projects/{project_id}/links/{link_id}/toggle", response_model=ReviewLinkOut)
async def toggle_link(project_id: uuid.UUID, link_id: uuid.UUID, principal: Principal = Depends(get_principal), service: ReviewLinkService = Depends(svc)):
    return await service.toggle(principal, project_id, link_id)

@router.patch("/projects/{project_id}/links/{link_id}", response_model=ReviewLinkOut)
async def update_link(project_id: uuid.UUID, link_id: uuid.UUID, payload: ReviewLinkUpdate, principal: Principal = Depends(get_principal), service: ReviewLinkService = Depends(svc)):
    return await service.update(principal, project_id, link_id, payload)

@router.delete("/projects/{project_id}/links/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_link(project_id: uuid.UUID, link_id: uuid.UUID, principal: Principal = Depends(get_principal), service: ReviewLinkService = Depends(svc)):
    await service.delete(principal, project_id, link_id)

# ---- Public (no account) ----

@public_router.get("/review/{token}", response_model=ResolvedLinkOut)
async def resolve_link(token: str, x_review_password: str | None = Header(default=None), service: ReviewLinkService = Depends(svc)):
    return await service.resolve(token, x_review_password)
