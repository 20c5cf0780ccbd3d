import uuid
from fastapi import APIRouter, Depends, File, Header, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.core.db import get_session
from cutroom.core.files import read_upload
from cutroom.core.security import get_principal, Principal
from cutroom.modules.comments.schemas import (
    CommentCreate, CommentUpdate, CommentOut, ReviewerCommentCreate, ImageUploadOut,
)
from cutroom.modules.comments.service import CommentService

router = APIRouter()
public_router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> CommentService:
    return CommentService(session)

@router.get("/rounds/{round_id}/comments", response_model=list[CommentOut])
async def list_comments(round_id: uuid.UUID, principal: Principal = Depends(get_principal), service: CommentService = Depends(svc)):
    return await service.list_for_round(principal, round_id)

@router.post("/rounds/{round_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
async def add_comment(round_id: uuid.UUID, payload: CommentCreate, principal: Principal = Depends(get_principal), service: CommentService = Depends(svc)):
    return await service.add(principal, round_id, payload)

@router.patch("/comments/{comment_id}", response_model=CommentOut)
async def edit_comment(comment_id: uuid.UUID, payload: CommentUpdate, principal: Principal = Depends(get_principal), service: CommentService = Depends(svc)):
    return await service.edit(principal, comment_id, payload)

@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(comment_id: uuid.UUID, principal: Principal = Depends(get_principal), service: CommentService = Depends(svc)):
    await service.delete(principal, comment_id)

@router.post("/projects/{project_id}/comment-images", response_model=ImageUploadOut)
async def upload_images(project_id: uuid.UUID, files: list[UploadFile] = File(...), principal: Principal = Depends(get_principal), service: CommentService = Depends(svc)):
    return await service.upload_images(principal, project_id, [await read_upload(f) for f in files])

# ---- Reviewers through a review link ----

@public_router.get("/review/{token}/comments", response_model=list[CommentOut])
async def list_review_comments(token: str, x_review_password: str | None = Header(default=None), service: CommentService = Depends(svc)):
    return await service.list_via_link(token, x_review_password)

@public_router.post("/review/{token}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
async def add_review_comment(
    token: str,
    payload: ReviewerCommentCreate,
    x_reviewer_id: str = Header(...),
    x_review_password: str | None = Header(default=None),
    service: CommentService = Depends(svc),
):
    return await service.add_via_link(token, x_review_password, x_reviewer_id, payload)

@public_router.patch("/review/{token}/comments/{comment_id}", response_model=CommentOut)
async def edit_review_comment(
    token: str,
    comment_id: uuid.UUID,
    payload: CommentUpdate,
    x_reviewer_id: str = Header(...),
    x_review_password: str | None = Header(default=None),
    service: CommentService = Depends(svc),
):
    return await service.edit_via_link(token, x_review_password, x_reviewer_id, comment_id, payload)

@public_router.delete("/review/{token}/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review_comment(
    token: str,
    comment_id: uuid.UUID,
    x_reviewer_id: str = Header(...),
    x_review_password: str | None = Header(default=None),
    service: CommentService = Depends(svc),
):
    await service.delete_via_link(token, x_review_password, x_reviewer_id, comment_id)

@public_router.post("/review/{token}/images", response_model=ImageUploadOut)
async def upload_review_images(
    token: str,
    files: list[UploadFile] = File(...),
    x_review_password: str | None = Header(default=None),
    service: CommentService = Depends(svc),
):
    return await service.upload_images_via_link(token, x_review_password, [await read_upload(f) for f in files])
