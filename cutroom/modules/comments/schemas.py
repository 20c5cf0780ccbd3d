import uuid
from datetime import datetime
from pydantic import BaseModel, Field

class CommentCreate(BaseModel):
    body: str = Field(default="", max_length=5000)
    media_timestamp: float | None = Field(default=None, ge=0)
    images: list[str] = []
    author_display_name: str | None = Field(default=None, max_length=120)

class ReviewerCommentCreate(CommentCreate):
    author_display_name: str = Field(..., min_length=1, max_length=120)

class CommentUpdate(BaseModel):
    body: str | None = Field(default=None, max_length=5000)
    media_timestamp: float | None = Field(default=None, ge=0)
    clear_timestamp: bool = False
    images: list[str] | None = None

class CommentOut(BaseModel):
    id: uuid.UUID
    round_id: uuid.UUID
    project_id: uuid.UUID
    body: str
    media_timestamp: float | None
    images: list[str]
    links: list[str]
    author_user_id: uuid.UUID | None
    anon_author_id: str | None
    author_display_name: str
    resolved: bool
    edited_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True

class ImageRejection(BaseModel):
    filename: str
    error: str  # InvalidFileType | FileTooLarge
    reason: str

class ImageUploadOut(BaseModel):
    urls: list[str]
    rejected: list[ImageRejection] = []
