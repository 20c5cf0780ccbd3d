import uuid
from datetime import datetime
from pydantic import BaseModel, Field, model_validator
from cutroom.modules.media.schemas import MediaAssetOut

class ReviewLinkCreate(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    expires_at: datetime | None = None
    requires_password: bool = False
    password: str | None = Field(default=None, min_length=4, max_length=72)
    allow_download: bool = False

    @model_validator(mode="after")
    def _password_when_required(self):
        if self.requires_password and not self.password:
            raise ValueError("password is required when requires_password is set")
        if self.password and not self.requires_password:
            raise ValueError("a password was given but requires_password is not set")
        return self

class ReviewLinkUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    expires_at: datetime | None = None
    clear_expiry: bool = False
    allow_download: bool | None = None
    password: str | None = Field(default=None, min_length=4, max_length=72)
    clear_password: bool = False

    @model_validator(mode="after")
    def _set_or_clear_password(self):
        if self.password and self.clear_password:
            raise ValueError("password and clear_password cannot be combined")
        return self

class ReviewLinkOut(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    media_id: uuid.UUID | None
    token: str
    title: str | None
    is_active: bool
    expires_at: datetime | None
    requires_password: bool
    allow_download: bool
    view_count: int
    created_at: datetime

    class Config:
        from_attributes = True

class ResolvedLinkOut(BaseModel):
    link_id: uuid.UUID
    title: str | None
    project_id: uuid.UUID
    group_id: uuid.UUID
    asset: MediaAssetOut  # always the group's current version
    allow_download: bool
    download_url: str | None = None
