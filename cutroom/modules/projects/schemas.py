import uuid
from datetime import datetime
from pydantic import BaseModel, Field

class ProjectCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    client_email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+$")
    steps: list[str] | None = None  # names of the steps before "Finish"; defaults apply when omitted
    storage_quota_bytes: int | None = Field(default=None, gt=0)

class ProjectOut(BaseModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    description: str | None
    client_email: str
    status: str
    storage_quota_bytes: int
    storage_used_bytes: int
    created_at: datetime
    updated_at: datetime | None

    class Config:
        from_attributes = True

class StorageUsageOut(BaseModel):
    quota_bytes: int
    used_bytes: int
    remaining_bytes: int

class MemberCreate(BaseModel):
    user_id: uuid.UUID
    email: str | None = None
    role: str = Field(default="viewer", pattern="^(collaborator|viewer)$")

class MemberOut(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    user_id: uuid.UUID
    email: str | None
    role: str
    created_at: datetime

    class Config:
        from_attributes = True
