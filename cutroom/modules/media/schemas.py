import uuid
from datetime import datetime
from pydantic import BaseModel, Field

class MediaAssetOut(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    filename: str
    original_filename: str
    mime_type: str
    size_bytes: int
    url: str
    status: str
    parent_id: uuid.UUID | None
    group_id: uuid.UUID
    folder_id: uuid.UUID | None
    version_number: int
    is_current: bool
    uploaded_by: uuid.UUID
    uploaded_at: datetime
    created_at: datetime
    updated_at: datetime | None

    class Config:
        from_attributes = True

class MediaGroupOut(BaseModel):
    id: uuid.UUID  # the root asset id; review links point here
    current: MediaAssetOut
    versions: list[MediaAssetOut]  # newest version first

class ReorderIn(BaseModel):
    asset_ids: list[uuid.UUID] = Field(..., min_length=1)

class MergeIn(BaseModel):
    source_id: uuid.UUID

class MergeOut(BaseModel):
    target: MediaGroupOut
    source: MediaGroupOut | None  # None when the dragged group had a single member

class DeleteVersionOut(BaseModel):
    group: MediaGroupOut | None  # None when the last member was removed

class MediaUpdate(BaseModel):
    filename: str | None = Field(default=None, min_length=1, max_length=255)
    status: str | None = Field(default=None, pattern="^(on_hold|in_progress|needs_review|rejected|approved)$")
