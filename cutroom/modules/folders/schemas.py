import uuid
from datetime import datetime
from pydantic import BaseModel, Field

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"

class FolderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: str | None = None
    color: str | None = Field(default=None, pattern=HEX_COLOR)
    parent_folder_id: uuid.UUID | None = None

class FolderUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = None
    color: str | None = Field(default=None, pattern=HEX_COLOR)

class FolderMove(BaseModel):
    parent_folder_id: uuid.UUID | None = None  # None moves the folder to the top level

class MediaMove(BaseModel):
    folder_id: uuid.UUID | None = None  # None takes the group out of every folder

class FolderOut(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    parent_folder_id: uuid.UUID | None
    name: str
    description: str | None
    color: str
    display_order: int
    created_by: uuid.UUID
    created_at: datetime
    media_count: int = 0

    class Config:
        from_attributes = True

class FolderDeleteOut(BaseModel):
    deleted_folder_ids: list[uuid.UUID]
    deleted_media_count: int
