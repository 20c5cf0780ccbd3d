import uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Integer, ForeignKey
from cutroom.core.base import Base, TimestampedMixin

class MediaFolder(Base, TimestampedMixin):
    project_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("project.id"), index=True)
    # NULL parent means the folder sits at the top of the project
    parent_folder_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("mediafolder.id"), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(120))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(7), default="#3B82F6")
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    created_by: Mapped[uuid.UUID] = mapped_column()
