import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Float, Boolean, JSON, TIMESTAMP, ForeignKey
from cutroom.core.base import Base, TimestampedMixin

class ReviewComment(Base, TimestampedMixin):
    round_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("workflowround.id"), index=True)
    project_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("project.id"), index=True)

    body: Mapped[str] = mapped_column(Text, default="")
    media_timestamp: Mapped[float | None] = mapped_column(Float, nullable=True)  # seconds into the media
    images: Mapped[list] = mapped_column(JSON, default=list)
    links: Mapped[list] = mapped_column(JSON, default=list)

    # exactly one of these identifies the author
    author_user_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True, index=True)
    anon_author_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    author_display_name: Mapped[str] = mapped_column(String(120))

    resolved: Mapped[bool] = mapped_column(Boolean, default=False)
    edited_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
