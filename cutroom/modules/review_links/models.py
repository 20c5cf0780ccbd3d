import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, TIMESTAMP, ForeignKey
from cutroom.core.base import Base, TimestampedMixin

class ReviewLink(Base, TimestampedMixin):
    project_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("project.id"), index=True)
    # Group root id; a deleted group leaves NULL here and the link fails closed
    media_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("mediaasset.id", ondelete="SET NULL"), nullable=True, index=True)
    token: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    expires_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    allow_download: Mapped[bool] = mapped_column(Boolean, default=False)
    created_by: Mapped[uuid.UUID] = mapped_column()
    view_count: Mapped[int] = mapped_column(Integer, default=0)

    @property
    def requires_password(self) -> bool:
        return self.password_hash is not None
