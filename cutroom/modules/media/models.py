import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, BigInteger, Boolean, ForeignKey, Index, UniqueConstraint, text
from cutroom.core.base import Base, TimestampedMixin

MEDIA_STATUSES = ("on_hold", "in_progress", "needs_review", "rejected", "approved")

class MediaAsset(Base, TimestampedMixin):
    __table_args__ = (
        UniqueConstraint("group_id", "version_number", name="uq_mediaasset_group_version"),
        Index(
            "uq_mediaasset_group_current", "group_id", unique=True,
            postgresql_where=text("is_current"), sqlite_where=text("is_current = 1"),
        ),
    )

    project_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("project.id"), index=True)

    filename: Mapped[str] = mapped_column(String(255))  # display name, editable
    original_filename: Mapped[str] = mapped_column(String(255))
    mime_type: Mapped[str] = mapped_column(String(128))
    size_bytes: Mapped[int] = mapped_column(BigInteger)
    # The "key" is the storage object key relative to provider (e.g., s3 key or local path key).
    storage_key: Mapped[str] = mapped_column(String(512))
    url: Mapped[str] = mapped_column(String(1024))
    uploaded_by: Mapped[uuid.UUID] = mapped_column()
    status: Mapped[str] = mapped_column(String(16), default="in_progress")  # on_hold | in_progress | needs_review | rejected | approved

    # Version graph: parent_id is NULL for the group root
    parent_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("mediaasset.id"), nullable=True, index=True)
    group_id: Mapped[uuid.UUID] = mapped_column(index=True)  # root id, the root included
    # every member carries its group's folder so re-rooting keeps the filing
    folder_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("mediafolder.id"), nullable=True, index=True)
    version_number: Mapped[int] = mapped_column(Integer, default=1)
    is_current: Mapped[bool] = mapped_column(Boolean, default=True)

    @property
    def uploaded_at(self) -> datetime:
        return self.created_at
