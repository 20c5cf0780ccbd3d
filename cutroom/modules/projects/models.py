import uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, BigInteger, ForeignKey, UniqueConstraint
from cutroom.core.base import Base, TimestampedMixin

class Project(Base, TimestampedMixin):
    owner_id: Mapped[uuid.UUID] = mapped_column(index=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    client_email: Mapped[str] = mapped_column(String(320))
    status: Mapped[str] = mapped_column(String(16), default="active")  # active | completed

    # Storage accounting; guarded by a row lock on every change
    storage_quota_bytes: Mapped[int] = mapped_column(BigInteger)
    storage_used_bytes: Mapped[int] = mapped_column(BigInteger, default=0)

class ProjectMember(Base, TimestampedMixin):
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_projectmember_project_user"),)

    project_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("project.id"), index=True)
    user_id: Mapped[uuid.UUID] = mapped_column()
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    role: Mapped[str] = mapped_column(String(16), default="viewer")  # collaborator | viewer
