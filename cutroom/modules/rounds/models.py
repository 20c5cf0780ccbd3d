import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, JSON, TIMESTAMP, ForeignKey, UniqueConstraint
from cutroom.core.base import Base, TimestampedMixin

class WorkflowRound(Base, TimestampedMixin):
    __table_args__ = (UniqueConstraint("project_id", "round_number", name="uq_workflowround_project_round"),)

    project_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("project.id"), index=True)
    round_number: Mapped[int] = mapped_column(Integer)
    steps: Mapped[list] = mapped_column(JSON, default=list)  # see rounds.steps for the step kinds
    client_decision: Mapped[str] = mapped_column(String(24), default="pending")  # pending | approved | revisions_requested
    decided_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    decided_by: Mapped[uuid.UUID | None] = mapped_column(nullable=True)

    @property
    def is_open(self) -> bool:
        return self.client_decision == "pending"
