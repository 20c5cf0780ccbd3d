import uuid
from datetime import datetime
from pydantic import BaseModel, Field, computed_field
from cutroom.modules.rounds.steps import Step, load_steps, deliverable_submitted

class StepComplete(BaseModel):
    deliverable_link: str | None = Field(default=None, max_length=2048)

class DecisionIn(BaseModel):
    decision: str = Field(..., pattern="^(approved|revisions_requested)$")

class RoundOut(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    round_number: int
    steps: list[Step]
    client_decision: str
    decided_at: datetime | None
    created_at: datetime
    updated_at: datetime | None

    @computed_field
    @property
    def ready_for_decision(self) -> bool:
        return self.client_decision == "pending" and deliverable_submitted(self.steps)

    @classmethod
    def of(cls, obj) -> "RoundOut":
        return cls(
            id=obj.id, project_id=obj.project_id, round_number=obj.round_number,
            steps=load_steps(obj.steps), client_decision=obj.client_decision,
            decided_at=obj.decided_at, created_at=obj.created_at, updated_at=obj.updated_at,
        )

class DecisionOut(BaseModel):
    round: RoundOut
    next_round: RoundOut | None = None
    resolved_comment_ids: list[uuid.UUID] = []
    message: str
