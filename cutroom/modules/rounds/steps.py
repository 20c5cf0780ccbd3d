"""Workflow steps and the pure rules that move them.

A round's steps are stored as JSON, but everywhere in code they are one of
four closed kinds:

* ``manual``: a step the editor named when creating the project,
* ``revision``: derived from one unresolved feedback comment,
* ``general_revision``: placeholder when revisions were requested without
  any feedback,
* ``finish``: the mandatory terminal step carrying the deliverable link.

The functions here never touch the database; the round service loads the
steps, applies one of these transitions and stores the result.
"""
import uuid
from datetime import datetime
from typing import Annotated, Iterable, Literal, Protocol, Sequence, Union
from urllib.parse import urlparse

from pydantic import BaseModel, Field, TypeAdapter

from cutroom.core.clock import as_utc
from cutroom.core.errors import (
    LaterStepsIncomplete, MissingDeliverable, NotFound, OutOfOrder, ValidationFailed,
)

PENDING = "pending"
COMPLETED = "completed"

FINISH_NAME = "Finish"
GENERAL_REVISION_NAME = "Implement General Revisions"
DEFAULT_STEP_NAMES = ("Get Clips", "Edit/Cut", "Color")


class _StepBase(BaseModel):
    name: str
    status: Literal["pending", "completed"] = PENDING
    completed_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED


class ManualStep(_StepBase):
    kind: Literal["manual"] = "manual"


class RevisionStep(_StepBase):
    kind: Literal["revision"] = "revision"
    comment_id: uuid.UUID
    media_timestamp: float | None = None


class GeneralRevisionStep(_StepBase):
    kind: Literal["general_revision"] = "general_revision"
    name: str = GENERAL_REVISION_NAME


class FinishStep(_StepBase):
    kind: Literal["finish"] = "finish"
    name: str = FINISH_NAME
    deliverable_link: str | None = None


Step = Annotated[
    Union[ManualStep, RevisionStep, GeneralRevisionStep, FinishStep],
    Field(discriminator="kind"),
]

_steps_adapter = TypeAdapter(list[Step])


class Feedback(Protocol):
    id: uuid.UUID
    body: str
    media_timestamp: float | None
    images: list
    created_at: datetime


def load_steps(raw: list[dict] | None) -> list[Step]:
    return _steps_adapter.validate_python(raw or [])


def dump_steps(steps: Sequence[Step]) -> list[dict]:
    return _steps_adapter.dump_python(list(steps), mode="json")


def initial_steps(names: Iterable[str] | None = None) -> list[Step]:
    """Steps for round 1: the given names (or the defaults) followed by Finish."""
    if names is None:
        names = DEFAULT_STEP_NAMES
    steps: list[Step] = []
    for name in names:
        clean = (name or "").strip()
        # Finish is always appended last, never taken from the caller
        if not clean or clean.lower() == FINISH_NAME.lower():
            continue
        steps.append(ManualStep(name=clean))
    steps.append(FinishStep())
    return steps


def describe(step: Step) -> dict:
    """Flat summary of a step used in event payloads and logs."""
    if isinstance(step, FinishStep):
        return {"kind": step.kind, "name": step.name, "deliverable_link": step.deliverable_link}
    if isinstance(step, RevisionStep):
        return {"kind": step.kind, "name": step.name, "comment_id": str(step.comment_id)}
    if isinstance(step, GeneralRevisionStep):
        return {"kind": step.kind, "name": step.name}
    if isinstance(step, ManualStep):
        return {"kind": step.kind, "name": step.name}
    raise TypeError(f"Unknown step type: {type(step).__name__}")


def finish_step(steps: Sequence[Step]) -> FinishStep:
    last = steps[-1] if steps else None
    if not isinstance(last, FinishStep):
        raise ValueError("Round steps must end with a Finish step")
    return last


def deliverable_submitted(steps: Sequence[Step]) -> bool:
    finish = finish_step(steps)
    return finish.is_completed and bool(finish.deliverable_link)


def _check_index(steps: Sequence[Step], index: int) -> None:
    if index < 0 or index >= len(steps):
        raise NotFound("Step not found", step_index=index)


def _validate_link(link: str) -> str:
    parsed = urlparse(link)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationFailed("Deliverable link must be an http(s) URL", deliverable_link=link)
    return link


def complete_step(steps: Sequence[Step], index: int, deliverable_link: str | None, now: datetime) -> list[Step]:
    _check_index(steps, index)
    for j in range(index):
        if not steps[j].is_completed:
            raise OutOfOrder(
                f'Complete previous steps first: "{steps[j].name}" is still pending',
                step_index=index, blocking_step_index=j,
            )

    step = steps[index]
    if isinstance(step, FinishStep):
        link = (deliverable_link or "").strip()
        if not link:
            raise MissingDeliverable("A deliverable link is required to complete the Finish step")
        updated = step.model_copy(update={"status": COMPLETED, "deliverable_link": _validate_link(link), "completed_at": now})
    elif isinstance(step, (ManualStep, RevisionStep, GeneralRevisionStep)):
        if step.is_completed:
            return list(steps)
        updated = step.model_copy(update={"status": COMPLETED, "completed_at": now})
    else:
        raise TypeError(f"Unknown step type: {type(step).__name__}")

    out = list(steps)
    out[index] = updated
    return out


def revert_step(steps: Sequence[Step], index: int) -> list[Step]:
    _check_index(steps, index)
    for j in range(index + 1, len(steps)):
        if steps[j].is_completed:
            raise LaterStepsIncomplete(
                f'Revert later steps first: "{steps[j].name}" is completed',
                step_index=index, blocking_step_index=j,
            )

    step = steps[index]
    if isinstance(step, FinishStep):
        updated = step.model_copy(update={"status": PENDING, "deliverable_link": None, "completed_at": None})
    elif isinstance(step, (ManualStep, RevisionStep, GeneralRevisionStep)):
        updated = step.model_copy(update={"status": PENDING, "completed_at": None})
    else:
        raise TypeError(f"Unknown step type: {type(step).__name__}")

    out = list(steps)
    out[index] = updated
    return out


# ---- Seeding a new round from feedback ----

def feedback_order(comments: Iterable[Feedback]) -> list[Feedback]:
    """Timestamped feedback first by media time, untimed feedback last; creation order breaks ties."""
    return sorted(
        comments,
        key=lambda c: (
            c.media_timestamp is None,
            c.media_timestamp if c.media_timestamp is not None else 0.0,
            as_utc(c.created_at),
        ),
    )


def revision_step_name(body: str, media_timestamp: float | None, max_chars: int) -> str:
    text = " ".join((body or "").split()) or "image feedback"
    if len(text) > max_chars:
        text = text[:max_chars] + "..."
    name = f"Revise: {text}"
    if media_timestamp is not None:
        name += f" (at {media_timestamp:g}s)"
    return name


def revision_steps(comments: Iterable[Feedback], max_chars: int) -> list[Step]:
    ordered = feedback_order(comments)
    steps: list[Step] = [
        RevisionStep(
            name=revision_step_name(c.body, c.media_timestamp, max_chars),
            comment_id=c.id,
            media_timestamp=c.media_timestamp,
        )
        for c in ordered
    ]
    if not steps:
        steps.append(GeneralRevisionStep())
    steps.append(FinishStep())
    return steps
