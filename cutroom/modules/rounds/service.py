import uuid
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.core.clock import utcnow
from cutroom.core.config import settings
from cutroom.core.db import atomic
from cutroom.core.errors import AlreadyDecided, MissingDeliverable, NotFound, RoundClosed
from cutroom.core.security import Principal
from cutroom.modules.comments.repository import CommentRepository
from cutroom.modules.events.outbox import OutboxService
from cutroom.modules.projects.access import ProjectAccess, CLIENTS, EDITORS, PARTICIPANTS
from cutroom.modules.projects.models import Project
from cutroom.modules.rounds import steps as stepflow
from cutroom.modules.rounds.models import WorkflowRound
from cutroom.modules.rounds.repository import RoundRepository
from cutroom.modules.rounds.schemas import RoundOut, DecisionOut

log = logging.getLogger(__name__)

APPROVED = "approved"
REVISIONS_REQUESTED = "revisions_requested"

class RoundService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = RoundRepository(session)
        self.comments = CommentRepository(session)
        self.access = ProjectAccess(session)
        self.outbox = OutboxService(session)

    async def _load(self, principal: Principal, round_id: uuid.UUID, allowed: frozenset[str], *, for_update: bool = False, action: str) -> tuple[WorkflowRound, Project]:
        rnd = await self.repo.get(round_id, for_update=for_update)
        if not rnd:
            raise NotFound("Round not found", round_id=str(round_id))
        project, _ = await self.access.require(rnd.project_id, principal, allowed, action=action)
        return rnd, project

    # ---- reads ----
    async def list_rounds(self, principal: Principal, project_id: uuid.UUID) -> list[RoundOut]:
        await self.access.require(project_id, principal, PARTICIPANTS, action="view rounds")
        return [RoundOut.of(r) for r in await self.repo.list_for_project(project_id)]

    async def get_round(self, principal: Principal, round_id: uuid.UUID) -> RoundOut:
        rnd, _ = await self._load(principal, round_id, PARTICIPANTS, action="view rounds")
        return RoundOut.of(rnd)

    async def active_round(self, principal: Principal, project_id: uuid.UUID) -> RoundOut:
        await self.access.require(project_id, principal, PARTICIPANTS, action="view rounds")
        rnd = await self.repo.active_for_project(project_id)
        if not rnd:
            raise NotFound("Project has no rounds", project_id=str(project_id))
        return RoundOut.of(rnd)

    # ---- step progression ----
    def _ensure_open(self, rnd: WorkflowRound) -> None:
        if not rnd.is_open:
            raise RoundClosed(
                f"The client has already decided round {rnd.round_number}; its steps are frozen",
                round_id=str(rnd.id), decision=rnd.client_decision,
            )

    async def complete_step(self, principal: Principal, round_id: uuid.UUID, index: int, deliverable_link: str | None = None) -> RoundOut:
        async with atomic(self.session):
            rnd, _ = await self._load(principal, round_id, EDITORS, for_update=True, action="complete steps")
            self._ensure_open(rnd)
            before = stepflow.load_steps(rnd.steps)
            after = stepflow.complete_step(before, index, deliverable_link, utcnow())
            if after != before:
                rnd.steps = stepflow.dump_steps(after)
                await self.outbox.enqueue(rnd.project_id, "ROUND_STEP_COMPLETED", "round", rnd.id, {
                    "round_number": rnd.round_number,
                    "step_index": index,
                    "step": stepflow.describe(after[index]),
                    "ready_for_decision": stepflow.deliverable_submitted(after),
                })
        log.info("Round %s step %d completed by %s", round_id, index, principal.user_id)
        return RoundOut.of(rnd)

    async def revert_step(self, principal: Principal, round_id: uuid.UUID, index: int) -> RoundOut:
        async with atomic(self.session):
            rnd, _ = await self._load(principal, round_id, EDITORS, for_update=True, action="revert steps")
            self._ensure_open(rnd)
            before = stepflow.load_steps(rnd.steps)
            after = stepflow.revert_step(before, index)
            if after != before:
                rnd.steps = stepflow.dump_steps(after)
                await self.outbox.enqueue(rnd.project_id, "ROUND_STEP_REVERTED", "round", rnd.id, {
                    "round_number": rnd.round_number,
                    "step_index": index,
                    "step": stepflow.describe(after[index]),
                })
        log.info("Round %s step %d reverted by %s", round_id, index, principal.user_id)
        return RoundOut.of(rnd)

    # ---- client decision ----
    async def decide(self, principal: Principal, round_id: uuid.UUID, decision: str) -> DecisionOut:
        """Close the round for good; a revision request opens the next round from the open feedback."""
        async with atomic(self.session):
            rnd, project = await self._load(principal, round_id, CLIENTS, for_update=True, action="decide this round")
            if not rnd.is_open:
                raise AlreadyDecided(
                    f"The client has already decided round {rnd.round_number} ({rnd.client_decision})",
                    round_id=str(rnd.id), decision=rnd.client_decision,
                )
            if not stepflow.deliverable_submitted(stepflow.load_steps(rnd.steps)):
                raise MissingDeliverable(
                    "The Finish step must be completed with a deliverable link before the client can decide",
                    round_id=str(rnd.id),
                )

            rnd.client_decision = decision
            rnd.decided_at = utcnow()
            rnd.decided_by = principal.user_id

            next_round = None
            resolved: list[uuid.UUID] = []
            if decision == APPROVED:
                project.status = "completed"
                message = f"Round {rnd.round_number} approved"
            else:
                feedback = await self.comments.unresolved_for_round(rnd.id)
                next_round = await self.repo.create(
                    rnd.project_id,
                    round_number=rnd.round_number + 1,
                    steps=stepflow.dump_steps(stepflow.revision_steps(feedback, settings.STEP_NAME_MAX_CHARS)),
                )
                resolved = [c.id for c in feedback]
                await self.comments.mark_resolved(resolved)
                message = f"Revisions requested; round {next_round.round_number} opened with {len(resolved)} revision step(s)"

            await self.outbox.enqueue(rnd.project_id, "ROUND_DECIDED", "round", rnd.id, {
                "round_number": rnd.round_number,
                "decision": decision,
                "next_round_id": str(next_round.id) if next_round else None,
                "resolved_comment_ids": [str(i) for i in resolved],
            })
        log.info("Round %s decided %s by %s", round_id, decision, principal.user_id)
        return DecisionOut(
            round=RoundOut.of(rnd),
            next_round=RoundOut.of(next_round) if next_round else None,
            resolved_comment_ids=resolved,
            message=message,
        )
