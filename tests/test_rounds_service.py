"""Service tests for the workflow round engine: steps, decisions and round spawning."""

import pytest

from cutroom.core.errors import (
    AlreadyDecided, MissingDeliverable, NotFound, OutOfOrder, RoundClosed, Unauthorized,
)
from cutroom.modules.comments.repository import CommentRepository
from cutroom.modules.comments.schemas import CommentCreate, CommentUpdate
from cutroom.modules.comments.service import CommentService
from cutroom.modules.events.outbox import OutboxRepository, OutboxService
from cutroom.modules.projects.schemas import MemberCreate, ProjectCreate
from cutroom.modules.projects.service import ProjectService
from cutroom.modules.rounds.service import RoundService

DELIVERABLE = "https://deliver.test/spring/final.mp4"


async def finish(service, editor, round_id):
    rnd = await service.get_round(editor, round_id)
    for i in range(len(rnd.steps)):
        rnd = await service.complete_step(editor, round_id, i, DELIVERABLE)
    return rnd


class TestSteps:
    async def test_round_one_is_born_with_the_project(self, session, owner, project_id):
        rounds = await RoundService(session).list_rounds(owner, project_id)
        assert [r.round_number for r in rounds] == [1]
        assert [s.name for s in rounds[0].steps] == ["Get Clips", "Edit/Cut", "Color", "Finish"]
        assert rounds[0].client_decision == "pending"
        assert not rounds[0].ready_for_decision

    async def test_custom_steps(self, session, owner):
        project = await ProjectService(session).create_project(
            owner, ProjectCreate(title="Promo", client_email="c@brand.test", steps=["Assemble", "Finish", "Grade"])
        )
        rnd = await RoundService(session).active_round(owner, project.id)
        assert [s.name for s in rnd.steps] == ["Assemble", "Grade", "Finish"]

    async def test_out_of_order_completion(self, session, owner, project_id):
        service = RoundService(session)
        rnd = await service.active_round(owner, project_id)
        with pytest.raises(OutOfOrder, match="Complete previous steps first"):
            await service.complete_step(owner, rnd.id, 2)

    async def test_finish_marks_round_ready(self, session, owner, project_id):
        service = RoundService(session)
        rnd = await service.active_round(owner, project_id)
        rnd = await finish(service, owner, rnd.id)
        assert rnd.ready_for_decision
        assert rnd.steps[-1].deliverable_link == DELIVERABLE
        events = await OutboxRepository(session).list_for_project(project_id, "ROUND_STEP_COMPLETED")
        assert len(events) == 4
        assert events[-1].payload["ready_for_decision"] is True

    async def test_revert_finish_clears_readiness(self, session, owner, project_id):
        service = RoundService(session)
        rnd = await service.active_round(owner, project_id)
        await finish(service, owner, rnd.id)
        rnd = await service.revert_step(owner, rnd.id, 3)
        assert not rnd.ready_for_decision
        assert rnd.steps[-1].deliverable_link is None

    async def test_only_editors_move_steps(self, session, collaborator, viewer, client, stranger, project_id):
        service = RoundService(session)
        rnd = await service.active_round(viewer, project_id)
        await service.complete_step(collaborator, rnd.id, 0)
        with pytest.raises(Unauthorized):
            await service.complete_step(viewer, rnd.id, 1)
        with pytest.raises(Unauthorized):
            await service.revert_step(client, rnd.id, 0)
        with pytest.raises(NotFound):
            await service.complete_step(stranger, rnd.id, 1)


class TestDecision:
    async def test_decision_requires_deliverable(self, session, owner, client, project_id):
        service = RoundService(session)
        rnd = await service.active_round(owner, project_id)
        with pytest.raises(MissingDeliverable):
            await service.decide(client, rnd.id, "approved")

    async def test_only_the_client_decides(self, session, owner, viewer, project_id):
        service = RoundService(session)
        rnd = await service.active_round(owner, project_id)
        await finish(service, owner, rnd.id)
        with pytest.raises(Unauthorized):
            await service.decide(owner, rnd.id, "approved")
        with pytest.raises(Unauthorized):
            await service.decide(viewer, rnd.id, "approved")

    async def test_approval_completes_project(self, session, owner, client, project_id):
        service = RoundService(session)
        rnd = await service.active_round(owner, project_id)
        await finish(service, owner, rnd.id)
        out = await service.decide(client, rnd.id, "approved")
        assert out.round.client_decision == "approved"
        assert out.next_round is None
        project = await ProjectService(session).get_project(owner, project_id)
        assert project.status == "completed"
        rounds = await service.list_rounds(owner, project_id)
        assert len(rounds) == 1

    async def test_revisions_without_feedback_get_general_step(self, session, owner, client, project_id):
        service = RoundService(session)
        rnd = await service.active_round(owner, project_id)
        await finish(service, owner, rnd.id)
        out = await service.decide(client, rnd.id, "revisions_requested")
        assert out.next_round.round_number == 2
        assert [s.kind for s in out.next_round.steps] == ["general_revision", "finish"]
        assert out.resolved_comment_ids == []

    async def test_client_added_as_viewer_still_decides(self, session, owner, client, project_id):
        await ProjectService(session).add_member(owner, project_id, MemberCreate(user_id=client.user_id, role="viewer"))
        service = RoundService(session)
        rnd = await service.active_round(client, project_id)
        with pytest.raises(Unauthorized):
            await service.complete_step(client, rnd.id, 0)
        await finish(service, owner, rnd.id)
        out = await service.decide(client, rnd.id, "approved")
        assert out.round.client_decision == "approved"


class TestRevisionCycle:
    async def test_feedback_becomes_next_round(self, session, owner, client, project_id):
        rounds = RoundService(session)
        comments = CommentService(session)
        r1 = await rounds.active_round(owner, project_id)
        await finish(rounds, owner, r1.id)

        c1 = await comments.add(client, r1.id, CommentCreate(body="Music is too loud here", media_timestamp=12.0))
        c2 = await comments.add(client, r1.id, CommentCreate(body="Logo flickers", media_timestamp=3.0))
        c3 = await comments.add(client, r1.id, CommentCreate(body="Overall pacing feels slow"))
        c1_id, c2_id, c3_id = c1.id, c2.id, c3.id

        out = await rounds.decide(client, r1.id, "revisions_requested")
        r2 = out.next_round
        assert r2.round_number == 2
        assert [getattr(s, "comment_id", None) for s in r2.steps] == [c2_id, c1_id, c3_id, None]
        assert r2.steps[0].name == "Revise: Logo flickers (at 3s)"
        assert r2.steps[-1].kind == "finish"
        assert not any(s.is_completed for s in r2.steps)
        assert set(out.resolved_comment_ids) == {c1_id, c2_id, c3_id}

        listed = await comments.list_for_round(owner, r1.id)
        assert all(c.resolved for c in listed)
        assert (await rounds.active_round(owner, project_id)).id == r2.id

        events = await OutboxRepository(session).list_for_project(project_id, "ROUND_DECIDED")
        assert events[0].payload["next_round_id"] == str(r2.id)

    async def test_decided_round_is_frozen(self, session, owner, client, project_id):
        rounds = RoundService(session)
        comments = CommentService(session)
        r1 = await rounds.active_round(owner, project_id)
        await finish(rounds, owner, r1.id)
        comment = await comments.add(client, r1.id, CommentCreate(body="Shorter intro"))
        comment_id = comment.id
        await rounds.decide(client, r1.id, "revisions_requested")

        with pytest.raises(AlreadyDecided):
            await rounds.decide(client, r1.id, "approved")
        with pytest.raises(RoundClosed, match="already decided"):
            await rounds.revert_step(owner, r1.id, 3)
        with pytest.raises(RoundClosed):
            await comments.add(client, r1.id, CommentCreate(body="One more thing"))
        with pytest.raises(RoundClosed):
            await comments.edit(client, comment_id, CommentUpdate(body="Changed my mind"))

        # a second decision never spawns another round
        assert [r.round_number for r in await rounds.list_rounds(owner, project_id)] == [1, 2]

    async def test_second_round_can_be_approved(self, session, owner, client, project_id):
        rounds = RoundService(session)
        r1 = await rounds.active_round(owner, project_id)
        await finish(rounds, owner, r1.id)
        r2 = (await rounds.decide(client, r1.id, "revisions_requested")).next_round
        await finish(rounds, owner, r2.id)
        out = await rounds.decide(client, r2.id, "approved")
        assert out.round.round_number == 2
        assert (await ProjectService(session).get_project(client, project_id)).status == "completed"


async def refuse(*args, **kwargs):
    raise RuntimeError("database went away")


class TestDecisionRollback:
    async def test_failure_while_resolving_feedback_undoes_the_decision(self, session, owner, client, project_id, monkeypatch):
        rounds = RoundService(session)
        comments = CommentService(session)
        r1 = await rounds.active_round(owner, project_id)
        await finish(rounds, owner, r1.id)
        comment = await comments.add(client, r1.id, CommentCreate(body="Trim the outro", media_timestamp=40))
        comment_id = comment.id

        monkeypatch.setattr(CommentRepository, "mark_resolved", refuse)
        with pytest.raises(RuntimeError):
            await rounds.decide(client, r1.id, "revisions_requested")
        monkeypatch.undo()

        listed = await rounds.list_rounds(owner, project_id)
        assert [r.round_number for r in listed] == [1]
        assert listed[0].client_decision == "pending"
        assert listed[0].ready_for_decision
        [kept] = await comments.list_for_round(owner, r1.id)
        assert kept.id == comment_id and not kept.resolved
        assert await OutboxRepository(session).list_for_project(project_id, "ROUND_DECIDED") == []

        # the same decision goes through once the failure is gone
        out = await rounds.decide(client, r1.id, "revisions_requested")
        assert out.resolved_comment_ids == [comment_id]

    async def test_failure_on_approval_leaves_project_open(self, session, owner, client, project_id, monkeypatch):
        rounds = RoundService(session)
        r1 = await rounds.active_round(owner, project_id)
        await finish(rounds, owner, r1.id)

        monkeypatch.setattr(OutboxService, "enqueue", refuse)
        with pytest.raises(RuntimeError):
            await rounds.decide(client, r1.id, "approved")
        monkeypatch.undo()

        assert (await rounds.get_round(owner, r1.id)).client_decision == "pending"
        assert (await ProjectService(session).get_project(owner, project_id)).status != "completed"
