"""Service tests for review comments, reviewer comments through links, and image attachments."""

import pytest
from sqlalchemy import update

from cutroom.core.config import settings
from cutroom.core.errors import (
    EmptyComment, LinkDenied, NotFound, RoundClosed, TooManyImages, Unauthorized, ValidationFailed,
)
from cutroom.modules.comments.repository import CommentRepository
from cutroom.modules.comments.schemas import CommentCreate, CommentUpdate, ReviewerCommentCreate
from cutroom.modules.comments.service import CommentService, extract_links
from cutroom.modules.media.service import MediaService
from cutroom.modules.review_links.schemas import ReviewLinkCreate
from cutroom.modules.review_links.service import ReviewLinkService
from cutroom.modules.rounds.models import WorkflowRound
from cutroom.modules.rounds.repository import RoundRepository
from cutroom.modules.rounds.service import RoundService


async def active_round_id(session, who, project_id):
    return (await RoundService(session).active_round(who, project_id)).id


async def review_token(session, owner, project_id, upload, **kwargs):
    [g] = await MediaService(session).upload(owner, project_id, [upload()])
    link = await ReviewLinkService(session).create_link(owner, project_id, g.id, ReviewLinkCreate(**kwargs))
    return link.id, link.token


class TestAuthenticatedComments:
    async def test_add_extracts_links(self, session, client, project_id):
        round_id = await active_round_id(session, client, project_id)
        comment = await CommentService(session).add(client, round_id, CommentCreate(
            body="Use the take from https://drive.test/take3. Also see http://ref.test/a?b=1",
            media_timestamp=4.25,
        ))
        assert comment.links == ["https://drive.test/take3", "http://ref.test/a?b=1"]
        assert comment.author_user_id == client.user_id
        assert comment.author_display_name == client.email
        assert comment.media_timestamp == 4.25
        assert not comment.resolved

    async def test_empty_comment_rejected(self, session, client, project_id):
        round_id = await active_round_id(session, client, project_id)
        with pytest.raises(EmptyComment):
            await CommentService(session).add(client, round_id, CommentCreate(body="   "))

    async def test_image_only_comment_is_fine(self, session, client, project_id):
        round_id = await active_round_id(session, client, project_id)
        comment = await CommentService(session).add(client, round_id, CommentCreate(images=["https://media.test/x.png"]))
        assert comment.body == ""

    async def test_too_many_images(self, session, client, project_id):
        round_id = await active_round_id(session, client, project_id)
        images = [f"https://media.test/{i}.png" for i in range(settings.MAX_COMMENT_IMAGES + 1)]
        with pytest.raises(TooManyImages):
            await CommentService(session).add(client, round_id, CommentCreate(body="see stills", images=images))

    async def test_only_author_edits(self, session, client, owner, project_id):
        service = CommentService(session)
        round_id = await active_round_id(session, client, project_id)
        comment = await service.add(client, round_id, CommentCreate(body="Warmer grade"))
        comment_id = comment.id
        with pytest.raises(Unauthorized):
            await service.edit(owner, comment_id, CommentUpdate(body="no"))
        with pytest.raises(Unauthorized):
            await service.delete(owner, comment_id)

        edited = await service.edit(client, comment_id, CommentUpdate(body="Warmer grade, see https://ref.test/look"))
        assert edited.edited_at is not None
        assert edited.links == ["https://ref.test/look"]

    async def test_edit_cannot_empty_a_comment(self, session, client, project_id):
        service = CommentService(session)
        round_id = await active_round_id(session, client, project_id)
        comment = await service.add(client, round_id, CommentCreate(body="Trim the tail"))
        with pytest.raises(EmptyComment):
            await service.edit(client, comment.id, CommentUpdate(body=""))

    async def test_author_deletes(self, session, viewer, project_id):
        service = CommentService(session)
        round_id = await active_round_id(session, viewer, project_id)
        comment = await service.add(viewer, round_id, CommentCreate(body="typo in lower third"))
        await service.delete(viewer, comment.id)
        assert await service.list_for_round(viewer, round_id) == []

    async def test_stranger_cannot_comment(self, session, owner, stranger, project_id):
        round_id = await active_round_id(session, owner, project_id)
        with pytest.raises(NotFound):
            await CommentService(session).add(stranger, round_id, CommentCreate(body="hi"))

    async def test_non_author_on_closed_round_is_unauthorized(self, session, owner, client, project_id):
        rounds = RoundService(session)
        service = CommentService(session)
        r1 = await rounds.active_round(owner, project_id)
        comment = await service.add(client, r1.id, CommentCreate(body="Faster cut"))
        comment_id = comment.id
        for i in range(len(r1.steps)):
            await rounds.complete_step(owner, r1.id, i, "https://deliver.test/v1.mp4")
        await rounds.decide(client, r1.id, "approved")
        # authorship is checked before the round state
        with pytest.raises(Unauthorized):
            await service.edit(owner, comment_id, CommentUpdate(body="x"))
        with pytest.raises(RoundClosed):
            await service.delete(client, comment_id)


class TestReviewerComments:
    async def test_reviewer_comments_land_on_active_round(self, session, owner, project_id, upload):
        _, token = await review_token(session, owner, project_id, upload)
        service = CommentService(session)
        comment = await service.add_via_link(token, None, "browser-123", ReviewerCommentCreate(
            body="Love it", author_display_name="Dana",
        ))
        assert comment.anon_author_id == "browser-123"
        assert comment.author_user_id is None
        assert comment.round_id == await active_round_id(session, owner, project_id)
        assert [c.id for c in await service.list_via_link(token, None)] == [comment.id]

    async def test_reviewer_id_is_required(self, session, owner, project_id, upload):
        _, token = await review_token(session, owner, project_id, upload)
        with pytest.raises(ValidationFailed):
            await CommentService(session).add_via_link(token, None, "  ", ReviewerCommentCreate(body="x", author_display_name="D"))

    async def test_only_same_reviewer_edits(self, session, owner, project_id, upload):
        _, token = await review_token(session, owner, project_id, upload)
        service = CommentService(session)
        comment = await service.add_via_link(token, None, "browser-1", ReviewerCommentCreate(body="Hmm", author_display_name="A"))
        comment_id = comment.id
        with pytest.raises(Unauthorized):
            await service.edit_via_link(token, None, "browser-2", comment_id, CommentUpdate(body="mine now"))
        edited = await service.edit_via_link(token, None, "browser-1", comment_id, CommentUpdate(body="Hmm, darker", media_timestamp=9))
        assert edited.body == "Hmm, darker"
        assert edited.media_timestamp == 9
        await service.delete_via_link(token, None, "browser-1", comment_id)
        assert await service.list_via_link(token, None) == []

    async def test_decision_made_after_round_lookup_is_honoured(self, session, owner, project_id, upload, monkeypatch):
        _, token = await review_token(session, owner, project_id, upload)
        round_id = await active_round_id(session, owner, project_id)
        lookup = RoundRepository.active_for_project

        async def decided_meanwhile(repo, pid):
            rnd = await lookup(repo, pid)
            # another request decides the round; this session's copy stays stale
            await repo.session.execute(
                update(WorkflowRound)
                .where(WorkflowRound.id == rnd.id)
                .values(client_decision="revisions_requested")
                .execution_options(synchronize_session=False)
            )
            return rnd

        monkeypatch.setattr(RoundRepository, "active_for_project", decided_meanwhile)
        with pytest.raises(RoundClosed):
            await CommentService(session).add_via_link(token, None, "browser-9", ReviewerCommentCreate(
                body="Too late", author_display_name="Dana",
            ))
        monkeypatch.undo()
        assert await CommentRepository(session).list_for_round(round_id) == []

    async def test_link_gates_apply(self, session, owner, project_id, upload):
        link_id, token = await review_token(session, owner, project_id, upload, requires_password=True, password="letmein")
        service = CommentService(session)
        payload = ReviewerCommentCreate(body="x", author_display_name="A")
        with pytest.raises(LinkDenied) as exc:
            await service.add_via_link(token, None, "b", payload)
        assert exc.value.reason == LinkDenied.PASSWORD_REQUIRED
        await ReviewLinkService(session).toggle(owner, project_id, link_id)
        with pytest.raises(LinkDenied) as exc:
            await service.add_via_link(token, "letmein", "b", payload)
        assert exc.value.reason == LinkDenied.INACTIVE


class TestImages:
    async def test_mixed_batch_reports_rejections(self, session, client, project_id, upload, storage, monkeypatch):
        monkeypatch.setattr(settings, "MAX_COMMENT_IMAGE_BYTES", 2_000)
        out = await CommentService(session).upload_images(client, project_id, [
            upload("still.png", 500, "image/png"),
            upload("frame.gif", 500, "image/gif"),
            upload("huge.jpg", 2_001, "image/jpeg"),
        ])
        assert len(out.urls) == 1
        assert out.urls[0].startswith("https://media.test/projects/")
        assert {(r.filename, r.error) for r in out.rejected} == {
            ("frame.gif", "InvalidFileType"),
            ("huge.jpg", "FileTooLarge"),
        }
        assert len(storage.objects) == 1

    async def test_too_many_images_at_once(self, session, client, project_id, upload):
        files = [upload(f"{i}.png", 10, "image/png") for i in range(settings.MAX_COMMENT_IMAGES + 1)]
        with pytest.raises(TooManyImages):
            await CommentService(session).upload_images(client, project_id, files)

    async def test_reviewer_uploads_through_link(self, session, owner, project_id, upload):
        _, token = await review_token(session, owner, project_id, upload)
        out = await CommentService(session).upload_images_via_link(token, None, [upload("a.webp", 10, "image/webp")])
        assert len(out.urls) == 1 and out.rejected == []


def test_extract_links_dedupes_and_trims_punctuation():
    body = "See (https://a.test/x), https://a.test/x and http://b.test."
    assert extract_links(body) == ["https://a.test/x", "http://b.test"]
    assert extract_links("") == []
