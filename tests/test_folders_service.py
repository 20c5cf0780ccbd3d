"""Service tests for media folders: nesting, filing groups and recursive deletes."""

import uuid

import pytest

from cutroom.core.errors import FolderConflict, LinkDenied, NotFound, Unauthorized
from cutroom.modules.folders.schemas import FolderCreate, FolderUpdate
from cutroom.modules.folders.service import FolderService
from cutroom.modules.media.service import MediaService
from cutroom.modules.projects.service import ProjectService
from cutroom.modules.review_links.schemas import ReviewLinkCreate
from cutroom.modules.review_links.service import ReviewLinkService


class TestFolders:
    async def test_create_nested_and_list_in_order(self, session, owner, project_id):
        service = FolderService(session)
        raw = await service.create_folder(owner, project_id, FolderCreate(name="Raw footage"))
        await service.create_folder(owner, project_id, FolderCreate(name="Exports", color="#10B981"))
        day1 = await service.create_folder(owner, project_id, FolderCreate(name="Day 1", parent_folder_id=raw.id))
        assert raw.color == "#3B82F6"
        assert day1.parent_folder_id == raw.id
        listed = await service.list_folders(owner, project_id)
        assert [(f.name, f.display_order) for f in listed if f.parent_folder_id is None] == [("Raw footage", 0), ("Exports", 1)]
        assert [f.name for f in listed if f.parent_folder_id == raw.id] == ["Day 1"]

    async def test_sibling_names_are_unique(self, session, owner, project_id):
        service = FolderService(session)
        raw = await service.create_folder(owner, project_id, FolderCreate(name="Raw"))
        with pytest.raises(FolderConflict):
            await service.create_folder(owner, project_id, FolderCreate(name=" raw "))
        # the same name under another parent is fine
        await service.create_folder(owner, project_id, FolderCreate(name="Raw", parent_folder_id=raw.id))

    async def test_rename_checks_siblings(self, session, owner, project_id):
        service = FolderService(session)
        a = await service.create_folder(owner, project_id, FolderCreate(name="A"))
        await service.create_folder(owner, project_id, FolderCreate(name="B"))
        with pytest.raises(FolderConflict):
            await service.update_folder(owner, project_id, a.id, FolderUpdate(name="B"))
        renamed = await service.update_folder(owner, project_id, a.id, FolderUpdate(name="Selects", description="best takes"))
        assert (renamed.name, renamed.description) == ("Selects", "best takes")

    async def test_unknown_parent(self, session, owner, project_id):
        with pytest.raises(NotFound):
            await FolderService(session).create_folder(owner, project_id, FolderCreate(name="x", parent_folder_id=uuid.uuid4()))

    async def test_viewer_reads_but_cannot_create(self, session, owner, viewer, project_id):
        service = FolderService(session)
        await service.create_folder(owner, project_id, FolderCreate(name="Raw"))
        assert [f.name for f in await service.list_folders(viewer, project_id)] == ["Raw"]
        with pytest.raises(Unauthorized):
            await service.create_folder(viewer, project_id, FolderCreate(name="Mine"))


class TestMoveFolder:
    async def test_move_under_another_folder_and_back(self, session, owner, project_id):
        service = FolderService(session)
        a = await service.create_folder(owner, project_id, FolderCreate(name="A"))
        b = await service.create_folder(owner, project_id, FolderCreate(name="B"))
        moved = await service.move_folder(owner, project_id, b.id, a.id)
        assert moved.parent_folder_id == a.id
        back = await service.move_folder(owner, project_id, b.id, None)
        assert back.parent_folder_id is None

    async def test_cannot_move_into_itself_or_a_descendant(self, session, owner, project_id):
        service = FolderService(session)
        a = await service.create_folder(owner, project_id, FolderCreate(name="A"))
        b = await service.create_folder(owner, project_id, FolderCreate(name="B", parent_folder_id=a.id))
        c = await service.create_folder(owner, project_id, FolderCreate(name="C", parent_folder_id=b.id))
        with pytest.raises(FolderConflict):
            await service.move_folder(owner, project_id, a.id, a.id)
        with pytest.raises(FolderConflict):
            await service.move_folder(owner, project_id, a.id, c.id)

    async def test_destination_name_clash(self, session, owner, project_id):
        service = FolderService(session)
        a = await service.create_folder(owner, project_id, FolderCreate(name="A"))
        await service.create_folder(owner, project_id, FolderCreate(name="Cuts"))
        inner = await service.create_folder(owner, project_id, FolderCreate(name="Cuts", parent_folder_id=a.id))
        with pytest.raises(FolderConflict):
            await service.move_folder(owner, project_id, inner.id, None)


class TestFiling:
    async def test_upload_into_folder_and_list_it(self, session, owner, project_id, upload):
        folders = FolderService(session)
        media = MediaService(session)
        raw = await folders.create_folder(owner, project_id, FolderCreate(name="Raw"))
        [g] = await media.upload(owner, project_id, [upload("take1.mp4")], folder_id=raw.id)
        await media.upload(owner, project_id, [upload("loose.mp4")])
        assert g.current.folder_id == raw.id
        assert [x.id for x in await folders.list_media(owner, project_id, raw.id)] == [g.id]
        [listed] = await folders.list_folders(owner, project_id)
        assert listed.media_count == 1

    async def test_upload_into_unknown_folder_keeps_nothing(self, session, storage, owner, project_id, upload):
        with pytest.raises(NotFound):
            await MediaService(session).upload(owner, project_id, [upload()], folder_id=uuid.uuid4())
        assert storage.objects == {}

    async def test_versions_follow_their_group(self, session, owner, project_id, upload):
        folders = FolderService(session)
        media = MediaService(session)
        raw = await folders.create_folder(owner, project_id, FolderCreate(name="Raw"))
        exports = await folders.create_folder(owner, project_id, FolderCreate(name="Exports"))
        [g] = await media.upload(owner, project_id, [upload("v1.mp4")], folder_id=raw.id)
        g = await media.attach_version(owner, project_id, g.id, upload("v2.mp4"))
        assert {v.folder_id for v in g.versions} == {raw.id}

        # any member names the whole group
        moved = await folders.move_media(owner, project_id, g.current.id, exports.id)
        assert {v.folder_id for v in moved.versions} == {exports.id}
        assert await folders.list_media(owner, project_id, raw.id) == []

        # re-rooting keeps the filing
        left = await media.delete_version(owner, project_id, g.id)
        assert left.current.folder_id == exports.id

        unfiled = await folders.move_media(owner, project_id, left.id, None)
        assert unfiled.current.folder_id is None

    async def test_merged_version_joins_target_folder(self, session, owner, project_id, upload):
        folders = FolderService(session)
        media = MediaService(session)
        raw = await folders.create_folder(owner, project_id, FolderCreate(name="Raw"))
        [a] = await media.upload(owner, project_id, [upload("a.mp4")], folder_id=raw.id)
        [b] = await media.upload(owner, project_id, [upload("b.mp4")])
        out = await media.merge(owner, project_id, a.id, b.id)
        assert {v.folder_id for v in out.target.versions} == {raw.id}


class TestDeleteFolder:
    async def test_deletes_subfolders_media_and_frees_quota(self, session, storage, owner, project_id, upload):
        folders = FolderService(session)
        media = MediaService(session)
        raw = await folders.create_folder(owner, project_id, FolderCreate(name="Raw"))
        day1 = await folders.create_folder(owner, project_id, FolderCreate(name="Day 1", parent_folder_id=raw.id))
        keep = await folders.create_folder(owner, project_id, FolderCreate(name="Keep"))
        [g1] = await media.upload(owner, project_id, [upload("a.mp4")], folder_id=raw.id)
        await media.attach_version(owner, project_id, g1.id, upload("a2.mp4"))
        await media.upload(owner, project_id, [upload("b.mp4")], folder_id=day1.id)
        [kept] = await media.upload(owner, project_id, [upload("c.mp4")], folder_id=keep.id)
        link = await ReviewLinkService(session).create_link(owner, project_id, g1.id, ReviewLinkCreate())
        token = link.token

        out = await folders.delete_folder(owner, project_id, raw.id)
        assert set(out.deleted_folder_ids) == {raw.id, day1.id}
        assert out.deleted_media_count == 2

        assert [f.id for f in await folders.list_folders(owner, project_id)] == [keep.id]
        assert [g.id for g in await media.list_groups(owner, project_id)] == [kept.id]
        usage = await ProjectService(session).storage_usage(owner, project_id)
        assert usage.used_bytes == 1000
        assert len(storage.objects) == 1
        with pytest.raises(LinkDenied) as exc:
            await ReviewLinkService(session).resolve(token)
        assert exc.value.reason == LinkDenied.NOT_FOUND

    async def test_collaborator_deletes_viewer_cannot(self, session, owner, collaborator, viewer, project_id):
        service = FolderService(session)
        raw = await service.create_folder(owner, project_id, FolderCreate(name="Raw"))
        with pytest.raises(Unauthorized):
            await service.delete_folder(viewer, project_id, raw.id)
        out = await service.delete_folder(collaborator, project_id, raw.id)
        assert out.deleted_folder_ids == [raw.id]
