"""
Cutroom test suite: shared fixtures.

Run:  pytest tests/ -v

Everything runs against an in-memory SQLite database (aiosqlite) and an
in-memory object store, so no Postgres, S3 or Redis is needed.
"""
import os

# configure before any cutroom module reads settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENV"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["OUTBOX_RELAY_ENABLED"] = "false"
os.environ["EVENT_BUS_PROVIDER"] = "noop"

import uuid

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from cutroom.core.base import Base
from cutroom.core.files import UploadedFile
from cutroom.core.security import Principal
from cutroom.platform.provider_registry import registry
import cutroom.modules.projects.models  # noqa: F401
import cutroom.modules.folders.models  # noqa: F401
import cutroom.modules.media.models  # noqa: F401
import cutroom.modules.review_links.models  # noqa: F401
import cutroom.modules.rounds.models  # noqa: F401
import cutroom.modules.comments.models  # noqa: F401
import cutroom.modules.events.outbox  # noqa: F401
from cutroom.modules.projects.schemas import ProjectCreate, MemberCreate
from cutroom.modules.projects.service import ProjectService


class FakeStorage:
    """Object store keeping blobs in a dict."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []

    def put_bytes(self, key: str, data: bytes, content_type: str) -> None:
        self.objects[key] = data

    def delete(self, key: str) -> None:
        self.deleted.append(key)
        self.objects.pop(key, None)

    def public_url(self, key: str) -> str:
        return f"https://media.test/{key}"

    def presign_download(self, key: str, expires_seconds: int = 900, filename: str | None = None) -> str:
        return f"https://media.test/{key}?signed=1&expires={expires_seconds}"


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture(autouse=True)
def storage():
    fake = FakeStorage()
    registry.use_object_storage(fake)
    yield fake
    registry.use_object_storage(None)


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------

@pytest.fixture
def owner():
    return Principal(user_id=uuid.uuid4(), email="editor@studio.test")


@pytest.fixture
def collaborator():
    return Principal(user_id=uuid.uuid4(), email="assistant@studio.test")


@pytest.fixture
def viewer():
    return Principal(user_id=uuid.uuid4(), email="watcher@studio.test")


@pytest.fixture
def client():
    return Principal(user_id=uuid.uuid4(), email="Client@Brand.test")


@pytest.fixture
def stranger():
    return Principal(user_id=uuid.uuid4(), email="nobody@elsewhere.test")


@pytest.fixture
async def project_id(session, owner, collaborator, viewer):
    """Id of a project owned by `owner`, with a collaborator and a viewer.

    Only the id is handed out: a rolled-back transaction expires ORM
    instances, and tests should go back through the services anyway.
    """
    service = ProjectService(session)
    obj = await service.create_project(owner, ProjectCreate(
        title="Spring campaign",
        client_email="client@brand.test",
        storage_quota_bytes=500_000,
    ))
    await service.add_member(owner, obj.id, MemberCreate(user_id=collaborator.user_id, role="collaborator"))
    await service.add_member(owner, obj.id, MemberCreate(user_id=viewer.user_id, role="viewer"))
    return obj.id


def make_file(name: str = "cut.mp4", size: int = 1000, content_type: str = "video/mp4") -> UploadedFile:
    return UploadedFile(filename=name, content_type=content_type, data=b"\0" * size)


@pytest.fixture
def upload():
    return make_file
