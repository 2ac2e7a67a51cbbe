"""Common test fixtures for the BOMO API."""

import os

# Must be set before bomo.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SEED_DEFAULT_TAGS", "false")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from bomo.database import Base, build_engine, build_sessionmaker, get_db
from bomo.main import create_app
from bomo.models import Note, NoteStatus
from bomo.services.tag_service import TagService
from bomo.services.tag_store import TagStore


@pytest.fixture(params=["asyncio"])
def anyio_backend(request):
    """Restrict anyio tests to asyncio only (trio is not installed)."""
    return request.param


@pytest.fixture
async def engine():
    """In-memory SQLite engine shared by every session of one test."""
    engine = build_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session):
    return TagStore(session)


@pytest.fixture
def tag_service(store):
    return TagService(store)


@pytest.fixture
async def client(session_factory):
    """HTTP client against the app, with get_db bound to the test engine."""
    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def make_note(session):
    """Create a note, optionally attached to tags."""

    async def _make_note(title="Note", status=NoteStatus.PUBLISHED, tag_ids=(), **kwargs):
        note = Note(title=title, content=kwargs.pop("content", ""), status=status, **kwargs)
        session.add(note)
        await session.flush()
        store = TagStore(session)
        for tag_id in tag_ids:
            await store.add_association(note.id, tag_id)
        await session.commit()
        return note

    return _make_note

