"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from dailyquiz.api.stream import get_audio_source
from dailyquiz.core.config import settings
from dailyquiz.core.db import get_session
from dailyquiz.core.errors import UpstreamError
from dailyquiz.core.security import create_jwt_token
from dailyquiz.main import app
from dailyquiz.models import game, question, schedule  # noqa: F401
from dailyquiz.models.base import Base
from dailyquiz.models.question import Contributor, Question
from dailyquiz.models.schedule import ScheduleEntry


ADMIN_KEY = "test-admin-key"


@pytest.fixture(autouse=True)
def quiz_settings(monkeypatch):
    """Deterministic secrets for every test."""
    monkeypatch.setattr(settings, "ADMIN_KEY", ADMIN_KEY)
    monkeypatch.setattr(settings, "OBFUSCATION_KEY", "test-mask-key")
    monkeypatch.setattr(settings, "JWT_SECRET", "test-jwt-secret")
    return settings


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite database file per test, schema from the ORM metadata."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'quiz.db'}", poolclass=NullPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for seeding and assertions."""
    async with session_factory() as session:
        yield session


class FakeStream:
    content_type = "audio/mp4"

    def __init__(self, chunks: list[bytes]):
        self.chunks = chunks
        self.closed = False

    async def iter_chunks(self):
        for chunk in self.chunks:
            yield chunk

    async def aclose(self):
        self.closed = True


class FakeAudioSource:
    """Stands in for the YouTube source; records what the proxy asked for."""

    def __init__(self):
        self.calls: list[tuple[str, int]] = []
        self.streams: list[FakeStream] = []
        self.fail = False
        self.chunks = [b"ID3", b"audio-bytes"]

    async def open_stream(self, media_id: str, start_seconds: int = 0):
        self.calls.append((media_id, start_seconds))
        if self.fail:
            raise UpstreamError()
        stream = FakeStream(self.chunks)
        self.streams.append(stream)
        return stream


@pytest.fixture
def audio_source() -> FakeAudioSource:
    return FakeAudioSource()


@pytest_asyncio.fixture
async def client(session_factory, audio_source) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app with the test database wired in."""

    async def _get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_audio_source] = lambda: audio_source

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_jwt_token({'sub': user_id})}"}


@pytest.fixture
def login():
    """Bearer headers for a login identity."""
    return auth_headers


@pytest.fixture
def question_factory(db_session: AsyncSession):
    """Create questions straight in the database, detached from the session."""

    async def _make(kind: str = "snippet", status: str = "approved", **overrides) -> Question:
        if kind == "snippet":
            fields = {
                "youtube_url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
                "youtube_start_seconds": 42,
                "youtube_duration_seconds": 30,
                "accepted_artists": ["Infected Mushroom", "אינפקטד"],
                "accepted_tracks": ["Becoming Insane"],
                "accepted_answers": [],
            }
        else:
            fields = {
                "question_text": "Which duo founded the label HOMmega?",
                "accepted_artists": [],
                "accepted_tracks": [],
                "accepted_answers": ["Infected Mushroom", "IM"],
            }
        fields.update(overrides)
        q = Question(type=kind, status=status, **fields)
        db_session.add(q)
        await db_session.commit()
        db_session.expunge(q)
        return q

    return _make


@pytest.fixture
def contributor_factory(db_session: AsyncSession):
    async def _make(user_id: str | None = None, is_active: bool = True, name: str = "Guest DJ") -> Contributor:
        c = Contributor(
            invite_code=f"code-{user_id or 'unbound'}-{is_active}",
            user_id=user_id,
            is_active=is_active,
            name=name,
        )
        db_session.add(c)
        await db_session.commit()
        db_session.expunge(c)
        return c

    return _make


@pytest.fixture
def schedule_factory(db_session: AsyncSession):
    async def _make(day: date, question: Question | None, *, is_active: bool = False, revealed: bool = False) -> ScheduleEntry:
        entry = ScheduleEntry(
            scheduled_for=day,
            type=question.type if question is not None else "snippet",
            question_id=question.id if question is not None else None,
            is_active=is_active,
            previous_answer_revealed=revealed,
        )
        db_session.add(entry)
        await db_session.commit()
        db_session.expunge(entry)
        return entry

    return _make
