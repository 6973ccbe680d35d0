"""Pytest fixtures for the blog backend."""

from __future__ import annotations

import re
from collections.abc import AsyncIterator, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from io import BytesIO

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from api.deps import get_db, get_mailer, get_media_host, get_tokens
from app import create_app
from core import TokenService, hash_password
from models import User
from services import PreparedImage

TEST_SECRET = "test-secret-key"
DEFAULT_PASSWORD = "Sup3rSecret!"
ACTION_LINK_PATTERN = re.compile(r'/(?:verified|reset-password)/([^"<]+)"')
NOT_AN_IMAGE = b"not an image"


class FrozenClock:
    """Manually advanced clock for token expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class InMemoryMediaHost:
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_upload = False
        self.fail_delete = False
        self._counter = 0

    async def prepare(self, data: bytes) -> PreparedImage:
        if data.startswith(NOT_AN_IMAGE):
            raise ValueError("Invalid image file.")
        return PreparedImage(data=data, content_type="image/jpeg")

    async def upload(self, image: PreparedImage) -> str:
        if self.fail_upload:
            raise RuntimeError("media host unavailable")
        self._counter += 1
        url = f"https://media.test/blog-media/blog/{self._counter}.jpg"
        self.objects[url] = image.data
        return url

    async def delete(self, url: str) -> None:
        if self.fail_delete:
            raise RuntimeError("media host unavailable")
        self.deleted.append(url)
        self.objects.pop(url, None)


@dataclass
class SentMail:
    recipient: str
    subject: str
    html: str


@dataclass
class RecordingMailer:
    sent: list[SentMail] = field(default_factory=list)
    fail: bool = False

    async def send(self, recipient: str, subject: str, html: str) -> None:
        if self.fail:
            raise ConnectionError("smtp server unreachable")
        self.sent.append(SentMail(recipient, subject, html))

    def last_token(self) -> str:
        match = ACTION_LINK_PATTERN.search(self.sent[-1].html)
        assert match is not None
        return match.group(1)


def _make_image_bytes(size: tuple[int, int] = (64, 48)) -> bytes:
    image = Image.new("RGB", size, color=(0, 200, 100))
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest_asyncio.fixture()
async def session_maker(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Session factory bound to a fresh file-backed SQLite database."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'blog-test.db'}",
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(session_maker) -> AsyncIterator[AsyncSession]:
    async with session_maker() as session:
        yield session


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def tokens(clock: FrozenClock) -> TokenService:
    return TokenService(TEST_SECRET, clock=clock)


@pytest.fixture()
def media() -> InMemoryMediaHost:
    return InMemoryMediaHost()


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def app(session_maker, tokens, media, mailer) -> Iterator[FastAPI]:
    application = create_app()

    async def override_get_db() -> AsyncIterator[AsyncSession]:
        async with session_maker() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_tokens] = lambda: tokens
    application.dependency_overrides[get_media_host] = lambda: media
    application.dependency_overrides[get_mailer] = lambda: mailer
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


async def _create_user(
    session: AsyncSession,
    *,
    name: str = "Alice",
    email: str = "alice@example.com",
    password: str = DEFAULT_PASSWORD,
    verified: bool = True,
) -> User:
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        verified=verified,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest_asyncio.fixture()
async def author(db_session: AsyncSession) -> User:
    return await _create_user(db_session)


@pytest_asyncio.fixture()
async def other_author(db_session: AsyncSession) -> User:
    return await _create_user(db_session, name="Bob", email="bob@example.com")


@pytest.fixture()
def auth_headers(tokens: TokenService):
    def build(user: User) -> dict[str, str]:
        issued = tokens.issue_session(user.id, user.name)
        return {"Authorization": f"Bearer {issued.token}"}

    return build


@pytest.fixture()
def user_factory(db_session: AsyncSession):
    async def create(**overrides) -> User:
        return await _create_user(db_session, **overrides)

    return create


@pytest.fixture()
def image_bytes():
    return _make_image_bytes


@pytest.fixture()
def token_service_factory(clock: FrozenClock):
    def build(secret: str = TEST_SECRET, **options) -> TokenService:
        return TokenService(secret, clock=clock, **options)

    return build
