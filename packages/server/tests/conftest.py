"""
Shared fixtures: file-backed SQLite per test, the app wired to it, and a
recording partner webhook.
"""

from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import docsign_federation.models  # noqa: F401
from docsign_federation.core.config import Settings
from docsign_federation.core.database import get_session
from docsign_federation.main import create_app
from docsign_federation.services.notifier import PartnerNotifier

EXTERNAL_SECRET = "partner-shared-secret"
WEBHOOK_SECRET = "webhook-signing-secret"
WEBHOOK_URL = "https://partner.test/v1/documenso/pms"


class WebhookRecorder:
    """Partner endpoint stand-in for httpx.MockTransport."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []
        self.error: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json={"ok": self.status_code < 400})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        external_auth_secret=EXTERNAL_SECRET,
        partner_webhook_url=WEBHOOK_URL,
        partner_webhook_secret=WEBHOOK_SECRET,
        secret_key="test-signing-key",
        debug=True,
        log_level="warning",
        log_format="text",
    )


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'federation.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def webhook() -> WebhookRecorder:
    return WebhookRecorder()


@pytest.fixture
def app(settings, session_factory, webhook):
    test_app = create_app(settings)

    async def _session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    test_app.dependency_overrides[get_session] = _session
    test_app.state.notifier = PartnerNotifier.from_settings(settings, transport=webhook.transport)
    return test_app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def business_body(**overrides) -> dict:
    body = {
        "email": "a@b.com",
        "name": "A",
        "businessId": "biz_1",
        "businessName": "Biz",
        "role": "ADMIN",
        "externalSecret": EXTERNAL_SECRET,
    }
    body.update(overrides)
    return body
