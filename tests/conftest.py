"""
Test configuration and fixtures.

Provides:
- Both storage backends (in-process and SQLite in-memory), seeded with the demo roster
- A Resend notifier whose HTTP calls land in an in-test outbox
- Bearer-token headers for the demo identities
- HTTPX AsyncClient bound to the app with backend and notifier overridden
"""
import json
from typing import AsyncGenerator, List

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from auth import demo_users, issue_token, to_view
from database import create_schema, make_engine
from main import app
from notifications import EmailNotifier, get_notifier
from storage import MemoryBackend, SqlBackend, get_backend

ALEX = "asmith@beyond26advisors.com"
EDGAR = "esmith@beyond26advisors.com"
ADMIN = "admin@beyond26advisors.com"
CLIENT = "client@example.com"


def user_id(email: str) -> str:
    return next(u.id for u in demo_users() if u.email == email)


def headers_for(email: str) -> dict:
    user = next(u for u in demo_users() if u.email == email)
    return {"Authorization": f"Bearer {issue_token(to_view(user))}"}


# =============================================================================
# Storage Fixtures
# =============================================================================

@pytest.fixture
def memory_backend() -> MemoryBackend:
    return MemoryBackend(demo_users())


@pytest.fixture
def sql_backend():
    """Fresh SQLite in-memory database with the full schema and the demo roster."""
    engine = make_engine("sqlite://")
    create_schema(engine)
    backend = SqlBackend(engine)
    users = backend.repository("users")
    for user in demo_users():
        users.insert(user)
    yield backend
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def backend(request):
    """Every accessor must behave the same on both backends."""
    return request.getfixturevalue(f"{request.param}_backend")


# =============================================================================
# Notification Fixtures
# =============================================================================

class Outbox:
    """Captures Resend API calls; set ``status_code`` to simulate an upstream failure."""

    def __init__(self):
        self.sent: List[dict] = []
        self.status_code = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.status_code >= 300:
            return httpx.Response(self.status_code, json={"message": "upstream rejected"})
        self.sent.append(json.loads(request.content))
        return httpx.Response(self.status_code, json={"id": f"email-{len(self.sent)}"})


@pytest.fixture
def outbox() -> Outbox:
    return Outbox()


@pytest.fixture
def notifier(outbox: Outbox) -> EmailNotifier:
    return EmailNotifier(
        "re_test_key",
        "website@example.com",
        ["team@example.com"],
        transport=httpx.MockTransport(outbox.handler),
    )


# =============================================================================
# Client Fixtures
# =============================================================================

async def _client(backend, notifier) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_backend] = lambda: backend
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
async def client(backend, notifier) -> AsyncGenerator[AsyncClient, None]:
    """Client against each backend in turn."""
    async for c in _client(backend, notifier):
        yield c


@pytest.fixture
async def memory_client(memory_backend, notifier) -> AsyncGenerator[AsyncClient, None]:
    async for c in _client(memory_backend, notifier):
        yield c


@pytest.fixture
async def sql_client(sql_backend, notifier) -> AsyncGenerator[AsyncClient, None]:
    async for c in _client(sql_backend, notifier):
        yield c


@pytest.fixture
def alex() -> dict:
    return headers_for(ALEX)


@pytest.fixture
def edgar() -> dict:
    return headers_for(EDGAR)


@pytest.fixture
def admin() -> dict:
    return headers_for(ADMIN)


@pytest.fixture
def client_user() -> dict:
    return headers_for(CLIENT)
