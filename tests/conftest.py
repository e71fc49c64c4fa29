"""Pytest configuration and fixtures."""

import asyncio
from pathlib import Path
from typing import Callable, Optional

import httpx
import pytest

from mo_approval.config import Settings
from mo_approval.services.password_hasher import PasswordHasher
from mo_approval.services.session_service import SessionAuthenticator
from mo_approval.services.user_store import UserStore

SAP_BASE_URL = "https://sap.example.com"
SAP_SERVICE_PATH = "/sap/opu/odata/sap/ZMO_APPROVAL_SRV"
SAP_TOKEN_ENDPOINT = "/sap/opu/odata/sap/ZMO_APPROVAL_SRV/"


@pytest.fixture
def users_file(tmp_path: Path) -> Path:
    """Location of the users file inside a not-yet-existing directory."""
    return tmp_path / "data" / "users.json"


@pytest.fixture
def settings(users_file: Path) -> Settings:
    """Settings pointing at a fake SAP system and a temporary users file."""
    return Settings(
        log_level="WARNING",
        users_file=str(users_file),
        default_admin_password="admin123",
        sap_base_url=SAP_BASE_URL,
        sap_odata_service_path=SAP_SERVICE_PATH,
        sap_username="svc_user",
        sap_password="svc_pass",
        sap_client="400",
        sap_csrf_token_endpoint=SAP_TOKEN_ENDPOINT,
        csrf_token_cache_duration=3_600_000,
    )


@pytest.fixture
def hasher() -> PasswordHasher:
    """Hasher with the minimum bcrypt cost to keep tests fast."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def user_store(users_file: Path, hasher: PasswordHasher) -> UserStore:
    return UserStore(users_file, hasher, default_admin_password="admin123")


@pytest.fixture
async def initialized_store(user_store: UserStore) -> UserStore:
    await user_store.ensure_initialized()
    return user_store


@pytest.fixture
def authenticator(initialized_store: UserStore, hasher: PasswordHasher) -> SessionAuthenticator:
    return SessionAuthenticator(initialized_store, hasher)


# ---------------------------------------------------------------------------
# Fake SAP system
# ---------------------------------------------------------------------------


class FakeSap:
    """Programmable stand-in for the SAP Gateway behind an httpx.MockTransport.

    Token fetches (``X-CSRF-Token: Fetch``) hand out ``tok-1``, ``tok-2``, ...
    Every other request is answered from ``responses`` (a queue of
    ``httpx.Response`` objects or exceptions) or with 200 ``{"d": {}}``.
    """

    def __init__(self):
        self.token_fetches = 0
        self.token_status = 200
        self.token_gate: Optional[asyncio.Event] = None
        self.requests: list[httpx.Request] = []
        self.responses: list = []
        self.handler: Optional[Callable[[httpx.Request], httpx.Response]] = None

    @property
    def data_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.headers.get("x-csrf-token") != "Fetch"]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.headers.get("x-csrf-token") == "Fetch":
            self.token_fetches += 1
            if self.token_gate is not None:
                await self.token_gate.wait()
            if self.token_status != 200:
                return httpx.Response(self.token_status, text="token endpoint down")
            return httpx.Response(
                200,
                headers=[
                    ("x-csrf-token", f"tok-{self.token_fetches}"),
                    ("set-cookie", f"SAP_SESSIONID_QAS_400=s{self.token_fetches}; path=/; HttpOnly"),
                    ("set-cookie", "sap-usercontext=sap-client=400; path=/"),
                ],
            )

        if self.handler is not None:
            return self.handler(request)
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return httpx.Response(200, json={"d": {}})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def fake_sap() -> FakeSap:
    return FakeSap()


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@pytest.fixture
def client(settings: Settings, fake_sap: FakeSap):
    """TestClient running the full lifespan against the fake SAP system."""
    from fastapi.testclient import TestClient

    from mo_approval.main import create_app

    with TestClient(create_app(settings, transport=fake_sap.transport())) as tc:
        yield tc


def login(client, user_id: str = "admin", password: str = "admin123") -> dict:
    """Log in and return the Authorization header for the new session."""
    response = client.post("/auth/login", json={"userId": user_id, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}
