"""Pytest configuration and fixtures."""
import itertools
import json
import os
import uuid
from typing import Optional
from urllib.parse import urlparse

# Point the application engine at SQLite before app modules are imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base_class import Base
from app.core.security import create_access_token
from app.schemas.custom_domain import HttpProbeResult
from app.services.cloudflare import CloudflareClient
from app.services.dns_check import DnsChecker
from app.services.resolution_cache import ResolutionCache

DOH_ENDPOINT = "https://doh.test/dns-query"
CF_API_BASE = "https://cf.test/client/v4"
CF_ACCOUNT = "acct-123"

OWNER_A = "owner-a"
OWNER_B = "owner-b"


# --- Fake upstreams (served through httpx.MockTransport) ---

class FakeDoH:
    """DNS-over-HTTPS JSON resolver backed by a dict."""

    TYPE_CODES = {"CNAME": 5, "TXT": 16}

    def __init__(self):
        self.records: dict[tuple[str, str], list[str]] = {}
        self.fail_status: Optional[int] = None
        self.queries: list[tuple[str, str]] = []

    def publish(self, name: str, record_type: str, *values: str) -> None:
        self.records[(name, record_type)] = list(values)

    def handler(self, request: httpx.Request) -> httpx.Response:
        name = request.url.params["name"]
        record_type = request.url.params["type"]
        self.queries.append((name, record_type))
        if self.fail_status:
            return httpx.Response(self.fail_status, text="resolver unavailable")
        answers = [
            {"name": name, "type": self.TYPE_CODES[record_type], "data": value}
            for value in self.records.get((name, record_type), [])
        ]
        body = {"Status": 0}
        if answers:
            body["Answer"] = answers
        return httpx.Response(200, json=body)


class FakeCloudflare:
    """Cloudflare custom_hostnames API backed by a dict."""

    def __init__(self):
        self.hostnames: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.fail_create: Optional[int] = None
        self._ids = itertools.count(1)

    def set_state(
        self,
        cf_id: str,
        status: str = "pending",
        ssl_status: str = "pending_validation",
        verification_errors: Optional[list] = None,
        ssl_errors: Optional[list] = None,
    ) -> None:
        record = self.hostnames[cf_id]
        record["status"] = status
        record["verification_errors"] = verification_errors or []
        record["ssl"]["status"] = ssl_status
        record["ssl"]["verification_errors"] = ssl_errors or []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = urlparse(str(request.url)).path
        prefix = f"/client/v4/accounts/{CF_ACCOUNT}/custom_hostnames"
        if request.method == "POST" and path == prefix:
            if self.fail_create:
                return httpx.Response(self.fail_create, text='{"success":false}')
            data = json.loads(request.content)
            cf_id = f"cf-{next(self._ids)}"
            self.hostnames[cf_id] = {
                "id": cf_id,
                "hostname": data["hostname"],
                "status": "pending",
                "verification_errors": [],
                "ssl": {
                    "status": "pending_validation",
                    "method": data["ssl"]["method"],
                    "type": data["ssl"]["type"],
                    "verification_errors": [],
                },
            }
            return httpx.Response(200, json={"success": True, "errors": [], "result": self.hostnames[cf_id]})
        if request.method == "GET" and path.startswith(prefix + "/"):
            cf_id = path.rsplit("/", 1)[-1]
            if cf_id not in self.hostnames:
                return httpx.Response(404, json={"success": False, "errors": [{"message": "not found"}]})
            return httpx.Response(200, json={"success": True, "errors": [], "result": self.hostnames[cf_id]})
        return httpx.Response(404, json={"success": False, "errors": [{"message": "no route"}]})


class FakeProbe:
    def __init__(self, status: int = 200):
        self.status = status
        self.calls: list[str] = []

    async def __call__(self, hostname: str) -> HttpProbeResult:
        self.calls.append(hostname)
        return HttpProbeResult(ok=self.status < 400, status=self.status)


# --- DB ---

def _build_test_db_url() -> str:
    return os.getenv("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture(scope="session")
def test_engine():
    url = _build_test_db_url()
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(url)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=test_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# --- Upstream fakes & service ---

@pytest.fixture
def doh():
    return FakeDoH()


@pytest.fixture
def cloudflare_api():
    return FakeCloudflare()


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def resolution_cache():
    return ResolutionCache(ttl=60, negative_ttl=30, bypass_hosts=[])


@pytest.fixture
def dns_checker(doh):
    return DnsChecker(endpoint=DOH_ENDPOINT, transport=httpx.MockTransport(doh.handler))


@pytest.fixture
def cloudflare_client(cloudflare_api):
    return CloudflareClient(
        account_id=CF_ACCOUNT,
        api_token="cf-token",
        api_base=CF_API_BASE,
        transport=httpx.MockTransport(cloudflare_api.handler),
    )


@pytest.fixture
def make_service(dns_checker, cloudflare_client, probe, resolution_cache):
    from app.services.domain_verification import DomainVerificationService

    def _make(session):
        return DomainVerificationService(
            session,
            dns_checker=dns_checker,
            cloudflare=cloudflare_client,
            https_probe=probe,
            cache=resolution_cache,
        )

    return _make


@pytest.fixture
async def client(session_factory, make_service):
    """
    Async HTTP client against the FastAPI app with:
      - get_db bound to the test database
      - DoH / Cloudflare / HTTPS probe replaced by in-process fakes
    """
    from app.main import app as fastapi_app
    from app.api.deps import get_db
    from app.api.v1.endpoints.custom_domains import get_verification_service

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def _override_service():
        session = session_factory()
        try:
            yield make_service(session)
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    fastapi_app.dependency_overrides[get_verification_service] = _override_service

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()


# --- Helpers ---

def auth_headers(owner_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(owner_id)}"}


def add_distribution(db, owner_id: str, code: Optional[str] = None, title: str = "My App"):
    from app.models.distribution import Distribution

    dist = Distribution(
        id=str(uuid.uuid4()),
        owner_id=owner_id,
        code=code or uuid.uuid4().hex[:8],
        title=title,
    )
    db.add(dist)
    db.commit()
    db.refresh(dist)
    return dist
