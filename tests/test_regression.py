"""
Regression tests for issues found during code review.

1. Unique constraint violations that slip past the pre-checks return 409 (not 500)
2. X-Query-Count header reports the actual query count; one access-log line per request
3. CORS must not set allow_credentials=true with allow_origins=*
4. 500 responses never leak raw exception text unless explicitly enabled
5. Unknown routes still answer with the JSON envelope
"""
import logging

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from blog_api.config import settings
from blog_api.middleware import install_query_counter
from blog_api.services import tag_service, user_service
from conftest import PASSWORD, engine_test


# ---------------------------------------------------------------------------
# 1. Unique constraint violations -> 409
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_racing_registration_returns_409(async_client: AsyncClient, user_headers, monkeypatch):
    """A duplicate email that gets past the pre-check hits the unique index."""
    async def never_taken(db, email, exclude_id=None):
        return False

    monkeypatch.setattr(user_service, "_email_taken", never_taken)

    resp = await async_client.post("/register", json={
        "name": "Alice Twin", "email": "alice@example.com", "password": PASSWORD,
    })
    assert resp.status_code == 409
    assert resp.json() == {"success": False, "message": "Email already exists."}


@pytest.mark.asyncio
async def test_racing_tag_create_returns_409(async_client: AsyncClient, admin_headers, monkeypatch):
    await async_client.post("/tag/create", headers=admin_headers, json={"name": "python"})

    async def never_taken(db, name):
        return False

    monkeypatch.setattr(tag_service, "_name_taken", never_taken)

    resp = await async_client.post("/tag/create", headers=admin_headers, json={"name": "python"})
    assert resp.status_code == 409
    assert resp.json()["message"] == "Tag name already exists."


# ---------------------------------------------------------------------------
# 2. X-Query-Count reports actual query count
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_query_count_header_exact_for_tag_list(async_client: AsyncClient, admin_headers):
    """
    Tag list issues: user lookup for the bearer token + COUNT + SELECT = 3.
    """
    await async_client.post("/tag/create", headers=admin_headers, json={"name": "python"})

    resp = await async_client.get("/tags?limit=10", headers=admin_headers)
    assert resp.status_code == 200
    count = int(resp.headers["x-query-count"])
    assert count == 3, f"Expected exactly 3 queries for tag list, got {count}"
    assert float(resp.headers["x-response-time-ms"]) >= 0


@pytest.mark.asyncio
async def test_query_count_header_on_error_response(async_client: AsyncClient):
    resp = await async_client.get("/posts?limit=10")
    assert resp.status_code == 401
    assert resp.headers["x-query-count"] == "0"


@pytest.mark.asyncio
async def test_query_counter_installs_once(async_client: AsyncClient, admin_headers):
    install_query_counter(engine_test)
    install_query_counter(engine_test)

    resp = await async_client.get("/tags?limit=10", headers=admin_headers)
    assert resp.headers["x-query-count"] == "3"


@pytest.mark.asyncio
async def test_access_log_line(async_client: AsyncClient, caplog):
    caplog.set_level(logging.INFO, logger="blog_api.access")

    await async_client.get("/health")
    records = [r for r in caplog.records if r.name == "blog_api.access"]
    assert len(records) == 1
    assert records[0].levelno == logging.INFO
    assert records[0].getMessage().startswith("GET /health -> 200")


@pytest.mark.asyncio
async def test_slow_request_logged_as_warning(async_client: AsyncClient, caplog, monkeypatch):
    monkeypatch.setattr(settings, "SLOW_REQUEST_MS", 0)
    caplog.set_level(logging.INFO, logger="blog_api.access")

    await async_client.get("/posts?limit=10")
    records = [r for r in caplog.records if r.name == "blog_api.access"]
    assert records[-1].levelno == logging.WARNING
    assert "-> 401" in records[-1].getMessage()


# ---------------------------------------------------------------------------
# 3. CORS headers
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_cors_no_credentials_with_wildcard_origin(async_client: AsyncClient):
    """
    With allow_origins=["*"] the response must NOT include
    Access-Control-Allow-Credentials: true.
    """
    resp = await async_client.options(
        "/posts",
        headers={
            "Origin": "https://example.com",
            "Access-Control-Request-Method": "GET",
        },
    )
    cred_header = resp.headers.get("access-control-allow-credentials", "").lower()
    assert cred_header != "true", (
        "CORS must not combine allow_origins=* with allow_credentials=true"
    )


# ---------------------------------------------------------------------------
# 4. Store failures
# ---------------------------------------------------------------------------

async def _broken_get_tags(*args, **kwargs):
    raise OperationalError("SELECT tags.id FROM tags", {}, Exception("disk I/O error"))


@pytest.mark.asyncio
async def test_store_failure_hides_details(async_client: AsyncClient, user_headers, monkeypatch):
    monkeypatch.setattr(tag_service, "get_tags", _broken_get_tags)

    resp = await async_client.get("/tags?limit=10", headers=user_headers)
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": "Operation failed."}


@pytest.mark.asyncio
async def test_store_failure_details_when_enabled(
    async_client: AsyncClient, user_headers, monkeypatch, expose_errors
):
    monkeypatch.setattr(tag_service, "get_tags", _broken_get_tags)

    resp = await async_client.get("/tags?limit=10", headers=user_headers)
    assert resp.status_code == 500
    body = resp.json()
    assert body["message"] == "Operation failed."
    assert "disk I/O error" in body["error"]


# ---------------------------------------------------------------------------
# 5. Envelope on framework errors
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unknown_route_uses_envelope(async_client: AsyncClient):
    resp = await async_client.get("/no/such/route")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Not Found"}


@pytest.mark.asyncio
async def test_wrong_method_uses_envelope(async_client: AsyncClient):
    resp = await async_client.get("/post/create")
    assert resp.status_code == 405
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_health_is_public(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
