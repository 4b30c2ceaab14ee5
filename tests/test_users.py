"""
User endpoint tests — listing with counts and search, detail, update and
destroy (self-service and admin).
"""
import pytest
from httpx import AsyncClient

from conftest import PASSWORD


async def _create_post(client: AsyncClient, headers: dict, title: str = "Hello") -> int:
    resp = await client.post("/post/create", headers=headers, json={
        "title": title,
        "body": "Post body",
    })
    assert resp.status_code == 201
    return resp.json()["data"]["id"]


async def _user_id(client: AsyncClient, headers: dict, email: str) -> int:
    resp = await client.get(f"/users?limit=50&keyword={email}", headers=headers)
    return resp.json()["data"]["items"][0]["id"]


# ---------------------------------------------------------------------------
# List users
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_users_requires_limit(async_client: AsyncClient, user_headers):
    resp = await async_client.get("/users", headers=user_headers)
    assert resp.status_code == 422
    assert resp.json()["message"] == {"limit": ["Limit is required."]}


@pytest.mark.asyncio
async def test_list_users_with_counts(async_client: AsyncClient, user_headers, other_headers):
    post_id = await _create_post(async_client, user_headers)
    await _create_post(async_client, user_headers, "Second")
    await async_client.post("/comment/create", headers=other_headers, json={
        "comment": "Nice", "post_id": post_id,
    })

    resp = await async_client.get("/users?limit=10", headers=user_headers)
    assert resp.status_code == 200
    page = resp.json()["data"]
    assert page["total"] == 2
    assert page["page"] == 1
    assert page["page_size"] == 10
    by_email = {u["email"]: u for u in page["items"]}
    assert by_email["alice@example.com"]["posts_count"] == 2
    assert by_email["alice@example.com"]["comments_count"] == 0
    assert by_email["bob@example.com"]["posts_count"] == 0
    assert by_email["bob@example.com"]["comments_count"] == 1
    assert "password_hash" not in by_email["alice@example.com"]


@pytest.mark.asyncio
async def test_list_users_keyword_matches_name_or_email(
    async_client: AsyncClient, user_headers, other_headers
):
    resp = await async_client.get("/users?limit=10&keyword=BOB", headers=user_headers)
    items = resp.json()["data"]["items"]
    assert [u["email"] for u in items] == ["bob@example.com"]

    resp = await async_client.get("/users?limit=10&keyword=author", headers=user_headers)
    items = resp.json()["data"]["items"]
    assert [u["name"] for u in items] == ["Alice Author"]


@pytest.mark.asyncio
async def test_list_users_pagination(async_client: AsyncClient, user_headers, other_headers, admin_headers):
    resp = await async_client.get("/users?limit=2&page=2", headers=user_headers)
    page = resp.json()["data"]
    assert page["total"] == 3
    assert page["pages"] == 2
    assert len(page["items"]) == 1


# ---------------------------------------------------------------------------
# Detail
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_user_details_lists_live_posts(async_client: AsyncClient, user_headers):
    keep = await _create_post(async_client, user_headers, "Keep")
    gone = await _create_post(async_client, user_headers, "Gone")
    await async_client.post("/post/destroy", headers=user_headers, json={"post_id": gone})

    user_id = await _user_id(async_client, user_headers, "alice@example.com")
    resp = await async_client.get(f"/user/details?user_id={user_id}", headers=user_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["email"] == "alice@example.com"
    assert [p["id"] for p in data["posts"]] == [keep]


@pytest.mark.asyncio
async def test_user_details_not_found(async_client: AsyncClient, user_headers):
    resp = await async_client.get("/user/details?user_id=9999", headers=user_headers)
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "User not found."}


@pytest.mark.asyncio
async def test_user_details_requires_user_id(async_client: AsyncClient, user_headers):
    resp = await async_client.get("/user/details", headers=user_headers)
    assert resp.status_code == 422
    assert "user_id" in resp.json()["message"]


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_self(async_client: AsyncClient, user_headers):
    resp = await async_client.post("/user/update", headers=user_headers, json={
        "name": "Alice Renamed",
        "email": "alice.new@example.com",
        "password": "N3w!pass",
    })
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["token"]
    assert data["user"]["name"] == "Alice Renamed"

    # The new password works; the old one no longer does.
    ok = await async_client.post("/login", json={
        "email": "alice.new@example.com", "password": "N3w!pass",
    })
    assert ok.status_code == 200
    old = await async_client.post("/login", json={
        "email": "alice.new@example.com", "password": PASSWORD,
    })
    assert old.status_code == 401


@pytest.mark.asyncio
async def test_update_to_taken_email(async_client: AsyncClient, user_headers, other_headers):
    resp = await async_client.post("/user/update", headers=user_headers, json={
        "name": "Alice",
        "email": "bob@example.com",
        "password": PASSWORD,
    })
    assert resp.status_code == 422
    assert resp.json()["message"]["email"] == ["Email already exists."]


@pytest.mark.asyncio
async def test_update_other_user_denied(async_client: AsyncClient, user_headers, other_headers):
    bob_id = await _user_id(async_client, user_headers, "bob@example.com")
    resp = await async_client.post("/user/update", headers=user_headers, json={
        "user_id": bob_id,
        "name": "Hijacked",
        "email": "hijack@example.com",
        "password": PASSWORD,
    })
    assert resp.status_code == 403
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_admin_can_update_other_user(async_client: AsyncClient, admin_headers, other_headers):
    bob_id = await _user_id(async_client, admin_headers, "bob@example.com")
    resp = await async_client.post("/user/update", headers=admin_headers, json={
        "user_id": bob_id,
        "name": "Robert",
        "email": "robert@example.com",
        "password": PASSWORD,
    })
    assert resp.status_code == 200
    assert resp.json()["data"]["user"]["email"] == "robert@example.com"


# ---------------------------------------------------------------------------
# Destroy
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_destroy_other_user_denied(async_client: AsyncClient, user_headers, other_headers):
    bob_id = await _user_id(async_client, user_headers, "bob@example.com")
    resp = await async_client.post("/user/destroy", headers=user_headers, json={"user_id": bob_id})
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_destroys_user_without_content(async_client: AsyncClient, admin_headers, other_headers):
    bob_id = await _user_id(async_client, admin_headers, "bob@example.com")

    resp = await async_client.post("/user/destroy", headers=admin_headers, json={"user_id": bob_id})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "User deleted successfully."}

    gone = await async_client.get(f"/user/details?user_id={bob_id}", headers=admin_headers)
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_destroy_user_who_owns_posts_is_refused(
    async_client: AsyncClient, admin_headers, other_headers
):
    post_id = await _create_post(async_client, other_headers, "Still mine")
    bob_id = await _user_id(async_client, admin_headers, "bob@example.com")

    resp = await async_client.post("/user/destroy", headers=admin_headers, json={"user_id": bob_id})
    assert resp.status_code == 409
    assert resp.json() == {"success": False, "message": "User still owns posts or comments."}

    # Nothing was removed: the account and its post are both intact.
    user = await async_client.get(f"/user/details?user_id={bob_id}", headers=admin_headers)
    assert user.status_code == 200
    assert [p["id"] for p in user.json()["data"]["posts"]] == [post_id]
    post = await async_client.get(f"/post/details?post_id={post_id}", headers=admin_headers)
    assert post.json()["data"]["author"]["email"] == "bob@example.com"


@pytest.mark.asyncio
async def test_self_destroy_with_comments_is_refused(
    async_client: AsyncClient, user_headers, other_headers
):
    post_id = await _create_post(async_client, user_headers)
    await async_client.post("/comment/create", headers=other_headers, json={
        "comment": "Hello", "post_id": post_id,
    })

    resp = await async_client.post("/user/destroy", headers=other_headers, json={})
    assert resp.status_code == 409

    # The token still resolves, so the account is still there.
    still_there = await async_client.get("/posts?limit=10", headers=other_headers)
    assert still_there.status_code == 200
