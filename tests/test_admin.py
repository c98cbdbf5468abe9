"""
Moderation tests — the admin gate, the admin list and approval.

Admins are promoted through the same service call the promote_admin
script uses; the gate reads the role from the database on every request,
so a token issued before the promotion works immediately.
"""
import pytest
from httpx import AsyncClient


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def _login(client: AsyncClient, email: str, name: str) -> str:
    resp = await client.post("/api/visitor/login", json={"email": email, "name": name})
    assert resp.status_code == 200
    return resp.json()["token"]


async def _submit(client: AsyncClient, token: str, message: str) -> dict:
    resp = await client.post("/api/comments", json={"message": message}, headers=_auth(token))
    assert resp.status_code == 201
    return resp.json()["comment"]


async def _admin_token(client: AsyncClient, promote) -> str:
    token = await _login(client, "admin@x.com", "Admin")
    await promote("admin@x.com")
    return token


# ---------------------------------------------------------------------------
# Admin gate
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("method,path", [
    ("GET", "/api/comments/admin"),
    ("PUT", "/api/comments/1/approve"),
])
async def test_visitor_token_on_admin_endpoint_is_forbidden(async_client: AsyncClient, method, path):
    """A plain visitor is rejected with 403, never 404 or success."""
    token = await _login(async_client, "a@x.com", "Ann")
    resp = await async_client.request(method, path, headers=_auth(token))
    assert resp.status_code == 403
    assert resp.json()["code"] == "AdminRequired"


@pytest.mark.asyncio
async def test_admin_endpoint_without_token(async_client: AsyncClient):
    resp = await async_client.get("/api/comments/admin")
    assert resp.status_code == 401
    assert resp.json()["code"] == "MissingToken"


@pytest.mark.asyncio
async def test_admin_endpoint_with_invalid_token(async_client: AsyncClient):
    resp = await async_client.get("/api/comments/admin", headers=_auth("not.a.token"))
    assert resp.status_code == 403
    assert resp.json()["code"] == "InvalidToken"


@pytest.mark.asyncio
async def test_role_claim_in_token_is_not_trusted(async_client: AsyncClient, promote):
    """Demotion takes effect even though the token was issued while admin."""
    await _login(async_client, "admin@x.com", "Admin")
    await promote("admin@x.com")
    token = await _login(async_client, "admin@x.com", "Admin")

    resp = await async_client.get("/api/comments/admin", headers=_auth(token))
    assert resp.status_code == 200

    await promote("admin@x.com", "visitor")
    resp = await async_client.get("/api/comments/admin", headers=_auth(token))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_promotion_applies_to_existing_token(async_client: AsyncClient, promote):
    token = await _admin_token(async_client, promote)
    resp = await async_client.get("/api/comments/admin", headers=_auth(token))
    assert resp.status_code == 200


# ---------------------------------------------------------------------------
# Admin list
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_admin_list_includes_pending_and_visitor(async_client: AsyncClient, promote):
    admin = await _admin_token(async_client, promote)
    ann = await _login(async_client, "a@x.com", "Ann")
    await _submit(async_client, ann, "first")
    await _submit(async_client, ann, "second")

    resp = await async_client.get("/api/comments/admin", headers=_auth(admin))
    assert resp.status_code == 200
    comments = resp.json()
    assert [c["message"] for c in comments] == ["second", "first"]

    newest = comments[0]
    assert newest["approved"] is False
    assert newest["email"] == "a@x.com"
    assert newest["visitor"]["name"] == "Ann"
    assert newest["visitor"]["email"] == "a@x.com"
    assert newest["visitor"]["commentCount"] == 2
    assert newest["visitor"]["role"] == "visitor"
    assert newest["visitorId"] == newest["visitor"]["id"]


@pytest.mark.asyncio
async def test_admin_list_empty(async_client: AsyncClient, promote):
    admin = await _admin_token(async_client, promote)
    resp = await async_client.get("/api/comments/admin", headers=_auth(admin))
    assert resp.status_code == 200
    assert resp.json() == []


# ---------------------------------------------------------------------------
# Approve
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_approve_comment(async_client: AsyncClient, promote):
    admin = await _admin_token(async_client, promote)
    ann = await _login(async_client, "a@x.com", "Ann")
    comment = await _submit(async_client, ann, "hi")

    resp = await async_client.put(f"/api/comments/{comment['id']}/approve", headers=_auth(admin))
    assert resp.status_code == 200
    approved = resp.json()["comment"]
    assert approved["id"] == comment["id"]
    assert approved["approved"] is True
    assert approved["visitor"]["email"] == "a@x.com"


@pytest.mark.asyncio
async def test_approve_is_idempotent(async_client: AsyncClient, promote):
    """Approving an approved comment succeeds and changes nothing."""
    admin = await _admin_token(async_client, promote)
    ann = await _login(async_client, "a@x.com", "Ann")
    comment = await _submit(async_client, ann, "hi")
    path = f"/api/comments/{comment['id']}/approve"

    first = await async_client.put(path, headers=_auth(admin))
    second = await async_client.put(path, headers=_auth(admin))
    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["comment"] == first.json()["comment"]


@pytest.mark.asyncio
async def test_approve_unknown_comment(async_client: AsyncClient, promote):
    admin = await _admin_token(async_client, promote)
    resp = await async_client.put("/api/comments/99999/approve", headers=_auth(admin))
    assert resp.status_code == 404
    assert resp.json()["code"] == "NotFound"


@pytest.mark.asyncio
@pytest.mark.parametrize("comment_id", [2**64, 2**63, 2**31, 0, -1])
async def test_approve_out_of_range_comment_id(async_client: AsyncClient, promote, comment_id):
    """Ids no row can have are a 404, not a database overflow."""
    admin = await _admin_token(async_client, promote)
    resp = await async_client.put(f"/api/comments/{comment_id}/approve", headers=_auth(admin))
    assert resp.status_code == 404
    assert resp.json()["code"] == "NotFound"


# ---------------------------------------------------------------------------
# End-to-end moderation flow
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_moderation_scenario(async_client: AsyncClient, promote):
    """Login, submit, hidden while pending, visible newest-first once approved."""
    resp = await async_client.post("/api/visitor/login", json={"email": "a@x.com", "name": "Ann"})
    body = resp.json()
    assert body["visitor"]["commentCount"] == 0
    ann = body["token"]

    first = await _submit(async_client, ann, "hi")
    assert first["commentNumber"] == 1
    profile = (await async_client.get("/api/visitor/profile", headers=_auth(ann))).json()
    assert profile["commentCount"] == 1

    assert (await async_client.get("/api/comments")).json() == []

    admin = await _admin_token(async_client, promote)
    await async_client.put(f"/api/comments/{first['id']}/approve", headers=_auth(admin))

    second = await _submit(async_client, ann, "again")
    assert second["commentNumber"] == 2
    await async_client.put(f"/api/comments/{second['id']}/approve", headers=_auth(admin))

    public = (await async_client.get("/api/comments")).json()
    assert [(c["message"], c["commentNumber"]) for c in public] == [("again", 2), ("hi", 1)]
    assert public[0]["name"] == "Ann"
