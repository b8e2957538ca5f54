"""
Admin API security: authentication, the admin-only gate and response headers.

Requirements:
- No session cookie -> 401 envelope, before any handler runs.
- Any non-admin role (or no profile at all) -> 403 on every admin endpoint,
  with no side effects on the store or the auth provider.
- Every envelope carries `Cache-Control: private, no-store`.
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

from web import main

pytestmark = pytest.mark.anyio("asyncio")

ADMIN_ENDPOINTS = [
    ("POST", "/api/admin/create-user", {"email": "x@osce.test", "password": "secret1", "role": "uploader"}),
    ("GET", "/api/admin/list-profiles", None),
    ("POST", "/api/admin/update-user", {"user_id": "u-1", "role": "grader"}),
    ("POST", "/api/admin/toggle-active", {"user_id": "u-1", "active": False}),
    ("POST", "/api/admin/reset-password", {"user_id": "u-1", "new_password": "secret1"}),
    ("DELETE", "/api/admin/delete-user", {"user_id": "u-1"}),
    ("GET", "/api/admin/list-users", None),
    ("POST", "/api/admin/create-grader", {"last_name": "Nguyen", "first_name": "An"}),
    ("POST", "/api/admin/update-grader", {"id": "g-1", "last_name": "Nguyen", "first_name": "An"}),
    ("DELETE", "/api/admin/delete-grader", {"id": "g-1"}),
    ("GET", "/api/admin/list-graders", None),
    ("POST", "/api/admin/set-station-scope", {"user_id": "u-1", "station_id": "S1", "chain_id": "C1"}),
    ("POST", "/api/admin/get-station-scope", {"user_id": "u-1"}),
    ("POST", "/api/admin/clear-station-scope", {"user_id": "u-1"}),
    ("GET", "/api/admin/list-chains", None),
    ("GET", "/api/admin/list-stations", None),
]


def _client(cookies: dict | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test", cookies=cookies)


async def _call(client: httpx.AsyncClient, method: str, url: str, body):
    if body is None:
        return await client.request(method, url)
    return await client.request(method, url, json=body)


@pytest.mark.anyio
@pytest.mark.parametrize("method, url, body", ADMIN_ENDPOINTS)
async def test_admin_endpoints_require_session(method, url, body):
    async with _client() as c:
        r = await _call(c, method, url, body)
    assert r.status_code == 401
    assert r.json() == {"ok": False, "error": "Chưa đăng nhập"}
    assert r.headers.get("Cache-Control") == "private, no-store"


@pytest.mark.anyio
@pytest.mark.parametrize("role", ["grader", "uploader", "assigner", "score_viewer", "superuser", None])
@pytest.mark.parametrize("method, url, body", ADMIN_ENDPOINTS)
async def test_admin_endpoints_forbid_non_admin(world, role, method, url, body):
    victim = world.add_account("uploader", user_id="u-1")
    world.store.graders["g-1"] = {"id": "g-1", "last_name": "Tran", "first_name": "Binh", "email": None}
    world.store.scopes["u-1"] = {"user_id": "u-1", "station_id": "S0", "chain_id": "C0"}
    token = world.login(role)
    profiles_before = {k: dict(v) for k, v in world.store.profiles.items()}

    async with _client(world.cookies_for(token)) as c:
        r = await _call(c, method, url, body)

    assert r.status_code == 403
    assert r.json() == {"ok": False, "error": "Không có quyền"}
    assert r.headers.get("Cache-Control") == "private, no-store"
    # No side effects.
    assert world.auth.updates == []
    assert victim in world.auth.users
    assert world.store.profiles == profiles_before
    assert list(world.store.graders) == ["g-1"]
    assert world.store.scopes["u-1"]["station_id"] == "S0"


@pytest.mark.anyio
async def test_forged_session_cookie_is_rejected(world):
    async with _client(world.cookies_for("not-a-real-token")) as c:
        r = await c.get("/api/admin/list-profiles")
    assert r.status_code == 401


@pytest.mark.anyio
async def test_admin_can_list_profiles_with_private_headers(world):
    token = world.login("admin")
    world.add_account("grader")
    async with _client(world.cookies_for(token)) as c:
        r = await c.get("/api/admin/list-profiles")
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert sorted(p["role"] for p in body["profiles"]) == ["admin", "grader"]
    assert set(body["profiles"][0]) == {"user_id", "role", "display_name", "is_active", "password_last_admin_set_at"}
    assert r.headers.get("Cache-Control") == "private, no-store"


@pytest.mark.anyio
async def test_health_is_public():
    async with _client() as c:
        r = await c.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
    assert r.headers.get("X-Content-Type-Options") == "nosniff"


@pytest.mark.anyio
async def test_malformed_json_body_is_invalid_input(world):
    token = world.login("admin")
    async with _client(world.cookies_for(token)) as c:
        r = await c.post(
            "/api/admin/update-user", content=b"{not json", headers={"Content-Type": "application/json"}
        )
    assert r.status_code == 400
    assert r.json() == {"ok": False, "error": "Dữ liệu không hợp lệ"}
