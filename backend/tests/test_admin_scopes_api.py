"""
Station scope assignment API: one row per user, lookup-then-update-or-insert.
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

from identity_access.errors import Dependency
from osce.services.scopes import ScopesService
from web import main

pytestmark = pytest.mark.anyio("asyncio")


def _client(cookies: dict | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test", cookies=cookies)


@pytest.mark.anyio
async def test_set_scope_twice_keeps_a_single_row(world):
    token = world.login("admin")
    grader = world.add_account("grader")
    async with _client(world.cookies_for(token)) as c:
        r1 = await c.post(
            "/api/admin/set-station-scope", json={"user_id": grader, "station_id": "S1", "chain_id": "C1"}
        )
        r2 = await c.post(
            "/api/admin/set-station-scope", json={"user_id": grader, "station_id": "S2", "chain_id": "C1"}
        )
        got = await c.post("/api/admin/get-station-scope", json={"user_id": grader})
    assert r1.status_code == r2.status_code == 200
    assert list(world.store.scopes) == [grader]
    assert got.json() == {"ok": True, "scope": {"station_id": "S2", "chain_id": "C1"}}


@pytest.mark.anyio
async def test_clear_scope_then_get_returns_null(world):
    token = world.login("admin")
    grader = world.add_account("grader")
    world.store.scopes[grader] = {"user_id": grader, "station_id": "S1", "chain_id": "C1"}
    async with _client(world.cookies_for(token)) as c:
        cleared = await c.post("/api/admin/clear-station-scope", json={"user_id": grader})
        got = await c.post("/api/admin/get-station-scope", json={"user_id": grader})
    assert cleared.status_code == 200
    assert got.json() == {"ok": True, "scope": None}


@pytest.mark.anyio
@pytest.mark.parametrize(
    "url, payload, message",
    [
        ("/api/admin/set-station-scope", {"user_id": "u", "station_id": "S1"}, "Thiếu user_id hoặc station_id hoặc chain_id"),
        ("/api/admin/get-station-scope", {}, "Thiếu user_id"),
        ("/api/admin/clear-station-scope", {}, "Thiếu user_id"),
    ],
)
async def test_scope_endpoints_validate_input(world, url, payload, message):
    token = world.login("admin")
    async with _client(world.cookies_for(token)) as c:
        r = await c.post(url, json=payload)
    assert r.status_code == 400
    assert r.json() == {"ok": False, "error": message}


@pytest.mark.anyio
async def test_reference_lists_are_sorted_by_name(world):
    token = world.login("admin")
    world.store.chains.extend([{"id": "C2", "name": "Chuỗi B"}, {"id": "C1", "name": "Chuỗi A"}])
    world.store.stations.extend([{"id": "S2", "name": "B"}, {"id": "S1", "name": "A"}])
    async with _client(world.cookies_for(token)) as c:
        chains = await c.get("/api/admin/list-chains")
        stations = await c.get("/api/admin/list-stations")
    assert [ch["id"] for ch in chains.json()["chains"]] == ["C1", "C2"]
    assert [s["id"] for s in stations.json()["stations"]] == ["S1", "S2"]


@pytest.mark.anyio
async def test_identical_set_calls_are_idempotent(world):
    token = world.login("admin")
    grader = world.add_account("grader")
    body = {"user_id": grader, "station_id": "S1", "chain_id": "C1"}
    async with _client(world.cookies_for(token)) as c:
        r1 = await c.post("/api/admin/set-station-scope", json=body)
        after_first = dict(world.store.scopes[grader])
        r2 = await c.post("/api/admin/set-station-scope", json=body)
    assert r1.json() == r2.json() == {"ok": True}
    assert list(world.store.scopes) == [grader]
    assert world.store.scopes[grader] == after_first == {"user_id": grader, "station_id": "S1", "chain_id": "C1"}


def test_concurrent_first_assignment_is_rejected_by_the_primary_key(world, monkeypatch):
    world.store.scopes["u1"] = {"user_id": "u1", "station_id": "S1", "chain_id": "C1"}
    # Another request inserted the row after this one looked it up.
    monkeypatch.setattr(world.store, "get_scope", lambda user_id: None)
    with pytest.raises(Dependency):
        ScopesService(world.store).assign("u1", "S2", "C1")
    assert world.store.scopes["u1"]["station_id"] == "S1"


@pytest.mark.anyio
async def test_scope_insert_conflict_surfaces_as_server_error(world, monkeypatch):
    token = world.login("admin")
    world.store.scopes["u1"] = {"user_id": "u1", "station_id": "S1", "chain_id": "C1"}
    monkeypatch.setattr(world.store, "get_scope", lambda user_id: None)
    async with _client(world.cookies_for(token)) as c:
        r = await c.post("/api/admin/set-station-scope", json={"user_id": "u1", "station_id": "S2", "chain_id": "C1"})
    assert r.status_code == 500
    assert r.json()["ok"] is False
    assert "station_account_scopes_pkey" in r.json()["error"]
