"""
Grading API: score reads gated by role and exact station scope, and score
saves with the grader identity, chain and regrade-lock checks.
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

from identity_access.errors import Dependency
from web import main

pytestmark = pytest.mark.anyio("asyncio")


def _client(cookies: dict | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test", cookies=cookies)


def _grader(world, *, station_id: str = "S1", chain_id: str = "C1", grader_id: str | None = "g-1") -> dict:
    uid = world.add_account("grader", grader_id=grader_id)
    world.store.scopes[uid] = {"user_id": uid, "station_id": station_id, "chain_id": chain_id}
    return world.cookies_for(world.auth.issue_session(uid))


def _score(**overrides) -> dict:
    body = {
        "exam_session_id": "E1",
        "station_id": "S1",
        "level_id": "L4",
        "cohort_id": "K25",
        "exam_round_id": "R1",
        "student_id": "ST1",
        "grader_id": "g-1",
        "item_scores": {"i1": 2, "i2": 1},
        "total_score": 3,
        "comment": "ổn",
        "global_rating": "Pass",
    }
    body.update(overrides)
    return body


@pytest.fixture(autouse=True)
def sessions(world):
    world.store.exam_sessions["E1"] = {"id": "E1", "chain_id": "C1"}
    world.store.exam_sessions["E2"] = {"id": "E2", "chain_id": "C2"}
    world.store.graders["g-1"] = {"id": "g-1", "last_name": "Phạm", "first_name": "Cúc", "email": None}


# --- reads ---------------------------------------------------------------------


@pytest.mark.anyio
async def test_grader_reads_only_its_own_station(world):
    cookies = _grader(world)
    world.store.scores.append({"id": "sc-1", "exam_session_id": "E1", "station_id": "S1", "allow_regrade": False})
    async with _client(cookies) as c:
        own = await c.post("/api/grading/get-score", json={"exam_session_id": "E1", "station_id": "S1"})
        other = await c.post("/api/grading/get-score", json={"exam_session_id": "E1", "station_id": "S2"})
    assert own.status_code == 200
    assert own.json() == {"ok": True, "score": {"id": "sc-1", "allow_regrade": False}}
    assert other.status_code == 403
    assert other.json() == {"ok": False, "error": "Không có scope trạm"}


@pytest.mark.anyio
async def test_grader_without_scope_is_denied(world):
    uid = world.add_account("grader")
    async with _client(world.cookies_for(world.auth.issue_session(uid))) as c:
        r = await c.post("/api/grading/get-score", json={"exam_session_id": "E1", "station_id": "S1"})
    assert r.status_code == 403
    assert r.json()["error"] == "Không có scope trạm"


@pytest.mark.anyio
async def test_admin_reads_any_station(world):
    token = world.login("admin")
    async with _client(world.cookies_for(token)) as c:
        r = await c.post("/api/grading/get-score", json={"exam_session_id": "E1", "station_id": "S9"})
    assert r.status_code == 200
    assert r.json() == {"ok": True, "score": None}


@pytest.mark.anyio
@pytest.mark.parametrize("role", ["uploader", "assigner", "score_viewer", "superuser", None])
async def test_other_roles_cannot_read_scores_even_with_scope(world, role):
    uid = world.add_account(role)
    world.store.scopes[uid] = {"user_id": uid, "station_id": "S1", "chain_id": "C1"}
    async with _client(world.cookies_for(world.auth.issue_session(uid))) as c:
        r = await c.post("/api/grading/get-score", json={"exam_session_id": "E1", "station_id": "S1"})
    assert r.status_code == 403
    assert r.json()["error"] == "Không có quyền"


@pytest.mark.anyio
async def test_get_score_requires_both_ids(world):
    cookies = _grader(world)
    async with _client(cookies) as c:
        r = await c.post("/api/grading/get-score", json={"exam_session_id": "E1"})
    assert r.status_code == 400
    assert r.json()["error"] == "Thiếu exam_session_id hoặc station_id"


@pytest.mark.anyio
async def test_list_graded_sessions(world):
    cookies = _grader(world)
    world.store.scores.extend(
        [
            {"exam_session_id": "E1", "exam_round_id": "R1", "station_id": "S1"},
            {"exam_session_id": "E3", "exam_round_id": "R1", "station_id": "S2"},
            {"exam_session_id": "E4", "exam_round_id": "R2", "station_id": "S1"},
        ]
    )
    async with _client(cookies) as c:
        ok = await c.get("/api/grading/list-graded", params={"exam_round_id": "R1", "station_id": "S1"})
        denied = await c.get("/api/grading/list-graded", params={"exam_round_id": "R1", "station_id": "S2"})
        missing = await c.get("/api/grading/list-graded", params={"station_id": "S1"})
    assert ok.json() == {"ok": True, "exam_session_ids": ["E1"]}
    assert denied.status_code == 403
    assert missing.status_code == 400
    assert missing.json()["error"] == "Thiếu exam_round_id hoặc station_id"


# --- saves ---------------------------------------------------------------------


@pytest.mark.anyio
async def test_first_save_inserts_then_locks(world):
    cookies = _grader(world)
    async with _client(cookies) as c:
        first = await c.post("/api/grading/save-score", json=_score())
        second = await c.post("/api/grading/save-score", json=_score(total_score=4))
    assert first.json() == {"ok": True, "action": "inserted"}
    assert second.status_code == 403
    assert second.json()["error"] == "Bản điểm đã khóa, cần admin mở regrade"
    assert len(world.store.scores) == 1
    assert world.store.scores[0]["total_score"] == 3
    assert world.store.scores[0]["allow_regrade"] is False


@pytest.mark.anyio
async def test_reopened_regrade_allows_one_overwrite(world):
    cookies = _grader(world)
    world.store.scores.append({"id": "sc-1", **_score(), "allow_regrade": True})
    async with _client(cookies) as c:
        r = await c.post("/api/grading/save-score", json=_score(total_score=5, global_rating="Good"))
        again = await c.post("/api/grading/save-score", json=_score(total_score=6))
    assert r.json() == {"ok": True, "action": "updated", "locked": True}
    assert world.store.scores[0]["total_score"] == 5
    assert world.store.scores[0]["allow_regrade"] is False
    assert again.status_code == 403


@pytest.mark.anyio
async def test_admin_overwrites_locked_score(world):
    token = world.login("admin")
    world.store.scores.append({"id": "sc-1", **_score(), "allow_regrade": False})
    async with _client(world.cookies_for(token)) as c:
        r = await c.post("/api/grading/save-score", json=_score(total_score=0, global_rating="Fail"))
    assert r.json() == {"ok": True, "action": "updated", "locked": True}
    assert world.store.scores[0]["total_score"] == 0


@pytest.mark.anyio
@pytest.mark.parametrize(
    "overrides, status, message",
    [
        ({"grader_id": "g-2"}, 403, "Sai grader_id so với profile"),
        ({"station_id": "S2"}, 403, "Không có scope trạm"),
        ({"exam_session_id": "E2"}, 403, "Phiên thi không thuộc chuỗi trong scope"),
        ({"exam_session_id": "E404"}, 403, "Phiên thi không thuộc chuỗi trong scope"),
        ({"global_rating": "Great"}, 400, "global_rating không hợp lệ"),
        ({"total_score": None}, 400, "Thiếu trường: total_score"),
        ({"student_id": ""}, 400, "Thiếu trường: student_id"),
    ],
)
async def test_grader_save_checks(world, overrides, status, message):
    cookies = _grader(world)
    async with _client(cookies) as c:
        r = await c.post("/api/grading/save-score", json=_score(**overrides))
    assert r.status_code == status
    assert r.json() == {"ok": False, "error": message}
    assert world.store.scores == []


@pytest.mark.anyio
async def test_grader_without_profile_link_needs_known_grader_id(world):
    cookies = _grader(world, grader_id=None)
    async with _client(cookies) as c:
        unknown = await c.post("/api/grading/save-score", json=_score(grader_id="g-404"))
        known = await c.post("/api/grading/save-score", json=_score(grader_id="g-1"))
    assert unknown.status_code == 400
    assert unknown.json()["error"] == "grader_id không tồn tại"
    assert known.json() == {"ok": True, "action": "inserted"}


@pytest.mark.anyio
async def test_uploader_cannot_save(world):
    token = world.login("uploader")
    async with _client(world.cookies_for(token)) as c:
        r = await c.post("/api/grading/save-score", json=_score())
    assert r.status_code == 403
    assert r.json()["error"] == "Không có quyền"


# --- scope lookup failures and strict station matching -------------------------


@pytest.mark.anyio
async def test_scope_lookup_failure_is_a_dependency_error_not_a_denial(world, monkeypatch):
    cookies = _grader(world)

    def _broken(user_id):
        raise Dependency("scope table unavailable")

    monkeypatch.setattr(world.store, "get_scope", _broken)
    async with _client(cookies) as c:
        r = await c.post("/api/grading/get-score", json={"exam_session_id": "E1", "station_id": "S1"})
    assert r.status_code == 500
    assert r.json() == {"ok": False, "error": "scope table unavailable"}


@pytest.mark.anyio
async def test_numeric_station_id_never_matches_text_scope(world):
    cookies = _grader(world, station_id="5")
    async with _client(cookies) as c:
        read = await c.post("/api/grading/get-score", json={"exam_session_id": "E1", "station_id": 5})
        save = await c.post("/api/grading/save-score", json=_score(station_id=5))
        text = await c.post("/api/grading/get-score", json={"exam_session_id": "E1", "station_id": "5"})
    assert read.status_code == 400
    assert read.json() == {"ok": False, "error": "station_id không hợp lệ"}
    assert save.status_code == 400
    assert save.json() == {"ok": False, "error": "station_id không hợp lệ"}
    assert world.store.scores == []
    assert text.status_code == 200
