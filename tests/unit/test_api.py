"""
HTTP-level tests: the FastAPI app over a SQLite ledger and mocked Redis.
"""

import pytest
from fastapi.testclient import TestClient

from dodgeboard.api.app import create_app
from dodgeboard.core.database.service import DatabaseService
from dodgeboard.core.redis.circuit_breaker import RedisCircuitBreaker
from dodgeboard.core.redis.service import RedisService
from dodgeboard.core.services.container import ServiceContainer

ADMIN_CODE = "test-admin-code"
ADMIN = {"X-Admin-Code": ADMIN_CODE}


def _client(sqlite_url, redis_client, breaker_clock) -> TestClient:
    container = ServiceContainer(
        database=DatabaseService(sqlite_url),
        redis=RedisService(
            "redis://test:6379/0",
            client=redis_client,
            circuit_breaker=RedisCircuitBreaker(1, 30, clock=breaker_clock),
        ),
        admin_code=ADMIN_CODE,
    )
    return TestClient(create_app(container))


@pytest.fixture
def client(sqlite_url, redis_client, breaker_clock):
    with _client(sqlite_url, redis_client, breaker_clock) as test_client:
        yield test_client


@pytest.fixture
def degraded_client(sqlite_url, broken_redis_client, breaker_clock):
    with _client(sqlite_url, broken_redis_client, breaker_clock) as test_client:
        yield test_client


def _submit(client, **body):
    payload = {"username": "Ann", "discord": "ann#1", "score": 190, "playerId": "p1"}
    payload.update(body)
    return client.post("/api/score", json=payload)


class TestScoreSubmission:
    def test_accepted_victory(self, client):
        response = _submit(client, isVictory=True)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Score submitted!"
        assert body["accepted"] is True
        assert body["dailyRank"] == 1
        assert body["allTimeRank"] == 1
        assert body["isNewBest"] is True
        assert body["flagged"] is False
        assert isinstance(body["scoreId"], int)
        assert response.headers["X-Request-ID"]

    def test_short_victory_is_rejected(self, client):
        response = _submit(client, score=150, isVictory=True)

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Invalid score: completion time too short for victory",
            "flagged": True,
        }

    def test_missing_username(self, client):
        response = client.post("/api/score", json={"score": 100})
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "VALIDATION_USERNAME"

    def test_non_numeric_score(self, client):
        response = _submit(client, score="lots")
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_SCORE"

    def test_malformed_json(self, client):
        response = client.post(
            "/api/score", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_REQUEST"

    def test_redis_outage_still_accepts(self, degraded_client):
        response = _submit(degraded_client)
        assert response.status_code == 200
        assert response.json()["dailyRank"] is None


class TestBoards:
    def test_all_time_board(self, client):
        _submit(client, username="Ann", score=190)
        _submit(client, username="Bob", discord="", score=240, playerId="p2")

        body = client.get("/api/leaderboard/all-time").json()

        assert body["success"] is True
        assert [(e["rank"], e["username"], e["score"]) for e in body["leaderboard"]] == [
            (1, "Bob", 240.0),
            (2, "Ann", 190.0),
        ]
        assert body["leaderboard"][0]["date"]

    def test_daily_board_from_redis(self, client, redis_client):
        redis_client.zrevrange.return_value = [("Ann::ann#1", 190.0)]
        body = client.get("/api/leaderboard/daily").json()
        assert body["leaderboard"] == [
            {"rank": 1, "username": "Ann", "discord": "ann#1", "score": 190.0, "date": None}
        ]

    def test_daily_board_falls_back_to_ledger(self, degraded_client):
        _submit(degraded_client, score=120)
        body = degraded_client.get("/api/leaderboard/daily").json()
        assert [(e["username"], e["score"]) for e in body["leaderboard"]] == [("Ann", 120.0)]

    def test_stats(self, client, redis_client):
        redis_client.zcard.return_value = 1
        _submit(client)
        _submit(client, score=200)

        assert client.get("/api/stats").json() == {
            "success": True,
            "dailyPlayers": 1,
            "totalGames": 2,
        }

    def test_best_score(self, client):
        _submit(client, score=150)
        _submit(client, score=175)
        assert client.get("/api/user/best-score", params={"username": "Ann"}).json() == {
            "success": True,
            "bestScore": 175.0,
        }

    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["database"] is True
        assert body["redis"] is True


class TestProfiles:
    def test_save_then_read(self, client):
        saved = client.post(
            "/api/user/profile", json={"playerId": "p1", "username": "Ann", "discord": "ann#1"}
        )
        assert saved.status_code == 200
        _submit(client, score=210)

        body = client.get("/api/user/profile", params={"playerId": "p1"}).json()
        assert body["profile"]["username"] == "Ann"
        assert body["profile"]["discord"] == "ann#1"
        assert body["profile"]["bestScore"] == 210.0

    def test_unknown_profile(self, client):
        body = client.get("/api/user/profile", params={"playerId": "ghost"}).json()
        assert body == {"success": True, "profile": None}

    def test_player_id_required(self, client):
        response = client.get("/api/user/profile")
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_PLAYERID"


class TestRewardsAndFlags:
    def test_reward_flow(self, client):
        created = client.post(
            "/api/admin/rewards",
            headers=ADMIN,
            json={"threshold": 180, "message": "Well played", "secretCode": "DODGE-180"},
        )
        assert created.status_code == 200
        assert created.json()["reward"]["singleClaimPerPlayer"] is True

        first = client.post("/api/reward/check", json={"playerId": "p1", "score": 190}).json()
        second = client.post("/api/reward/check", json={"playerId": "p1", "score": 190}).json()

        assert first == {
            "success": True,
            "earned": True,
            "reward": {"message": "Well played", "code": "DODGE-180", "threshold": 180.0},
        }
        assert second == {"success": True, "earned": False}

    def test_reward_check_requires_player(self, client):
        response = client.post("/api/reward/check", json={"score": 190})
        assert response.status_code == 400

    def test_flag_report(self, client):
        assert client.post("/api/flag", json={"reason": "  weird  "}).status_code == 200

        flagged = client.get("/api/admin/flags", headers=ADMIN).json()["flaggedPlayers"]
        assert len(flagged) == 1
        assert flagged[0]["flags"][0]["reason"] == "weird"

    def test_flag_reason_required(self, client):
        response = client.post("/api/flag", json={})
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_REASON"


class TestAdmin:
    def test_validate(self, client):
        assert client.post("/api/admin/validate", json={"code": ADMIN_CODE}).json() == {
            "valid": True
        }
        assert client.post("/api/admin/validate", json={"code": "nope"}).json() == {
            "valid": False
        }

    def test_wrong_code_is_forbidden(self, client):
        response = client.get("/api/admin/scores", headers={"X-Admin-Code": "nope"})
        assert response.status_code == 403
        assert response.json()["error"] == "Unauthorized"

    def test_missing_code_is_forbidden(self, client):
        assert client.get("/api/admin/scores").status_code == 403

    def test_code_in_query_string(self, client):
        response = client.get("/api/admin/scores", params={"code": ADMIN_CODE})
        assert response.status_code == 200

    def test_list_and_delete_score(self, client, redis_client):
        score_id = _submit(client).json()["scoreId"]

        scores = client.get("/api/admin/scores", headers=ADMIN).json()["scores"]
        assert [s["id"] for s in scores] == [score_id]

        deleted = client.delete(f"/api/admin/score/{score_id}", headers=ADMIN)
        assert deleted.status_code == 200
        redis_client.zrem.assert_awaited_once()

        again = client.delete(f"/api/admin/score/{score_id}", headers=ADMIN)
        assert again.status_code == 404

    def test_code_in_delete_body(self, client):
        score_id = _submit(client).json()["scoreId"]
        response = client.request(
            "DELETE", f"/api/admin/score/{score_id}", json={"code": ADMIN_CODE}
        )
        assert response.status_code == 200

    def test_clear_daily(self, client, redis_client):
        response = client.delete("/api/admin/scores/clear-daily", headers=ADMIN)
        assert response.status_code == 200
        redis_client.delete.assert_awaited_once()

    def test_clear_daily_with_redis_down(self, degraded_client):
        response = degraded_client.delete("/api/admin/scores/clear-daily", headers=ADMIN)
        assert response.status_code == 503
        assert response.json()["error"] == "Redis not connected"

    def test_clear_flags(self, client):
        client.post("/api/flag", json={"reason": "odd"})
        _submit(client)
        fingerprint = client.get("/api/admin/flags", headers=ADMIN).json()["flaggedPlayers"][0][
            "fingerprint"
        ]

        body = client.delete(f"/api/admin/flag/{fingerprint}", headers=ADMIN).json()

        assert body["flagsDeleted"] == 1
        assert body["scoresUnflagged"] == 1
        assert client.get("/api/admin/flags", headers=ADMIN).json()["flaggedPlayers"] == []

    def test_reward_tier_management(self, client):
        tier_id = client.post(
            "/api/admin/rewards",
            headers=ADMIN,
            json={"threshold": 100, "message": "Hi", "secretCode": "HI"},
        ).json()["reward"]["id"]

        patched = client.patch(
            f"/api/admin/rewards/{tier_id}", headers=ADMIN, json={"active": False}
        ).json()["reward"]
        assert patched["active"] is False
        assert patched["message"] == "Hi"

        listed = client.get("/api/admin/rewards", headers=ADMIN).json()["rewards"]
        assert [tier["id"] for tier in listed] == [tier_id]

        reset = client.delete(f"/api/admin/rewards/{tier_id}/claims", headers=ADMIN).json()
        assert reset == {"success": True, "claimsRemoved": 0}

        assert client.delete(f"/api/admin/rewards/{tier_id}", headers=ADMIN).status_code == 200
        assert client.delete(f"/api/admin/rewards/{tier_id}", headers=ADMIN).status_code == 404

    def test_invalid_tier_fields(self, client):
        response = client.post(
            "/api/admin/rewards",
            headers=ADMIN,
            json={"threshold": -5, "message": "Hi", "secretCode": "HI"},
        )
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_THRESHOLD"
