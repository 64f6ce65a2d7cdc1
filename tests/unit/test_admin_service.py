"""
Unit tests for AdminService.
"""

from datetime import datetime, timezone

import pytest

from dodgeboard.core.config.manager import ConfigManager
from dodgeboard.core.exceptions import FastStoreUnavailableError
from dodgeboard.core.logging.logger import get_logger
from dodgeboard.database.models import ScoreRecord
from dodgeboard.modules.admin import AdminService
from dodgeboard.modules.shared.exceptions import AuthorizationError, NotFoundError

ADMIN_CODE = "test-admin-code"
NOW = datetime(2024, 3, 9, 15, 0, tzinfo=timezone.utc)


async def _score(database, name="Ann", tag="", value=190.0, fingerprint="fp1"):
    async with database.get_transaction() as session:
        record = ScoreRecord(
            display_name=name, tag=tag, value=value, request_fingerprint=fingerprint
        )
        session.add(record)
        await session.flush()
        return record.id


class TestAuthorization:
    def test_correct_code(self, admin_service):
        assert admin_service.validate(ADMIN_CODE) is True
        admin_service.verify(ADMIN_CODE, "list_scores")

    @pytest.mark.parametrize("code", [None, "", "wrong", ADMIN_CODE + " ", 1234])
    def test_wrong_code(self, admin_service, code):
        assert admin_service.validate(code) is False
        with pytest.raises(AuthorizationError):
            admin_service.verify(code, "list_scores")

    def test_unset_code_rejects_everything(
        self, database, score_repository, daily_store, flag_service, reward_service
    ):
        service = AdminService(
            database,
            score_repository,
            daily_store,
            flag_service,
            reward_service,
            ConfigManager,
            get_logger("tests"),
            admin_code="",
        )
        assert service.validate("") is False
        assert service.validate("anything") is False


class TestScores:
    async def test_list_scores_best_first(self, admin_service, database):
        await _score(database, "Ann", value=100)
        await _score(database, "Bob", tag="b#1", value=300)

        rows = await admin_service.list_scores()

        assert [(row["username"], row["discord"], row["score"]) for row in rows] == [
            ("Bob", "b#1", 300.0),
            ("Ann", "", 100.0),
        ]
        assert rows[0]["fingerprint"] == "fp1"
        assert rows[0]["created_at"].tzinfo is not None

    async def test_delete_score_removes_row_and_daily_member(
        self, admin_service, database, score_repository, redis_client
    ):
        score_id = await _score(database, "Ann", tag="a#1")

        await admin_service.delete_score(score_id, now=NOW)

        async with database.get_session() as session:
            assert await score_repository.get(session, score_id) is None
        redis_client.zrem.assert_awaited_once_with("leaderboard:daily:2024-03-09", "Ann::a#1")

    async def test_delete_missing_score(self, admin_service, redis_client):
        with pytest.raises(NotFoundError):
            await admin_service.delete_score(9999)
        redis_client.zrem.assert_not_awaited()

    async def test_delete_score_with_redis_down(
        self, database, score_repository, broken_daily_store, flag_service, reward_service
    ):
        service = AdminService(
            database,
            score_repository,
            broken_daily_store,
            flag_service,
            reward_service,
            ConfigManager,
            get_logger("tests"),
            admin_code=ADMIN_CODE,
        )
        score_id = await _score(database)
        await service.delete_score(score_id)

        async with database.get_session() as session:
            assert await score_repository.get(session, score_id) is None


class TestDailyClear:
    async def test_clear_daily(self, admin_service, redis_client):
        assert await admin_service.clear_daily(now=NOW) is True
        redis_client.delete.assert_awaited_once_with("leaderboard:daily:2024-03-09")

    async def test_clear_daily_with_redis_down(
        self, database, score_repository, broken_daily_store, flag_service, reward_service
    ):
        service = AdminService(
            database,
            score_repository,
            broken_daily_store,
            flag_service,
            reward_service,
            ConfigManager,
            get_logger("tests"),
            admin_code=ADMIN_CODE,
        )
        with pytest.raises(FastStoreUnavailableError):
            await service.clear_daily()


class TestPassthroughs:
    async def test_flags(self, admin_service, flag_service, database):
        await _score(database, fingerprint="fp9")
        await flag_service.record_flag("fp9", "report")

        groups = await admin_service.list_flags()
        assert groups[0]["fingerprint"] == "fp9"

        assert await admin_service.clear_flags("fp9") == {
            "flags_deleted": 1,
            "scores_unflagged": 1,
        }

    async def test_reward_tiers(self, admin_service, reward_service):
        tier = await admin_service.create_tier(
            threshold_value=120, message="Nice", secret_code="NICE"
        )
        assert [t.id for t in await admin_service.list_tiers()] == [tier.id]

        updated = await admin_service.update_tier(tier.id, {"message": "Nicer"})
        assert updated.message == "Nicer"

        await reward_service.check_and_claim("p1", 150)
        assert await admin_service.reset_claims(tier.id) == 1

        await admin_service.delete_tier(tier.id)
        assert await admin_service.list_tiers() == []
