"""
Unit tests for the score submission pipeline.

SQLite ledger, mocked Redis. The mocked pipeline reports ZREVRANK 0 unless a
test says otherwise, so an accepted submission lands at daily rank 1.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from dodgeboard.core.database.service import DatabaseInitializationError
from dodgeboard.core.exceptions import ScoreLedgerWriteError
from dodgeboard.database.models import FlagRecord, ScoreRecord
from dodgeboard.modules.anticheat import AntiCheatGate, Verdict
from dodgeboard.modules.shared.exceptions import ValidationError

NOW = datetime(2024, 3, 9, 15, 0, tzinfo=timezone.utc)


async def _rows(database, model):
    async with database.get_session() as session:
        return list((await session.execute(select(model).order_by(model.id))).scalars().all())


async def _submit(service, name="Ann", value=190, **kwargs):
    kwargs.setdefault("fingerprint", "fp1")
    kwargs.setdefault("now", NOW)
    return await service.submit(display_name=name, value=value, **kwargs)


class TestAcceptedSubmission:
    async def test_first_victory(self, submission_service, database, redis_client):
        result = await _submit(
            submission_service, tag="ann#1", player_id="p1", is_victory=True
        )

        assert result.accepted is True
        assert result.flagged is False
        assert result.is_new_best is True
        assert result.all_time_rank == 1
        assert result.daily_rank == 1
        assert result.score_id is not None
        assert result.to_dict() == {
            "accepted": True,
            "dailyRank": 1,
            "allTimeRank": 1,
            "isNewBest": True,
            "flagged": False,
            "scoreId": result.score_id,
        }

        pipeline = redis_client.pipeline.return_value
        pipeline.zadd.assert_called_once_with(
            "leaderboard:daily:2024-03-09", {"Ann::ann#1": 190.0}, gt=True
        )

        (row,) = await _rows(database, ScoreRecord)
        assert (row.display_name, row.tag, row.value, row.player_id) == ("Ann", "ann#1", 190.0, "p1")
        assert row.request_fingerprint == "fp1"

    async def test_daily_rank_is_one_based(self, submission_service, redis_client):
        redis_client.pipeline.return_value.execute.return_value = [1, True, 3]
        result = await _submit(submission_service)
        assert result.daily_rank == 4

    async def test_partial_run_below_minimum_is_accepted(self, submission_service):
        result = await _submit(submission_service, value=42.5, is_victory=False)
        assert result.accepted is True

    async def test_inputs_are_sanitized(self, submission_service, database):
        await _submit(submission_service, name="  " + "N" * 60, tag="  t  ", player_id="  p1 ")
        (row,) = await _rows(database, ScoreRecord)
        assert row.display_name == "N" * 50
        assert row.tag == "t"
        assert row.player_id == "p1"


class TestPersonalBestAndRank:
    async def test_improvement_is_new_best(self, submission_service):
        await _submit(submission_service, value=150, player_id="p1")
        result = await _submit(submission_service, value=190, player_id="p1")
        assert result.is_new_best is True

    async def test_tie_is_not_new_best(self, submission_service):
        await _submit(submission_service, value=190, player_id="p1")
        result = await _submit(submission_service, value=190, player_id="p1")
        assert result.is_new_best is False
        assert result.all_time_rank == 1

    async def test_worse_score_is_not_new_best(self, submission_service):
        await _submit(submission_service, value=200, player_id="p1")
        result = await _submit(submission_service, value=100, player_id="p1")
        assert result.is_new_best is False
        assert result.all_time_rank == 2

    async def test_without_player_id_best_is_by_name(self, submission_service):
        await _submit(submission_service, name="Ann", value=200)
        assert (await _submit(submission_service, name="Bob", value=100)).is_new_best is True
        assert (await _submit(submission_service, name="Ann", value=150)).is_new_best is False

    async def test_all_time_rank_counts_better_players(self, submission_service):
        await _submit(submission_service, name="A", value=300, player_id="a")
        await _submit(submission_service, name="A", value=310, player_id="a")
        await _submit(submission_service, name="B", value=250, player_id="b")
        result = await _submit(submission_service, name="C", value=200, player_id="c")
        assert result.all_time_rank == 3

    async def test_rank_lookup_failure_degrades_to_none(
        self, submission_service, score_repository, mocker
    ):
        mocker.patch.object(
            score_repository,
            "count_better_than",
            side_effect=OperationalError("SELECT", {}, Exception("timeout")),
        )
        result = await _submit(submission_service)
        assert result.accepted is True
        assert result.all_time_rank is None
        assert result.is_new_best is True


class TestAntiCheat:
    async def test_short_victory_rejected_and_flagged(self, submission_service, database, redis_client):
        result = await _submit(submission_service, value=150, is_victory=True)

        assert result.accepted is False
        assert result.flagged is True
        assert result.reason == "time_violation"
        assert await _rows(database, ScoreRecord) == []
        (flag,) = await _rows(database, FlagRecord)
        assert (flag.fingerprint, flag.reason) == ("fp1", "time_violation")
        redis_client.pipeline.return_value.execute.assert_not_awaited()

    async def test_prior_flag_marks_new_scores(self, submission_service, flag_service, database):
        await flag_service.record_flag("fp1", "reported")

        result = await _submit(submission_service, value=500, player_id="p1")

        assert result.accepted is True
        assert result.flagged is True
        (row,) = await _rows(database, ScoreRecord)
        assert row.flagged is True

    async def test_flagged_scores_do_not_outrank_others(self, submission_service, flag_service):
        await flag_service.record_flag("cheater", "reported")
        await _submit(submission_service, name="Cheat", value=999, fingerprint="cheater")

        result = await _submit(submission_service, name="Ann", value=200, fingerprint="fp2")
        assert result.all_time_rank == 1

    async def test_rejection_without_flag_leaves_no_record(
        self, submission_service, database, redis_client, mocker
    ):
        mocker.patch.object(
            AntiCheatGate,
            "evaluate",
            return_value=Verdict(accepted=False, should_flag=False, reason="maintenance"),
        )

        result = await _submit(submission_service, value=190, is_victory=True)

        assert (result.accepted, result.flagged, result.reason) == (False, False, "maintenance")
        assert await _rows(database, FlagRecord) == []
        assert await _rows(database, ScoreRecord) == []
        redis_client.pipeline.return_value.execute.assert_not_awaited()


class TestDegradation:
    async def test_redis_down_still_records(self, submission_factory, broken_daily_store, database):
        service = submission_factory(broken_daily_store)

        result = await _submit(service, player_id="p1", is_victory=True)

        assert result.accepted is True
        assert result.daily_rank is None
        assert result.all_time_rank == 1
        assert len(await _rows(database, ScoreRecord)) == 1

    async def test_ledger_failure_raises(self, submission_service, score_repository, mocker):
        mocker.patch.object(
            score_repository,
            "insert",
            side_effect=OperationalError("INSERT", {}, Exception("database is locked")),
        )
        with pytest.raises(ScoreLedgerWriteError):
            await _submit(submission_service)

    async def test_uninitialized_database_raises_ledger_error(
        self, submission_service, database, mocker
    ):
        mocker.patch.object(
            database,
            "get_transaction",
            side_effect=DatabaseInitializationError("engine unavailable"),
        )
        with pytest.raises(ScoreLedgerWriteError):
            await _submit(submission_service)


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"name": ""}, "username"),
            ({"name": None}, "username"),
            ({"value": "190"}, "score"),
            ({"value": -5}, "score"),
            ({"is_victory": "yes"}, "isVictory"),
        ],
    )
    async def test_rejects_bad_input(self, submission_service, database, kwargs, field):
        with pytest.raises(ValidationError) as exc_info:
            await _submit(submission_service, **kwargs)
        assert exc_info.value.field == field
        assert await _rows(database, ScoreRecord) == []
