"""
Unit tests for RedisService: error mapping, breaker gating, JSON helpers.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from dodgeboard.core.exceptions import FastStoreUnavailableError
from dodgeboard.core.redis.circuit_breaker import RedisCircuitBreaker
from dodgeboard.core.redis.service import RedisService


class TestExecute:
    async def test_returns_operation_result(self, redis_service, redis_client):
        redis_client.zcard.return_value = 7
        result = await redis_service.execute("ZCARD", lambda client: client.zcard("k"))
        assert result == 7
        assert redis_service.circuit_breaker.is_closed

    async def test_store_error_becomes_unavailable(self, broken_redis_service):
        with pytest.raises(FastStoreUnavailableError) as exc_info:
            await broken_redis_service.execute("ZCARD", lambda client: client.zcard("k"))
        assert isinstance(exc_info.value.original_error, RedisConnectionError)
        assert broken_redis_service.circuit_breaker.is_open

    async def test_refused_command_keeps_breaker_closed(self, redis_service, redis_client):
        redis_client.zcard.side_effect = ResponseError("WRONGTYPE Operation against a key")

        for _ in range(5):
            with pytest.raises(FastStoreUnavailableError) as exc_info:
                await redis_service.execute("ZCARD", lambda client: client.zcard("k"))
            assert isinstance(exc_info.value.original_error, ResponseError)

        assert redis_client.zcard.await_count == 5
        assert redis_service.circuit_breaker.is_closed

    async def test_open_breaker_fails_fast_without_touching_redis(
        self, broken_redis_service, broken_redis_client
    ):
        with pytest.raises(FastStoreUnavailableError):
            await broken_redis_service.execute("ZCARD", lambda client: client.zcard("k"))
        calls_after_first = broken_redis_client.zcard.await_count

        for _ in range(5):
            with pytest.raises(FastStoreUnavailableError):
                await broken_redis_service.execute("ZCARD", lambda client: client.zcard("k"))

        assert broken_redis_client.zcard.await_count == calls_after_first

    async def test_recovers_after_cooldown(
        self, broken_redis_service, broken_redis_client, breaker_clock
    ):
        with pytest.raises(FastStoreUnavailableError):
            await broken_redis_service.execute("ZCARD", lambda client: client.zcard("k"))

        broken_redis_client.zcard.side_effect = None
        broken_redis_client.zcard.return_value = 3
        breaker_clock.advance(31)

        assert await broken_redis_service.execute("ZCARD", lambda client: client.zcard("k")) == 3
        assert broken_redis_service.circuit_breaker.is_closed

    async def test_programming_errors_propagate(self, redis_service):
        async def _boom(client):
            raise KeyError("bug")

        with pytest.raises(KeyError):
            await redis_service.execute("BUG", _boom)
        assert redis_service.circuit_breaker.is_closed

    async def test_lazy_connect_failure_opens_breaker(self, mocker, breaker_clock):
        client = mocker.MagicMock()
        client.ping = mocker.AsyncMock(side_effect=RedisConnectionError("refused"))
        client.aclose = mocker.AsyncMock()
        service = RedisService(
            "redis://unreachable:6379/0",
            circuit_breaker=RedisCircuitBreaker(1, 30, clock=breaker_clock),
        )
        mocker.patch.object(service, "_build_client", return_value=client)

        assert await service.initialize() is False
        client.aclose.assert_awaited_once()
        assert service.circuit_breaker.is_open
        assert service.is_available() is False


class TestJsonHelpers:
    async def test_set_json_uses_ttl(self, redis_service, redis_client):
        await redis_service.set_json("profile:p1", {"a": 1}, ttl_seconds=60)
        redis_client.set.assert_awaited_once_with("profile:p1", '{"a": 1}', ex=60)

    async def test_get_json_round_trips(self, redis_service, redis_client):
        redis_client.get.return_value = '{"a": 1}'
        assert await redis_service.get_json("profile:p1") == {"a": 1}

    async def test_get_json_discards_garbage(self, redis_service, redis_client):
        redis_client.get.return_value = "not json"
        assert await redis_service.get_json("profile:p1") is None


class TestLifecycle:
    async def test_initialize_with_reachable_redis(self, redis_service):
        assert await redis_service.initialize() is True
        assert redis_service.is_available() is True

    async def test_shutdown_closes_client(self, redis_service, redis_client):
        await redis_service.shutdown()
        redis_client.aclose.assert_awaited_once()
        assert redis_service.is_available() is False

    async def test_health_check_never_raises(self, broken_redis_service):
        assert await broken_redis_service.health_check() is False

    def test_status_snapshot(self, redis_service):
        status = redis_service.get_status()
        assert status["url_scheme"] == "redis"
        assert status["circuit_breaker"]["state"] == "CLOSED"
