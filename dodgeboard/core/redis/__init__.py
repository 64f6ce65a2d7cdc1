"""
Redis subsystem: circuit-broken async client for the fast ranking store.
"""

from dodgeboard.core.redis.circuit_breaker import CircuitState, RedisCircuitBreaker
from dodgeboard.core.redis.service import RedisService

__all__ = [
    "CircuitState",
    "RedisCircuitBreaker",
    "RedisService",
]
