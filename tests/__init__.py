"""
Dodgeboard test suite.

- tests/unit/        : SQLite (aiosqlite) ledger and a mocked redis.asyncio client
- tests/integration/ : real PostgreSQL and Redis via testcontainers,
                       marked ``integration`` plus ``database`` / ``redis``
"""
