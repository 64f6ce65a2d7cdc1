"""
Core infrastructure layer: configuration, logging, exceptions, the database
and Redis services, validation and the service container.

Feature modules import from the concrete submodules
(e.g. `dodgeboard.core.redis.service`) rather than from this package.
"""
