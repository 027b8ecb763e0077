"""
Remote store factory.
Configures which remote store backend seat sessions talk to.
"""

from typing import Optional

from seatsync.core.config import get_settings
from seatsync.core.logging import get_logger
from seatsync.services.interfaces.remote_store import RemoteSeatStore

logger = get_logger(__name__)


def create_remote_store() -> RemoteSeatStore:
    """
    Build the configured remote store.

    Backend selection via the REMOTE_STORE setting:
    - memory: MemoryRemoteStore (development, tests)
    - sql:    SqlRemoteStore (PostgreSQL rows, Redis pub/sub change feed)
    """
    settings = get_settings()
    backend = settings.REMOTE_STORE

    if backend == 'sql':
        # Imported lazily so the memory backend does not need a database driver.
        from seatsync.db.session import get_session_factory
        from seatsync.infrastructure.redis_client import get_redis
        from seatsync.infrastructure.sql_store import SqlRemoteStore

        store: RemoteSeatStore = SqlRemoteStore(get_session_factory(), get_redis)
    elif backend == 'memory':
        from seatsync.infrastructure.memory_store import MemoryRemoteStore

        store = MemoryRemoteStore()
    else:
        raise ValueError(f"Unknown REMOTE_STORE backend: {backend!r}")

    logger.info("remote_store_created", backend=backend)
    return store


# Singleton instance
_store: Optional[RemoteSeatStore] = None


def get_remote_store() -> RemoteSeatStore:
    """Get remote store singleton."""
    global _store
    if _store is None:
        _store = create_remote_store()
    return _store


async def close_remote_store() -> None:
    """Release backend connections on shutdown."""
    global _store
    if _store is None:
        return
    if get_settings().REMOTE_STORE == 'sql':
        from seatsync.db.session import dispose_engine
        from seatsync.infrastructure.redis_client import RedisClient

        await RedisClient.close()
        await dispose_engine()
    _store = None
