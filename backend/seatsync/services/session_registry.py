"""
Process-wide registry of open seat sessions.

The HTTP API shares one SeatSyncSession per trip. A request for a trip with a
different vessel than the open session (trip re-assigned to another vessel)
closes the old session and opens a fresh one.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from seatsync.core.logging import get_logger, trip_context
from seatsync.services.interfaces.remote_store import RemoteSeatStore
from seatsync.services.seat_session import SeatSyncSession
from seatsync.services.store_factory import get_remote_store

logger = get_logger(__name__)


class SessionRegistry:
    def __init__(self, remote: RemoteSeatStore) -> None:
        self.remote = remote
        self._sessions: dict[str, SeatSyncSession] = {}
        # trip_id -> (lock, number of callers holding or waiting on it)
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    def get(self, trip_id: str) -> Optional[SeatSyncSession]:
        return self._sessions.get(trip_id)

    async def get_or_open(self, trip_id: str, vessel_id: str) -> SeatSyncSession:
        async with self._trip_lock(trip_id):
            session = self._sessions.get(trip_id)
            if session is not None and session.vessel_id == vessel_id:
                return session
            if session is not None:
                logger.info(
                    "seat_session_vessel_changed",
                    trip_id=trip_id,
                    old_vessel_id=session.vessel_id,
                    vessel_id=vessel_id,
                )
                await self._close(trip_id)

            session = SeatSyncSession(self.remote, trip_id, vessel_id)
            # Feed tasks started here inherit the bound trip context.
            # A failed open raises SeatLoadError and leaves nothing registered.
            with trip_context(trip_id, vessel_id):
                await session.open()
            self._sessions[trip_id] = session
            return session

    async def close(self, trip_id: str) -> None:
        async with self._trip_lock(trip_id):
            await self._close(trip_id)

    async def close_all(self) -> None:
        for trip_id in list(self._sessions):
            await self.close(trip_id)
        logger.info("seat_sessions_closed")

    @asynccontextmanager
    async def _trip_lock(self, trip_id: str) -> AsyncIterator[None]:
        """Serialize open/close per trip; the lock is dropped once nobody holds or awaits it."""
        lock, users = self._locks.get(trip_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[trip_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[trip_id]
            if users == 1:
                del self._locks[trip_id]
            else:
                self._locks[trip_id] = (lock, users - 1)

    async def _close(self, trip_id: str) -> None:
        session = self._sessions.pop(trip_id, None)
        if session is not None:
            await session.close()

    def __len__(self) -> int:
        return len(self._sessions)


_registry: Optional[SessionRegistry] = None


def get_session_registry() -> SessionRegistry:
    """Get session registry singleton (FastAPI dependency)."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry(get_remote_store())
    return _registry


async def close_session_registry() -> None:
    global _registry
    if _registry is not None:
        await _registry.close_all()
        _registry = None
