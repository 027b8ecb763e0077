"""
Infrastructure layer - external system integrations.
Keeps synchronization logic clean from implementation details.
"""

from .redis_client import get_redis, RedisClient
from .memory_store import MemoryRemoteStore

__all__ = ['get_redis', 'RedisClient', 'MemoryRemoteStore']
