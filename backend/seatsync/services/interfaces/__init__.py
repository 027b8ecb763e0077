"""
Service interfaces for dependency inversion.
Allows swapping the remote store without changing synchronization logic.
"""

from .remote_store import (
    BOOKINGS_TABLE,
    RESERVATIONS_TABLE,
    ChangePayload,
    RemoteSeatStore,
    RemoteStoreError,
    Subscription,
    SubscriptionStatus,
)

__all__ = [
    'BOOKINGS_TABLE', 'RESERVATIONS_TABLE', 'ChangePayload', 'RemoteSeatStore',
    'RemoteStoreError', 'Subscription', 'SubscriptionStatus',
]
