"""Storage and sync collaborators for orgcal_lite."""

from .memory_store import JsonCalendarStore
from .sync_client import HttpCalendarSyncClient, LoggingSyncClient, build_sync_client

__all__ = [
    "HttpCalendarSyncClient",
    "JsonCalendarStore",
    "LoggingSyncClient",
    "build_sync_client",
]
