"""
Order Ingestion Module
"""
from .csv_importer import CsvOrderImporter, ImportResult, ImportStatus
from .locks import DatabaseSyncLock, RedisSyncLock, SyncLock
from .remote_fetcher import RemoteOrderFetcher, create_remote_fetcher
from .sync_coordinator import SyncCoordinator, create_sync_coordinator
from .sync_state import SyncOptions, SyncResult, SyncState

__all__ = [
    "CsvOrderImporter",
    "ImportResult",
    "ImportStatus",
    "DatabaseSyncLock",
    "RedisSyncLock",
    "SyncLock",
    "RemoteOrderFetcher",
    "create_remote_fetcher",
    "SyncCoordinator",
    "create_sync_coordinator",
    "SyncOptions",
    "SyncResult",
    "SyncState",
]
