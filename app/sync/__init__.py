"""
Client-side synchronization: local cache, remote transport, outbox and the
coordinator that ties them together.
"""
from app.sync.cache import LocalCache
from app.sync.coordinator import SyncCoordinator
from app.sync.outbox import Outbox
from app.sync.transport import HttpTransport, SyncTransport

__all__ = ["LocalCache", "SyncCoordinator", "Outbox", "HttpTransport", "SyncTransport"]
