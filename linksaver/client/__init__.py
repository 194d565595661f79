from linksaver.client.api import ApiError, LinkSaverClient
from linksaver.client.notifications import Notification, Notifier
from linksaver.client.store import LinkStore, StoreSnapshot
from linksaver.client.sync import BatchResult, LinkSyncSession

__all__ = [
    "ApiError",
    "BatchResult",
    "LinkSaverClient",
    "LinkStore",
    "LinkSyncSession",
    "Notification",
    "Notifier",
    "StoreSnapshot",
]
