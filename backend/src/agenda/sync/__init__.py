from concurrent.futures import ThreadPoolExecutor

from .adapter import (
    ACTION_CREATED,
    ACTION_DELETED,
    ACTION_UPDATED,
    ExternalSyncAdapter,
    NullSyncAdapter,
    SyncDispatcher,
    WebhookSyncAdapter,
    defer_until_commit,
)


def build_dispatcher(settings) -> SyncDispatcher:
    """Dispatcher for the configured sync target; a no-op one when unset."""
    if not settings.sync_url:
        return SyncDispatcher(NullSyncAdapter())
    return SyncDispatcher(
        WebhookSyncAdapter(settings.sync_url, timeout=settings.sync_timeout),
        executor=ThreadPoolExecutor(
            max_workers=settings.sync_workers, thread_name_prefix="agenda-sync"
        ),
    )


__all__ = [
    "ACTION_CREATED",
    "ACTION_DELETED",
    "ACTION_UPDATED",
    "ExternalSyncAdapter",
    "NullSyncAdapter",
    "SyncDispatcher",
    "WebhookSyncAdapter",
    "build_dispatcher",
    "defer_until_commit",
]
