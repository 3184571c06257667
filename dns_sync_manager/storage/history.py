"""
Sync history and sync options in the Config Store

History is a bounded ring buffer stored newest first; the oldest entries are
evicted once the limit is reached.
"""

import asyncio
import logging
from typing import List, Optional

from ..core.models import SyncHistoryEntry, SyncOptions
from .config_store import SYNC_CONFIG_KEY, SYNC_HISTORY_KEY, ConfigStore

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class SyncHistory:
    """Append-only, bounded log of per-target sync outcomes."""

    def __init__(self, store: ConfigStore, limit: int = DEFAULT_HISTORY_LIMIT):
        if limit < 1:
            raise ValueError("History limit must be at least 1")
        self.store = store
        self.limit = limit
        self._lock = asyncio.Lock()

    async def append(self, entry: SyncHistoryEntry) -> None:
        """Add an entry; concurrent appends within this process are serialized."""
        async with self._lock:
            history = self.store.get(SYNC_HISTORY_KEY, []) or []
            history.insert(0, entry.to_dict())
            del history[self.limit:]
            self.store.put(SYNC_HISTORY_KEY, history)
        logger.info(
            f"Saved sync history: {entry.target_name} <- {', '.join(entry.source_names) or '-'} "
            f"({entry.status})"
        )

    def list(self, limit: Optional[int] = None) -> List[SyncHistoryEntry]:
        """Return entries newest first."""
        history = self.store.get(SYNC_HISTORY_KEY, []) or []
        if limit is not None:
            history = history[:limit]
        return [SyncHistoryEntry.from_dict(item) for item in history]

    def clear(self) -> None:
        self.store.put(SYNC_HISTORY_KEY, [])
        logger.info("Sync history cleared")


class SyncSettings:
    """Global sync options (overwrite_all, delete_extra)."""

    def __init__(self, store: ConfigStore, defaults: Optional[SyncOptions] = None):
        self.store = store
        self.defaults = defaults or SyncOptions()

    def get_sync_options(self) -> SyncOptions:
        config = self.store.get(SYNC_CONFIG_KEY)
        if not config or "syncOptions" not in config:
            return SyncOptions(self.defaults.overwrite_all, self.defaults.delete_extra)
        return SyncOptions.from_dict(config["syncOptions"])

    def save_sync_options(self, options: SyncOptions) -> SyncOptions:
        config = self.store.get(SYNC_CONFIG_KEY) or {}
        config["syncOptions"] = options.to_dict()
        self.store.put(SYNC_CONFIG_KEY, config)
        logger.info(
            f"Sync options saved: overwrite_all={options.overwrite_all}, "
            f"delete_extra={options.delete_extra}"
        )
        return options
