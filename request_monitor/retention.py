"""Retention control — the bulk clear action."""

import logging

from request_monitor.store import LogStore

logger = logging.getLogger(__name__)


class RetentionControl:
    def __init__(self, store: LogStore):
        self._store = store

    def clear_all(self) -> int:
        """Remove every record. Irreversible; clearing an empty store is a no-op."""
        removed = self._store.clear()
        logger.info("Cleared %d request log record(s)", removed)
        return removed
