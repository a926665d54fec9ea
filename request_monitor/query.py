"""Query engine — filter, sort and paginate the request log.

Request parameters arrive untrusted from the report view. Sort columns are
checked against an allow-list and pages are clamped before anything reaches
the store.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from request_monitor.models import LogFilter, LogRecord, as_utc
from request_monitor.store import SORTABLE_COLUMNS, LogStore

logger = logging.getLogger(__name__)

PAGE_SIZE = 20
DEFAULT_SORT_BY = "timestamp"
DEFAULT_SORT_ORDER = "DESC"


@dataclass(frozen=True)
class SearchResult:
    records: list[LogRecord] = field(default_factory=list)
    total: int = 0
    total_pages: int = 0
    current_page: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "logs": [record.to_dict() for record in self.records],
            "total": self.total,
            "total_pages": self.total_pages,
            "current_page": self.current_page,
        }


def normalize_sort(sort_by: str | None, sort_order: str | None) -> tuple[str, str]:
    """Map the requested ordering onto the allow-list.

    Unknown columns fall back to ``timestamp``; any order other than ASC is DESC.
    """
    column = (sort_by or "").strip()
    if column not in SORTABLE_COLUMNS:
        if column:
            logger.debug("Ignoring unknown sort column %r", column)
        column = DEFAULT_SORT_BY
    order = "ASC" if (sort_order or "").strip().upper() == "ASC" else DEFAULT_SORT_ORDER
    return column, order


def normalize_page(page) -> int:
    try:
        number = int(page)
    except (TypeError, ValueError):
        return 1
    return max(1, number)


def total_pages(total: int, page_size: int = PAGE_SIZE) -> int:
    """Ceiling of total / page_size. An empty result has zero pages."""
    if total <= 0:
        return 0
    return math.ceil(total / page_size)


def _parse_time(value) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(str(value)))


def filter_from_params(params: Mapping[str, Any]) -> LogFilter:
    """Build a LogFilter from the report view's request parameters.

    Raises ValueError when ``since``/``until`` are not ISO-8601 timestamps.
    """
    return LogFilter(
        search=(params.get("search") or "").strip() or None,
        device=(params.get("device") or "").strip() or None,
        ip_address=(params.get("ip") or "").strip() or None,
        since=_parse_time(params.get("since")),
        until=_parse_time(params.get("until")),
    )


class QueryEngine:
    def __init__(self, store: LogStore, page_size: int = PAGE_SIZE):
        self._store = store
        self._page_size = page_size

    def search(self, flt: LogFilter | None = None, sort_by: str | None = DEFAULT_SORT_BY,
               sort_order: str | None = DEFAULT_SORT_ORDER, page=1) -> SearchResult:
        column, order = normalize_sort(sort_by, sort_order)
        current = normalize_page(page)
        offset = (current - 1) * self._page_size

        records, total = self._store.page(
            flt or LogFilter(), column, order, limit=self._page_size, offset=offset
        )
        return SearchResult(
            records=records,
            total=total,
            total_pages=total_pages(total, self._page_size),
            current_page=current,
        )

    def get_details(self, log_id) -> LogRecord | None:
        """Return the full record, or None when no record has that id."""
        try:
            key = int(log_id)
        except (TypeError, ValueError):
            return None
        return self._store.get_by_id(key)

    def handle(self, params: Mapping[str, Any]) -> dict[str, Any]:
        """Query entry point: report-view parameters in, page payload out."""
        result = self.search(
            filter_from_params(params),
            sort_by=params.get("sort_by"),
            sort_order=params.get("sort_order"),
            page=params.get("page", 1),
        )
        return result.to_dict()
