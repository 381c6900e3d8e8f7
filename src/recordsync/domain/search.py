"""Search engine: server-side filtering and pagination feeding the refresh engine."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .envelope import PageData
from .refresh import RefreshEngine

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from .envelope import Envelope, RecordId
    from .ports.persistence import RecordStores

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SearchQuery:
    type_name: str
    criteria: Mapping[str, object] = field(default_factory=dict)
    page: int = 1
    page_size: int = 0


@dataclass(frozen=True, slots=True)
class PageWindow:
    page: int
    page_size: int
    pages: int
    start: int
    stop: int


def paginate(total: int, page: int, page_size: int) -> PageWindow:
    """Compute the slice of a ``total``-sized result for ``page``.

    Pages are 1-based; ``page`` values below 1 select the first page. A
    ``page_size`` of 0 disables pagination and returns everything as one page.
    """

    page = max(page, 1)
    if page_size <= 0:
        return PageWindow(page=page, page_size=0, pages=1, start=0, stop=total)
    pages = math.ceil(total / page_size)
    start = (page - 1) * page_size
    return PageWindow(
        page=page,
        page_size=page_size,
        pages=pages,
        start=min(start, total),
        stop=min(start + page_size, total),
    )


class SearchEngine:
    def __init__(
        self,
        stores: RecordStores,
        *,
        refresh: RefreshEngine | None = None,
        max_page_size: int = 0,
    ) -> None:
        self.stores = stores
        self.refresh_engine = refresh or RefreshEngine(stores)
        self.max_page_size = max_page_size

    def search(self, query: SearchQuery) -> Envelope:
        return self.search_all([query])

    def search_all(self, queries: Sequence[SearchQuery]) -> Envelope:
        """Run ``queries`` and refresh the records on each requested page.

        ``pageData`` lists every matching id, not only the ids of the page.
        """

        requested: dict[str, list[RecordId]] = {}
        page_data: dict[str, PageData] = {}
        for query in queries:
            store = self.stores.store(query.type_name)
            matches = store.search_ids(query.criteria)
            window = paginate(len(matches), query.page, self._page_size(query.page_size))
            page_ids = matches[window.start : window.stop]
            log.info(
                "Search on %s matched %d records, returning page %d/%d (%d records)",
                query.type_name,
                len(matches),
                window.page,
                window.pages,
                len(page_ids),
            )
            page_data[query.type_name] = PageData(
                ids=matches,
                page_size=window.page_size,
                actual_page=window.page,
                pages=window.pages,
            )
            requested.setdefault(query.type_name, []).extend(page_ids)

        envelope = self.refresh_engine.refresh(requested)
        envelope.page_data.update(page_data)
        return envelope

    def _page_size(self, requested: int) -> int:
        if self.max_page_size <= 0:
            return max(requested, 0)
        if requested <= 0:
            return self.max_page_size
        return min(requested, self.max_page_size)
