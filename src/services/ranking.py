# -*- coding: utf-8 -*-
"""Client-side ordering and filtering of a fetched result set.

Nothing here triggers a fetch; it only reshapes results already received.
"""

import logging

from src.models.search import ALL_TYPES, BaseResult, SearchFilters, SortKey

logger = logging.getLogger(__name__)


def sort_results(results: list[BaseResult], key: SortKey) -> list[BaseResult]:
    """Return `results` ordered by `key`.

    - relevance: descending
    - title: case-insensitive ascending
    - date: descending by `last_accessed`, only when every entry has one;
      otherwise the incoming order is kept unchanged
    """
    if key == SortKey.RELEVANCE:
        return sorted(results, key=lambda r: r.relevance, reverse=True)
    if key == SortKey.TITLE:
        return sorted(results, key=lambda r: r.title.casefold())
    if key == SortKey.DATE:
        if results and all(r.last_accessed is not None for r in results):
            return sorted(results, key=lambda r: r.last_accessed, reverse=True)
        logger.debug("Date sort requested but results carry no comparable date")
        return list(results)
    return list(results)


def apply_filters(results: list[BaseResult], filters: SearchFilters) -> list[BaseResult]:
    """Apply the filters that are evaluated on the client.

    The type filter is also sent with the request; it is re-checked here so
    that results fetched before a filter change never leak into the view.
    """
    filtered = []
    for result in results:
        if filters.type != ALL_TYPES and result.entity_type != filters.type:
            continue
        if filters.department != ALL_TYPES and result.metadata.department != filters.department:
            continue
        if filters.level != ALL_TYPES and result.metadata.level != filters.level:
            continue
        filtered.append(result)
    return filtered
