# -*- coding: utf-8 -*-
"""Client for the remote search service.

Provides the suggestion source and the result source used by the search
controller. HTTP calls are blocking (`requests`) and are moved off the event
loop with `asyncio.to_thread` by the async `fetch_*` methods.
"""

import asyncio
import logging
import time
from concurrent.futures import Future
from threading import Lock
from typing import Any

import requests
from pydantic import ValidationError

from src.core.config import get_settings
from src.models.search import (
    ALL_TYPES,
    ResultsResponse,
    SuggestionEntry,
    SuggestionsResponse,
    parse_result,
)
from src.services.api_metrics import ApiMetricsService, get_api_metrics
from src.services.cache_service import CacheService, get_cache_service

logger = logging.getLogger(__name__)


class SearchApiError(Exception):
    """Raised when the remote search service fails or answers with an error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SearchApiClient:
    """Client for the `/search/` and `/search/suggestions/` endpoints."""

    SEARCH_ENDPOINT = "/search/"
    SUGGESTIONS_ENDPOINT = "/search/suggestions/"
    MAX_LIMIT = 50

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 10.0,
        suggestion_limit: int = 8,
        cache: CacheService | None = None,
        metrics: ApiMetricsService | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Base URL of the search API (e.g. "http://host/api")
            token: Auth token sent as `Authorization: Token <token>`
            timeout: Per-request timeout in seconds
            suggestion_limit: Number of suggestions requested per call
            cache: Suggestion cache; pass None to disable caching
            metrics: Metrics sink for call counts and latencies
        """
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._suggestion_limit = suggestion_limit
        self._cache = cache
        self._metrics = metrics or get_api_metrics()
        self._inflight: dict[tuple[str | None, str | None, int], Future] = {}
        self._inflight_lock = Lock()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Token {self._token}"
        return headers

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """Extract a readable error message from an error response."""
        text = response.text
        try:
            data = response.json()
        except ValueError:
            return text or f"Error {response.status_code}: {response.reason}"

        if isinstance(data, dict):
            for key in ("detail", "error", "message"):
                if data.get(key):
                    return str(data[key])
        return text or f"Error {response.status_code}: {response.reason}"

    def _get(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        """Perform a GET request and return the decoded JSON body.

        Raises:
            SearchApiError: On transport errors, non-2xx status or invalid JSON
        """
        url = f"{self._base_url}{endpoint}"
        params = {k: v for k, v in params.items() if v is not None}
        start = time.perf_counter()

        try:
            response = requests.get(
                url,
                params=params,
                headers=self._headers(),
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as e:
            self._record(endpoint, False, start, error=str(e))
            logger.warning(f"Search API unreachable at {url}: {e}")
            raise SearchApiError(f"Search service unreachable: {e}") from e

        if not response.ok:
            message = self._error_message(response)
            self._record(endpoint, False, start, error=message)
            if response.status_code == 401 and self._cache is not None:
                # Suggestions cached under the rejected credentials are void
                self._cache.clear_all()
            logger.warning(f"Search API {endpoint} returned {response.status_code}: {message}")
            raise SearchApiError(message, status_code=response.status_code)

        try:
            data = response.json() if response.text else {}
        except ValueError as e:
            self._record(endpoint, False, start, error="invalid JSON")
            raise SearchApiError("Search service returned invalid JSON") from e

        latency_ms = self._record(endpoint, True, start)
        logger.debug(f"GET {endpoint} params={params} {latency_ms:.1f}ms")
        return data if isinstance(data, dict) else {}

    def _record(self, endpoint: str, success: bool, start: float, error: str | None = None) -> float:
        latency_ms = (time.perf_counter() - start) * 1000
        self._metrics.record_call(endpoint, success=success, latency_ms=latency_ms, error=error)
        return latency_ms

    # ========== Suggestions ==========

    @staticmethod
    def _parse_suggestions(data: dict[str, Any], query: str | None) -> SuggestionsResponse:
        suggestions = []
        for index, item in enumerate(data.get("suggestions") or []):
            if isinstance(item, dict):
                item = {"id": f"suggestion-{index}", **item}
            try:
                suggestions.append(SuggestionEntry.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed suggestion {item!r}: {e.error_count()} error(s)")
        return SuggestionsResponse(
            suggestions=suggestions,
            query=data.get("query") or query or "",
            user_role=data.get("user_role"),
        )

    def get_suggestions(
        self,
        query: str | None = None,
        role: str | None = None,
        limit: int | None = None,
    ) -> SuggestionsResponse:
        """Get suggestions for an optional partial query.

        Args:
            query: Partial query; None or empty for popular suggestions
            role: Caller role, forwarded when known
            limit: Maximum number of suggestions

        Identical calls made while one is already on the wire wait for that
        request instead of sending their own.

        Returns:
            Parsed suggestions response
        """
        limit = limit or self._suggestion_limit
        query = query or None

        if self._cache is not None:
            cached = self._cache.get_suggestions(query, role, limit)
            if cached is not None:
                return self._parse_suggestions(cached, query)

        key = (query, role, limit)
        with self._inflight_lock:
            pending = self._inflight.get(key)
            owner = pending is None
            if owner:
                pending = self._inflight[key] = Future()

        if not owner:
            logger.debug(f"Joining in-flight suggestion request for {key!r}")
            return self._parse_suggestions(pending.result(), query)

        try:
            data = self._get(
                self.SUGGESTIONS_ENDPOINT,
                {"q": query, "role": role, "limit": limit},
            )
        except Exception as e:
            pending.set_exception(e)
            raise
        else:
            pending.set_result(data)
        finally:
            with self._inflight_lock:
                self._inflight.pop(key, None)

        if self._cache is not None:
            self._cache.set_suggestions(query, role, limit, data)
        return self._parse_suggestions(data, query)

    # ========== Results ==========

    def search(
        self,
        query: str,
        entity_type: str = ALL_TYPES,
        limit: int = 10,
    ) -> ResultsResponse:
        """Search across entity types. Never cached.

        Args:
            query: Search term (at least 2 characters)
            entity_type: Entity type to restrict to, or "all"
            limit: Maximum number of results, clamped to 50

        Returns:
            Parsed results response
        """
        data = self._get(
            self.SEARCH_ENDPOINT,
            {"q": query, "type": entity_type, "limit": min(limit, self.MAX_LIMIT)},
        )

        results = []
        for item in data.get("results") or []:
            try:
                results.append(parse_result(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed search result {item!r}: {e.error_count()} error(s)")

        return ResultsResponse(
            results=results,
            total=data.get("total", len(results)),
            query=data.get("query", query),
            user_role=data.get("user_role"),
        )

    # ========== Async sources ==========

    async def fetch_suggestions(
        self,
        partial_query: str | None = None,
        role: str | None = None,
    ) -> SuggestionsResponse:
        """Suggestion source used by the search controller."""
        return await asyncio.to_thread(self.get_suggestions, partial_query, role)

    async def fetch_results(
        self,
        query: str,
        entity_type_filter: str,
        cap: int,
    ) -> ResultsResponse:
        """Result source used by the search controller."""
        return await asyncio.to_thread(self.search, query, entity_type_filter, cap)


# Global client instance
_search_client: SearchApiClient | None = None


def get_search_client() -> SearchApiClient:
    """Get the global search client configured from settings.

    Returns:
        SearchApiClient singleton instance
    """
    global _search_client
    if _search_client is None:
        settings = get_settings()
        _search_client = SearchApiClient(
            base_url=settings.search_api_url,
            token=settings.search_api_token or None,
            timeout=settings.search_fetch_timeout_seconds,
            suggestion_limit=settings.search_suggestion_limit,
            cache=get_cache_service(),
        )
    return _search_client
