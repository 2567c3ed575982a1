# -*- coding: utf-8 -*-
"""Smart search API endpoints.

`/search/session` is a WebSocket hosting one search controller per
connection. The client sends input events, the server pushes snapshots of the
panel plus the `search` and `navigate` side effects.
"""

import asyncio
import logging
from typing import Annotated, Any, Callable

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from src.core.config import Settings, get_settings
from src.models.search import SearchHistoryList, SearchOptions, SortKey
from src.services.api_metrics import ApiMetricsService, get_api_metrics
from src.services.cache_service import CacheService, get_cache_service
from src.services.history_store import HistoryStore, get_history_store
from src.services.navigator import SelectionNavigator, UnresolvableDestinationError
from src.services.search_client import SearchApiClient, get_search_client
from src.services.search_controller import SearchController

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])


# ========== Session event handling ==========

_EVENT_HANDLERS: dict[str, Callable[[SearchController, dict[str, Any]], Any]] = {
    "open": lambda c, m: c.open(),
    "input": lambda c, m: c.set_query(str(m.get("value") or "")),
    "key": lambda c, m: c.handle_key(str(m["key"])),
    "click_outside": lambda c, m: c.click_outside(),
    "clear": lambda c, m: c.clear(),
    "submit": lambda c, m: c.submit(),
    "select": lambda c, m: c.select_index(int(m["index"])),
    "suggestion": lambda c, m: c.select_suggestion(str(m["id"])),
    "history": lambda c, m: c.select_history(str(m["term"])),
    "sort": lambda c, m: c.set_sort(SortKey(m["key"])),
    "filters": lambda c, m: c.set_filters(**dict(m.get("filters") or {})),
    "reset_filters": lambda c, m: c.reset_filters(),
}


def handle_session_event(controller: SearchController, message: Any) -> None:
    """Apply one client message to the controller.

    Raises:
        ValueError: Unknown event or malformed payload
    """
    if not isinstance(message, dict):
        raise ValueError("Message must be a JSON object")

    event = message.get("event")
    handler = _EVENT_HANDLERS.get(event)
    if handler is None:
        raise ValueError(f"Unknown event: {event!r}")

    try:
        handler(controller, message)
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed {event!r} event: {e}") from e


async def _forward_outbox(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    """Send queued server messages in order until the socket goes away."""
    try:
        while True:
            message = await outbox.get()
            await websocket.send_json(message)
    except (WebSocketDisconnect, RuntimeError):
        return


@router.websocket("/session")
async def search_session(
    websocket: WebSocket,
    client: Annotated[SearchApiClient, Depends(get_search_client)],
    history: Annotated[HistoryStore, Depends(get_history_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    role: Annotated[str | None, Query(description="Caller role")] = None,
    show_filters: bool = True,
    show_suggestions: bool = True,
    show_history: bool = True,
):
    """Interactive search session."""
    await websocket.accept()
    outbox: asyncio.Queue = asyncio.Queue()

    controller = SearchController(
        suggestion_source=client,
        result_source=client,
        history=history,
        navigator=SelectionNavigator(strict=settings.strict_navigation),
        options=SearchOptions(
            show_filters=show_filters,
            show_suggestions=show_suggestions,
            show_history=show_history,
        ),
        on_search=lambda query, filters: outbox.put_nowait(
            {"type": "search", "query": query, "filters": filters}
        ),
        on_navigate=lambda destination: outbox.put_nowait(
            {"type": "navigate", "destination": destination.model_dump(mode="json")}
        ),
        on_change=lambda snapshot: outbox.put_nowait(
            {"type": "snapshot", "data": snapshot.model_dump(mode="json")}
        ),
        role=role,
        debounce_seconds=settings.debounce_seconds,
        min_query_length=settings.search_min_query_length,
        result_cap=settings.search_result_cap,
        timeout_seconds=settings.search_fetch_timeout_seconds,
    )

    sender = asyncio.create_task(_forward_outbox(websocket, outbox))
    controller.mount()
    logger.info(f"Search session opened (role={role!r})")

    try:
        while True:
            try:
                message = await websocket.receive_json()
                handle_session_event(controller, message)
            except ValueError as e:
                outbox.put_nowait({"type": "error", "detail": str(e)})
            except UnresolvableDestinationError as e:
                logger.error(f"Navigation failed: {e}")
                outbox.put_nowait({"type": "error", "detail": str(e)})
    except WebSocketDisconnect:
        logger.info("Search session closed by client")
    finally:
        controller.unmount()
        sender.cancel()


# ========== History / stats ==========


@router.get(
    "/history",
    response_model=SearchHistoryList,
    summary="Get search history",
)
def get_search_history(
    history: Annotated[HistoryStore, Depends(get_history_store)],
) -> SearchHistoryList:
    """Get recent search terms, most recent first."""
    terms = history.load()
    return SearchHistoryList(history=terms, total=len(terms))


@router.delete(
    "/history",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Clear search history",
)
def clear_search_history(
    history: Annotated[HistoryStore, Depends(get_history_store)],
) -> None:
    """Remove every search history entry."""
    history.clear()


@router.get("/stats", summary="Get search statistics")
def get_search_stats(
    cache: Annotated[CacheService, Depends(get_cache_service)],
    metrics: Annotated[ApiMetricsService, Depends(get_api_metrics)],
) -> dict[str, Any]:
    """Suggestion cache and remote call statistics."""
    return {
        "cache": cache.get_stats(),
        "remote": metrics.get_stats(),
    }
