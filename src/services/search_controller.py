# -*- coding: utf-8 -*-
"""Interactive search controller.

Turns raw keystrokes into suggestions and ranked results while tolerating
slow and out-of-order responses. Runs on a single asyncio event loop:

- every keystroke re-arms one debounce timer (`loop.call_later`);
- when the timer fires a request id is minted and the fetch is dispatched as
  a task, to the suggestion source for short queries and to the result
  source otherwise;
- a response is applied only if its request id is still the latest minted
  one and has not been invalidated by a keystroke, close or unmount.

Example:
    ```python
    controller = SearchController(
        suggestion_source=client,
        result_source=client,
        history=get_history_store(),
        on_search=lambda query, filters: ...,
        on_navigate=lambda destination: ...,
    )
    controller.mount()
    controller.set_query("sal")
    await controller.settle()
    controller.snapshot().results
    ```
"""

import asyncio
import logging
from typing import Any, Callable, Protocol

from src.models.search import (
    BaseResult,
    ControllerState,
    Destination,
    RequestKind,
    ResultsResponse,
    SearchFilters,
    SearchOptions,
    SearchRequest,
    SearchSnapshot,
    SortKey,
    SuggestionEntry,
    SuggestionsResponse,
)
from src.services.api_metrics import ApiMetricsService, get_api_metrics
from src.services.history_store import HistoryStore
from src.services.keyboard import KeyAction, KeyboardSession
from src.services.navigator import SelectionNavigator
from src.services.ranking import apply_filters, sort_results

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3
DEFAULT_MIN_QUERY_LENGTH = 2
MAX_VISIBLE_SUGGESTIONS = 5
MAX_VISIBLE_HISTORY = 3

SEARCH_TIPS = [
    "Use quotes for an exact match",
    'Type "prof:" to search teachers',
    'Use "*" as a wildcard',
]


class SuggestionSource(Protocol):
    async def fetch_suggestions(
        self,
        partial_query: str | None = None,
        role: str | None = None,
    ) -> SuggestionsResponse: ...


class ResultSource(Protocol):
    async def fetch_results(
        self,
        query: str,
        entity_type_filter: str,
        cap: int,
    ) -> ResultsResponse: ...


class SearchController:
    """Debounce/race state machine behind the search panel.

    Must be driven from within a running event loop.
    """

    def __init__(
        self,
        suggestion_source: SuggestionSource,
        result_source: ResultSource,
        history: HistoryStore,
        navigator: SelectionNavigator | None = None,
        options: SearchOptions | None = None,
        on_search: Callable[[str, dict[str, Any]], None] | None = None,
        on_result_click: Callable[[BaseResult], None] | None = None,
        on_navigate: Callable[[Destination], None] | None = None,
        on_change: Callable[[SearchSnapshot], None] | None = None,
        role: str | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        min_query_length: int = DEFAULT_MIN_QUERY_LENGTH,
        result_cap: int = 10,
        timeout_seconds: float | None = 10.0,
        metrics: ApiMetricsService | None = None,
    ):
        self._suggestion_source = suggestion_source
        self._result_source = result_source
        self._history = history
        self._navigator = navigator or SelectionNavigator()
        self._options = options or SearchOptions()
        self._on_search = on_search
        self._on_result_click = on_result_click
        self._on_navigate = on_navigate
        self._on_change = on_change
        self._debounce_seconds = debounce_seconds
        self._min_query_length = min_query_length
        self._result_cap = result_cap
        self._timeout_seconds = timeout_seconds
        self._metrics = metrics or get_api_metrics()

        self._query = ""
        self._state = ControllerState.IDLE
        self._is_open = False
        self._is_loading = False
        self._error: str | None = None
        self._user_role = role

        self._raw_results: list[BaseResult] = []
        self._results: list[BaseResult] = []
        self._suggestions: list[SuggestionEntry] = []
        self._history_terms: list[str] = []
        self._filters = SearchFilters()
        self._sort = SortKey.RELEVANCE
        self._keyboard = KeyboardSession()

        # Request sequencing
        self._sequence = 0
        self._invalidated_through = 0
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        self._writes: set[asyncio.Future] = set()
        self._needs_refresh = False
        self._unmounted = False

    # ========== Properties ==========

    @property
    def query(self) -> str:
        return self._query

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def user_role(self) -> str | None:
        return self._user_role

    @property
    def results(self) -> list[BaseResult]:
        """Results in display order (filtered and sorted)."""
        return list(self._results)

    @property
    def suggestions(self) -> list[SuggestionEntry]:
        return list(self._suggestions)

    @property
    def history(self) -> list[str]:
        return list(self._history_terms)

    @property
    def filters(self) -> SearchFilters:
        return self._filters

    @property
    def sort(self) -> SortKey:
        return self._sort

    @property
    def highlighted_index(self) -> int:
        return self._keyboard.index

    @property
    def last_request_id(self) -> int:
        return self._sequence

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    # ========== Lifecycle ==========

    def mount(self) -> None:
        """Load history and the empty-query suggestions."""
        if self._unmounted:
            return
        if self._options.show_history:
            self._history_terms = self._history.load()
        if self._options.show_suggestions:
            self._dispatch(RequestKind.SUGGESTIONS, "")
        self._notify()

    def unmount(self) -> None:
        """Tear down: no timer, task or listener survives this call."""
        self._cancel_timer()
        self._invalidate_in_flight()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self._is_open = False
        self._is_loading = False
        self._unmounted = True
        self._on_change = None
        logger.debug("Search controller unmounted")

    async def settle(self) -> None:
        """Wait until no timer is armed and no fetch or history write is pending."""
        while self._timer is not None or self._tasks or self._writes:
            pending = [*self._tasks, *self._writes]
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                await asyncio.sleep(0)
            else:
                await asyncio.sleep(self._debounce_seconds / 2 or 0.001)

    # ========== Input events ==========

    def open(self) -> None:
        """Panel gains focus."""
        if self._is_open or self._unmounted:
            return
        self._is_open = True
        if self._options.show_history:
            self._history_terms = self._history.load()
        if self._needs_refresh:
            self._needs_refresh = False
            self._refresh_for_query()
        self._keyboard.reset(len(self._navigable()))
        self._notify()

    def set_query(self, value: str) -> None:
        """A keystroke changed the query text to `value`."""
        if self._unmounted:
            return
        self._query = value
        self._is_open = True
        self._needs_refresh = False

        if not value:
            self._enter_idle()
            self._notify()
            return

        self._error = None
        self._keyboard.reset(0)
        if len(value) >= self._min_query_length:
            self._state = ControllerState.PENDING
            self._is_loading = True
        else:
            self._state = ControllerState.SUGGESTING
            self._raw_results = []
            self._results = []
            self._is_loading = self._options.show_suggestions
        self._schedule()
        self._notify()

    def clear(self) -> None:
        """Explicit clear button: empty query, panel stays open."""
        if self._unmounted:
            return
        self._query = ""
        self._is_open = True
        self._needs_refresh = False
        self._enter_idle()
        self._notify()

    def handle_key(self, key: str) -> None:
        """Directional and confirmation keys while the panel is open."""
        if not self._is_open:
            return

        action = self._keyboard.press(key)
        if action == KeyAction.SELECT:
            self.select(self._navigable()[self._keyboard.index])
        elif action == KeyAction.COMMIT:
            self.submit()
        elif action == KeyAction.CLOSE:
            self.close()
        else:
            self._notify()

    def click_outside(self) -> None:
        """Pointer went down outside the rendered region."""
        self.close()

    def close(self) -> None:
        """Close the panel, dropping any scheduled or in-flight fetch."""
        was_busy = self._timer is not None or self._is_loading
        self._cancel_timer()
        self._invalidate_in_flight()
        if was_busy:
            self._needs_refresh = True
        self._is_loading = False
        self._is_open = False
        self._keyboard.reset(0)
        self._notify()

    # ========== Commit / selection ==========

    def submit(self) -> bool:
        """Commit the current query.

        Records it into the history, fires `on_search` and closes the panel.
        An empty query does nothing.

        Returns:
            True if the query was committed
        """
        query = self._query.strip()
        if not query or self._unmounted:
            return False

        self._record_history(query)
        if self._on_search is not None:
            self._on_search(query, self._filters.model_dump())
        logger.info(f"Search committed: query={query!r}")
        self.close()
        return True

    def select(self, entry: BaseResult) -> None:
        """Activate a result: navigate (or call back), close and clear."""
        if self._unmounted:
            return
        if self._on_result_click is not None:
            self._on_result_click(entry)
        else:
            destination = self._navigator.resolve(entry)
            if destination is not None and self._on_navigate is not None:
                self._on_navigate(destination)

        self._record_history(self._query.strip())
        self.close()
        self._query = ""
        self._needs_refresh = False
        self._enter_idle()
        self._notify()

    def select_index(self, index: int) -> bool:
        """Pointer activation of the rendered result at `index`."""
        candidates = self._navigable()
        if not 0 <= index < len(candidates):
            return False
        self.select(candidates[index])
        return True

    def select_suggestion(self, suggestion: SuggestionEntry | str) -> bool:
        """Adopt a suggestion (or its id) as the query and commit it."""
        if isinstance(suggestion, str):
            match = next((s for s in self._suggestions if s.id == suggestion), None)
            if match is None:
                return False
            suggestion = match
        return self._adopt_and_commit(suggestion.text)

    def select_history(self, term: str) -> bool:
        """Adopt a history term as the query and commit it."""
        return self._adopt_and_commit(term)

    def _adopt_and_commit(self, text: str) -> bool:
        if not text.strip() or self._unmounted:
            return False
        self._cancel_timer()
        self._invalidate_in_flight()
        self._query = text
        self._state = (
            ControllerState.PENDING
            if len(text) >= self._min_query_length
            else ControllerState.SUGGESTING
        )
        committed = self.submit()
        # Results for the adopted text are fetched when the panel reopens
        self._needs_refresh = True
        return committed

    # ========== Sorting / filters ==========

    def set_sort(self, key: SortKey | str) -> None:
        """Re-sort the fetched results. Never fetches."""
        if self._unmounted:
            return
        self._sort = SortKey(key)
        self._refresh_view()
        self._notify()

    def set_filters(self, **changes: str) -> None:
        """Update filters; only a type change triggers a new fetch."""
        if self._unmounted:
            return
        updated =SearchFilters(**{**self._filters.model_dump(), **changes})
        type_changed = updated.type != self._filters.type
        self._filters = updated

        if type_changed and len(self._query) >= self._min_query_length:
            self._state = ControllerState.PENDING
            self._is_loading = True
            self._keyboard.reset(0)
            self._schedule()
        else:
            self._refresh_view()
        self._notify()

    def reset_filters(self) -> None:
        self.set_filters(**SearchFilters().model_dump())

    # ========== Scheduling / dispatch ==========

    def _schedule(self) -> None:
        """(Re)arm the single debounce timer."""
        self._cancel_timer()
        self._invalidate_in_flight()
        if self._unmounted:
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._debounce_seconds, self._fire)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _invalidate_in_flight(self) -> None:
        self._invalidated_through = self._sequence

    def _fire(self) -> None:
        self._timer = None
        if self._unmounted:
            return
        if len(self._query) >= self._min_query_length:
            self._dispatch(RequestKind.RESULTS, self._query)
        elif self._options.show_suggestions:
            self._dispatch(RequestKind.SUGGESTIONS, self._query)
        else:
            self._is_loading = False
        self._notify()

    def _refresh_for_query(self) -> None:
        if not self._query:
            self._enter_idle()
            return
        if len(self._query) >= self._min_query_length:
            self._state = ControllerState.PENDING
        self._is_loading = True
        self._schedule()

    def _enter_idle(self) -> None:
        self._cancel_timer()
        self._invalidate_in_flight()
        self._state = ControllerState.IDLE
        self._raw_results = []
        self._results = []
        self._error = None
        self._is_loading = False
        self._keyboard.reset(0)
        if not self._options.show_suggestions:
            return
        if self._is_open:
            self._dispatch(RequestKind.SUGGESTIONS, "")
        else:
            self._needs_refresh = True

    def _dispatch(self, kind: RequestKind, query: str) -> None:
        if self._unmounted:
            return
        self._sequence += 1
        request = SearchRequest(
            kind=kind,
            query=query,
            entity_type_filter=self._filters.type,
            cap=self._result_cap,
            request_id=self._sequence,
        )
        if kind == RequestKind.RESULTS:
            self._state = ControllerState.SEARCHING
        self._is_loading = True
        logger.debug(f"Dispatching {kind.value} request #{request.request_id} query={query!r}")

        task = asyncio.get_running_loop().create_task(self._run(request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, request: SearchRequest) -> None:
        try:
            if request.kind == RequestKind.RESULTS:
                coro = self._result_source.fetch_results(
                    request.query,
                    request.entity_type_filter,
                    request.cap,
                )
            else:
                coro = self._suggestion_source.fetch_suggestions(
                    request.query or None,
                    self._user_role,
                )
            response = await asyncio.wait_for(coro, timeout=self._timeout_seconds)
        except Exception as e:
            self._apply_failure(request, e)
            return
        self._apply(request, response)

    def _is_current(self, request: SearchRequest) -> bool:
        return (
            not self._unmounted
            and request.request_id == self._sequence
            and request.request_id > self._invalidated_through
        )

    def _apply(self, request: SearchRequest, response: ResultsResponse | SuggestionsResponse) -> None:
        if not self._is_current(request):
            logger.debug(f"Discarding stale response #{request.request_id} (latest #{self._sequence})")
            self._metrics.record_stale_response(request.kind.value)
            return

        self._is_loading = False
        self._error = None
        if response.user_role:
            self._user_role = response.user_role

        if request.kind == RequestKind.RESULTS:
            self._raw_results = list(response.results)
            self._state = ControllerState.HAS_RESULTS
            self._refresh_view()
            logger.debug(f"Applied request #{request.request_id}: {len(self._results)} result(s)")
        else:
            self._suggestions = list(response.suggestions)
        self._notify()

    def _apply_failure(self, request: SearchRequest, error: Exception) -> None:
        if not self._is_current(request):
            logger.debug(f"Discarding stale failure of request #{request.request_id}")
            self._metrics.record_stale_response(request.kind.value)
            return

        logger.warning(f"Search {request.kind.value} request #{request.request_id} failed: {error!r}")
        self._is_loading = False
        self._error = str(error) or error.__class__.__name__
        self._state = ControllerState.ERROR
        if request.kind == RequestKind.RESULTS:
            self._raw_results = []
            self._results = []
        else:
            self._suggestions = []
        self._keyboard.reset(0)
        self._notify()

    # ========== View ==========

    def _refresh_view(self) -> None:
        self._results = sort_results(apply_filters(self._raw_results, self._filters), self._sort)
        if self._state.is_resolved:
            self._state = (
                ControllerState.HAS_RESULTS if self._results else ControllerState.NO_RESULTS
            )
        self._keyboard.reset(len(self._navigable()))

    def _navigable(self) -> list[BaseResult]:
        """Exactly the list the keyboard can move over."""
        if (
            self._is_open
            and self._state == ControllerState.HAS_RESULTS
            and len(self._query) >= self._min_query_length
        ):
            return self._results
        return []

    def _record_history(self, term: str) -> None:
        if not term:
            return
        entries = self._history.remember(term)
        if self._options.show_history:
            self._history_terms = entries

        # Storage may block; persist on the history writer thread
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._history.persist(entries)
            return
        write = loop.run_in_executor(self._history.writer, self._history.persist, entries)
        self._writes.add(write)
        write.add_done_callback(self._writes.discard)

    def _notify(self) -> None:
        if self._on_change is not None and not self._unmounted:
            self._on_change(self.snapshot())

    def snapshot(self) -> SearchSnapshot:
        """Current view model."""
        short_query = len(self._query) < self._min_query_length
        show_results = self._state == ControllerState.HAS_RESULTS and not short_query

        return SearchSnapshot(
            query=self._query,
            state=self._state,
            is_open=self._is_open,
            is_loading=self._is_loading,
            placeholder=self._options.placeholder,
            results=self._results if show_results else [],
            result_count=len(self._results) if show_results else 0,
            highlighted_index=self._keyboard.index,
            suggestions=(
                self._suggestions[:MAX_VISIBLE_SUGGESTIONS]
                if self._options.show_suggestions and short_query
                else []
            ),
            history=(
                self._history_terms[:MAX_VISIBLE_HISTORY]
                if self._options.show_history and short_query
                else []
            ),
            tips=list(SEARCH_TIPS) if short_query else [],
            sort=self._sort,
            filters=self._filters if self._options.show_filters else None,
            user_role=self._user_role,
            error=self._error,
        )
