# -*- coding: utf-8 -*-
import asyncio
import os

# Keep the application database off disk during tests
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.main import app
from src.core.config import Settings, get_settings
from src.core.database import Base
from src.models import db_models  # noqa: F401
from src.models.search import ResultsResponse, SearchOptions, SuggestionsResponse
from src.services.api_metrics import ApiMetricsService
from src.services.history_store import HistoryStore, InMemoryKeyValueStore, get_history_store
from src.services.navigator import SelectionNavigator
from src.services.search_client import get_search_client
from src.services.search_controller import SearchController


class FakeSearchSource:
    """Suggestion and result source that records every call.

    `gates` maps a query to an asyncio.Event the result fetch waits on, which
    lets tests control the order in which responses arrive.
    """

    def __init__(self):
        self.suggestion_calls: list[tuple[str | None, str | None]] = []
        self.result_calls: list[tuple[str, str, int]] = []
        self.results_by_query: dict[str, list] = {}
        self.suggestions: list = []
        self.gates: dict[str, asyncio.Event] = {}
        self.result_error: Exception | None = None
        self.errors_by_query: dict[str, Exception] = {}
        self.suggestion_error: Exception | None = None
        self.result_delay: float = 0.0
        self.user_role: str | None = None

    async def fetch_suggestions(self, partial_query=None, role=None):
        self.suggestion_calls.append((partial_query, role))
        if self.suggestion_error is not None:
            raise self.suggestion_error
        return SuggestionsResponse(
            suggestions=list(self.suggestions),
            query=partial_query or "",
            user_role=self.user_role,
        )

    async def fetch_results(self, query, entity_type_filter, cap):
        self.result_calls.append((query, entity_type_filter, cap))
        gate = self.gates.get(query)
        if gate is not None:
            await gate.wait()
        if self.result_delay:
            await asyncio.sleep(self.result_delay)
        error = self.errors_by_query.get(query, self.result_error)
        if error is not None:
            raise error
        results = list(self.results_by_query.get(query, []))
        return ResultsResponse(
            results=results,
            total=len(results),
            query=query,
            user_role=self.user_role,
        )


class Recorder:
    """Collects the controller's caller-visible side effects."""

    def __init__(self):
        self.searches: list[tuple[str, dict]] = []
        self.navigations: list = []
        self.clicks: list = []
        self.snapshots: list = []

    def on_search(self, query, filters):
        self.searches.append((query, filters))

    def on_navigate(self, destination):
        self.navigations.append(destination)

    def on_change(self, snapshot):
        self.snapshots.append(snapshot)


@pytest.fixture
def source():
    """Create a fake search source."""
    return FakeSearchSource()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def history():
    """Create an in-memory history store."""
    return HistoryStore(InMemoryKeyValueStore())


@pytest.fixture
def make_controller(source, history, recorder):
    """Factory for controllers wired to the fakes with a short debounce."""

    def _make(**overrides):
        kwargs = dict(
            suggestion_source=source,
            result_source=source,
            history=history,
            navigator=SelectionNavigator(strict=False),
            options=SearchOptions(),
            on_search=recorder.on_search,
            on_navigate=recorder.on_navigate,
            on_change=recorder.on_change,
            debounce_seconds=0.01,
            timeout_seconds=1.0,
            metrics=ApiMetricsService(),
        )
        kwargs.update(overrides)
        return SearchController(**kwargs)

    return _make


@pytest.fixture
def test_engine():
    """Create an in-memory SQLite engine with all tables."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def test_settings():
    return Settings(search_debounce_ms=10, environment="test")


@pytest.fixture
def client(source, history, test_settings):
    """Create a test client with fake search source and in-memory history."""
    app.dependency_overrides[get_search_client] = lambda: source
    app.dependency_overrides[get_history_store] = lambda: history
    app.dependency_overrides[get_settings] = lambda: test_settings
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
