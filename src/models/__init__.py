# -*- coding: utf-8 -*-
"""Pydantic models."""

from src.models.search import (
    ControllerState,
    Destination,
    EntityType,
    ResultEntry,
    ResultsResponse,
    SearchFilters,
    SearchOptions,
    SearchRequest,
    SearchSnapshot,
    SortKey,
    SuggestionEntry,
    SuggestionKind,
    SuggestionsResponse,
)

__all__ = [
    "ControllerState",
    "Destination",
    "EntityType",
    "ResultEntry",
    "ResultsResponse",
    "SearchFilters",
    "SearchOptions",
    "SearchRequest",
    "SearchSnapshot",
    "SortKey",
    "SuggestionEntry",
    "SuggestionKind",
    "SuggestionsResponse",
]
