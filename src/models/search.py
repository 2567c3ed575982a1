# -*- coding: utf-8 -*-
"""Pydantic models for smart search."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SerializeAsAny,
    TypeAdapter,
    field_validator,
)


class EntityType(str, Enum):
    """Kinds of entities the search service can return."""

    COURSE = "course"
    TEACHER = "teacher"
    ROOM = "room"
    SCHEDULE = "schedule"
    STUDENT = "student"
    DEPARTMENT = "department"


ALL_TYPES = "all"


class SuggestionKind(str, Enum):
    """Origin of a suggestion entry."""

    RECENT = "recent"
    POPULAR = "popular"
    DERIVED = "derived"
    FILTER = "filter"


class SortKey(str, Enum):
    """Client-side re-sort keys for a fetched result set."""

    RELEVANCE = "relevance"
    TITLE = "title"
    DATE = "date"


class ControllerState(str, Enum):
    """Lifecycle states of the search controller.

    HAS_RESULTS and NO_RESULTS are the two sub-states of "resolved".
    """

    IDLE = "idle"
    SUGGESTING = "suggesting"
    PENDING = "pending"
    SEARCHING = "searching"
    HAS_RESULTS = "has_results"
    NO_RESULTS = "no_results"
    ERROR = "error"

    @property
    def is_resolved(self) -> bool:
        return self in (ControllerState.HAS_RESULTS, ControllerState.NO_RESULTS)


class RequestKind(str, Enum):
    """Which source a request is dispatched to."""

    SUGGESTIONS = "suggestions"
    RESULTS = "results"


def _stringify(value: Any) -> Any:
    """Identifiers arrive as ints from some endpoints."""
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


# ========== Suggestions ==========


class SuggestionEntry(BaseModel):
    """A single search suggestion."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Identifier, unique within one response")
    text: str = Field(..., min_length=1, description="Query adopted when chosen")
    kind: SuggestionKind = Field(
        default=SuggestionKind.DERIVED,
        validation_alias=AliasChoices("type", "kind"),
        description="Where the suggestion comes from",
    )
    category: str | None = Field(default=None, description="Human label")
    count: int | None = Field(default=None, description="Advisory result count")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _stringify(value)

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("suggestion text must not be blank")
        return value

    @field_validator("kind", mode="before")
    @classmethod
    def _map_remote_kind(cls, value: Any) -> Any:
        # The remote service calls derived suggestions "suggestion"
        if value == "suggestion":
            return SuggestionKind.DERIVED
        return value


class SuggestionsResponse(BaseModel):
    """Response of the suggestion source."""

    suggestions: list[SuggestionEntry] = Field(default_factory=list)
    query: str = Field(default="", description="Partial query the suggestions are for")
    user_role: str | None = Field(default=None, description="Role the service applied")


# ========== Results ==========


class ResultMetadata(BaseModel):
    """Entity-specific payload; unknown keys are kept."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    href: str | None = None
    code: str | None = None
    department: str | None = None
    level: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _stringify(value)


class BaseResult(BaseModel):
    """Fields shared by every result entity type."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Identifier, unique within one response")
    title: str = Field(..., description="Display title")
    description: str = Field(default="", description="Display description")
    category: str = Field(default="", description="Display label")
    relevance: float = Field(default=0.0, ge=0.0, le=1.0, description="Ranking score")
    metadata: ResultMetadata = Field(default_factory=ResultMetadata)
    is_favorite: bool = Field(
        default=False,
        validation_alias=AliasChoices("isFavorite", "is_favorite"),
    )
    last_accessed: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("lastAccessed", "last_accessed"),
        description="Comparable date used by the date sort",
    )

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _stringify(value)


class CourseResult(BaseResult):
    entity_type: Literal["course"] = Field(default="course", alias="type")


class TeacherResult(BaseResult):
    entity_type: Literal["teacher"] = Field(default="teacher", alias="type")


class RoomResult(BaseResult):
    entity_type: Literal["room"] = Field(default="room", alias="type")


class ScheduleResult(BaseResult):
    entity_type: Literal["schedule"] = Field(default="schedule", alias="type")


class StudentResult(BaseResult):
    entity_type: Literal["student"] = Field(default="student", alias="type")


class DepartmentResult(BaseResult):
    entity_type: Literal["department"] = Field(default="department", alias="type")


ResultEntry = Annotated[
    Union[
        CourseResult,
        TeacherResult,
        RoomResult,
        ScheduleResult,
        StudentResult,
        DepartmentResult,
    ],
    Field(discriminator="entity_type"),
]

_result_adapter = TypeAdapter(ResultEntry)


def parse_result(raw: dict[str, Any]) -> ResultEntry:
    """Validate one wire result into its entity-specific model."""
    return _result_adapter.validate_python(raw)


class ResultsResponse(BaseModel):
    """Response of the result source."""

    results: list[SerializeAsAny[BaseResult]] = Field(default_factory=list)
    total: int = Field(default=0, description="Total matches reported by the service")
    query: str = Field(default="")
    user_role: str | None = Field(default=None)


# ========== Requests / controller ==========


class SearchRequest(BaseModel):
    """One dispatched fetch. Never stored."""

    model_config = ConfigDict(frozen=True)

    kind: RequestKind
    query: str
    entity_type_filter: str = ALL_TYPES
    cap: int = 10
    request_id: int = Field(..., ge=1, description="Strictly increasing per dispatch")


class SearchFilters(BaseModel):
    """Filters offered by the advanced filter panel."""

    type: str = Field(default=ALL_TYPES, description="Entity type or 'all'")
    department: str = Field(default=ALL_TYPES)
    level: str = Field(default=ALL_TYPES)
    status: str = Field(default=ALL_TYPES)
    date_range: str = Field(default=ALL_TYPES)

    @field_validator("type")
    @classmethod
    def _known_type(cls, value: str) -> str:
        if value != ALL_TYPES and value not in {t.value for t in EntityType}:
            raise ValueError(f"unknown entity type filter: {value}")
        return value


class SearchOptions(BaseModel):
    """Configuration surface of the controller."""

    placeholder: str = "Search courses, teachers, rooms..."
    show_filters: bool = True
    show_suggestions: bool = True
    show_history: bool = True


class Destination(BaseModel):
    """Where a selected result leads."""

    path: str
    entity_type: EntityType
    entity_id: str


class SearchSnapshot(BaseModel):
    """Everything an embedding UI needs to render the search panel."""

    query: str
    state: ControllerState
    is_open: bool
    is_loading: bool
    placeholder: str
    results: list[SerializeAsAny[BaseResult]] = Field(default_factory=list)
    result_count: int = 0
    highlighted_index: int = -1
    suggestions: list[SuggestionEntry] = Field(default_factory=list)
    history: list[str] = Field(default_factory=list)
    tips: list[str] = Field(default_factory=list)
    sort: SortKey = SortKey.RELEVANCE
    filters: SearchFilters | None = None
    user_role: str | None = None
    error: str | None = None


# ========== History API ==========


class SearchHistoryList(BaseModel):
    """Response model for the search history list."""

    history: list[str] = Field(default_factory=list)
    total: int = Field(default=0, description="Number of history entries")
