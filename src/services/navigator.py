# -*- coding: utf-8 -*-
"""Selection navigator: maps a chosen result to where it leads."""

import logging

from src.models.search import BaseResult, Destination, EntityType

logger = logging.getLogger(__name__)


# Route templates per entity type; {id} is the entity identifier
ROUTES: dict[EntityType, str] = {
    EntityType.COURSE: "/courses/{id}",
    EntityType.TEACHER: "/teachers/{id}",
    EntityType.ROOM: "/rooms/{id}",
    EntityType.SCHEDULE: "/schedule?session={id}",
    EntityType.STUDENT: "/students/{id}",
    EntityType.DEPARTMENT: "/departments/{id}",
}


class UnresolvableDestinationError(Exception):
    """Raised in strict mode when a result has no known destination."""


class SelectionNavigator:
    """Resolves result entries to destinations.

    An explicit `metadata.href` always wins. Otherwise the route table is
    used with `metadata.id`, falling back to the entry id.

    In strict mode (development) an unknown entity type raises; otherwise it
    is logged and resolves to None, which callers treat as "don't navigate".
    """

    def __init__(self, strict: bool = False, routes: dict[EntityType, str] | None = None):
        self._strict = strict
        self._routes = routes if routes is not None else ROUTES

    def resolve(self, entry: BaseResult) -> Destination | None:
        entity_id = entry.metadata.id or entry.id

        try:
            entity_type = EntityType(getattr(entry, "entity_type", None))
            template = self._routes[entity_type]
        except (ValueError, KeyError):
            message = (
                f"No destination for result {entry.id!r} "
                f"of type {getattr(entry, 'entity_type', None)!r}"
            )
            if self._strict:
                raise UnresolvableDestinationError(message)
            logger.error(message)
            return None

        path = entry.metadata.href or template.format(id=entity_id)
        return Destination(path=path, entity_type=entity_type, entity_id=entity_id)
