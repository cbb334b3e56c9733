from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Protocol, Tuple

from workitem_tools.core.models import (
    FieldDescriptor,
    IntrospectionResult,
    SchemaSnapshot,
    TypeDescriptor,
    TypeRef,
)
from workitem_tools.core.naming import widget_type_name
from workitem_tools.core.safe_shapes import select_safe_fields

logger = logging.getLogger(__name__)

INTROSPECTION_QUERY = """
query IntrospectSchema {
  __schema {
    types {
      name
      kind
      fields {
        name
        type {
          name
          kind
          ofType {
            name
            kind
          }
        }
      }
      enumValues {
        name
        description
      }
    }
  }
}
"""

WIDGET_ENUM_TYPE = "WorkItemWidgetType"
RELEVANT_TYPE_PREFIXES = ("WorkItem",)
RELEVANT_TYPE_NAMES = frozenset({"AwardEmoji", "Milestone", "User", "Label"})

FALLBACK_WIDGET_TYPES = (
    "ASSIGNEES",
    "LABELS",
    "MILESTONE",
    "DESCRIPTION",
    "START_AND_DUE_DATE",
    "WEIGHT",
    "TIME_TRACKING",
    "HEALTH_STATUS",
    "COLOR",
    "NOTIFICATIONS",
    "NOTES",
)
FALLBACK_FEATURES = frozenset({"workItems", "epics", "issues"})

# Used when a listed widget type is missing from the index.
FALLBACK_FIELDS: Dict[str, Tuple[FieldDescriptor, ...]] = {
    "WorkItemWidgetAssignees": (
        FieldDescriptor(name="assignees", type=TypeRef(name="UserConnection", kind="OBJECT")),
    ),
    "WorkItemWidgetLabels": (
        FieldDescriptor(name="labels", type=TypeRef(name="LabelConnection", kind="OBJECT")),
    ),
    "WorkItemWidgetMilestone": (
        FieldDescriptor(name="milestone", type=TypeRef(name="Milestone", kind="OBJECT")),
    ),
}

NOT_INTROSPECTED_MESSAGE = "Schema not introspected yet. Call introspect_schema() first."


class SchemaNotIntrospectedError(RuntimeError):
    """A capability query ran before any introspection attempt completed."""

    def __init__(self) -> None:
        super().__init__(NOT_INTROSPECTED_MESSAGE)


class SupportsRequest(Protocol):
    def request(self, document: Any, variables: Dict[str, Any] | None = None) -> Awaitable[Dict[str, Any]]:
        ...


def is_relevant_type(name: Optional[str]) -> bool:
    if not name:
        return False
    return name.startswith(RELEVANT_TYPE_PREFIXES) or name in RELEVANT_TYPE_NAMES


def fallback_snapshot() -> SchemaSnapshot:
    return SchemaSnapshot(
        widget_type_names=FALLBACK_WIDGET_TYPES,
        type_index={},
        available_features=FALLBACK_FEATURES,
        source="fallback",
    )


def build_snapshot(payload: Dict[str, Any]) -> SchemaSnapshot:
    """Reduce a raw introspection payload to the work-item capability snapshot."""
    types = IntrospectionResult.model_validate(payload).schema_.types

    widget_type_names: List[str] = []
    type_index: Dict[str, TypeDescriptor] = {}
    for entry in types:
        if entry.name == WIDGET_ENUM_TYPE:
            widget_type_names = [value.name for value in entry.enum_values or []]
        if is_relevant_type(entry.name):
            type_index[entry.name] = TypeDescriptor(
                name=entry.name,
                kind=entry.kind,
                fields=entry.fields,
                enumValues=entry.enum_values,
            )

    return SchemaSnapshot(
        widget_type_names=tuple(widget_type_names),
        type_index=type_index,
        available_features=frozenset(widget_type_names),
        source="introspection",
    )


class SchemaIntrospector:
    """
    Fetches and caches the slice of the remote schema that decides which widget
    fields are safe to query.

    One instance owns one snapshot. `introspect_schema()` hits the network at most
    once per cache generation; concurrent first callers await the same task.
    Failures never propagate: the fixed fallback snapshot is cached instead.
    """

    def __init__(self, client: SupportsRequest) -> None:
        self.client = client
        self._cached_schema: Optional[SchemaSnapshot] = None
        self._in_flight: Optional[asyncio.Future[SchemaSnapshot]] = None
        self._generation = 0

    async def introspect_schema(self) -> SchemaSnapshot:
        if self._cached_schema is not None:
            return self._cached_schema

        if self._in_flight is None or self._in_flight.done():
            self._in_flight = asyncio.ensure_future(self._load(self._generation))
        in_flight = self._in_flight
        try:
            return await asyncio.shield(in_flight)
        finally:
            if in_flight.done() and self._in_flight is in_flight:
                self._in_flight = None

    async def _load(self, generation: int) -> SchemaSnapshot:
        try:
            logger.debug("Introspecting GitLab GraphQL schema...")
            payload = await self.client.request(INTROSPECTION_QUERY)
            snapshot = build_snapshot(payload)
            logger.info(
                "GraphQL schema introspection completed: widgetTypes=%d typeDefinitions=%d features=%d",
                len(snapshot.widget_type_names),
                len(snapshot.type_index),
                len(snapshot.available_features),
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Schema introspection failed, using fallback schema info: %s", exc)
            snapshot = fallback_snapshot()

        if generation == self._generation:
            self._cached_schema = snapshot
        return snapshot

    def _require_schema(self) -> SchemaSnapshot:
        if self._cached_schema is None:
            raise SchemaNotIntrospectedError()
        return self._cached_schema

    def is_widget_type_available(self, widget_type: str) -> bool:
        return widget_type in self._require_schema().available_features

    def get_type_descriptor(self, type_name: str) -> Optional[TypeDescriptor]:
        return self._require_schema().type_index.get(type_name)

    def get_fields_for_type(self, type_name: str) -> List[FieldDescriptor]:
        type_info = self.get_type_descriptor(type_name)
        if type_info is not None and type_info.fields:
            return list(type_info.fields)
        return list(FALLBACK_FIELDS.get(type_name, ()))

    def has_field(self, type_name: str, field_name: str) -> bool:
        return any(field.name == field_name for field in self.get_fields_for_type(type_name))

    def get_available_widget_types(self) -> List[str]:
        return list(self._require_schema().widget_type_names)

    def generate_safe_widget_query(self, requested_widgets: Iterable[str]) -> str:
        self._require_schema()

        blocks: List[str] = []
        for widget in requested_widgets:
            if not self.is_widget_type_available(widget):
                continue
            type_name = widget_type_name(widget)
            safe_fields = select_safe_fields(self.get_fields_for_type(type_name), lambda shape: shape.render())
            if not safe_fields:
                continue
            body = "\n".join(f"  {line}" for line in safe_fields)
            blocks.append(f"... on {type_name} {{\n{body}\n}}")

        return "\n".join(blocks)

    def get_cached_schema(self) -> Optional[SchemaSnapshot]:
        return self._cached_schema

    def clear_cache(self) -> None:
        self._cached_schema = None
        self._in_flight = None
        self._generation += 1
