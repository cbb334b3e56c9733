import asyncio
import copy
from typing import Any, Dict, List, Optional

import pytest

from workitem_tools.core.query_builder import DynamicQueryBuilder
from workitem_tools.core.schema_introspector import SchemaIntrospector


def _scalar(name: str, type_name: str = "String") -> Dict[str, Any]:
    return {"name": name, "type": {"name": type_name, "kind": "SCALAR", "ofType": None}}


def _object(name: str, type_name: str) -> Dict[str, Any]:
    return {"name": name, "type": {"name": type_name, "kind": "OBJECT", "ofType": None}}


INTROSPECTION_DATA: Dict[str, Any] = {
    "__schema": {
        "types": [
            {
                "name": "WorkItemWidgetType",
                "kind": "ENUM",
                "fields": None,
                "enumValues": [
                    {"name": "ASSIGNEES", "description": "Assignee widget"},
                    {"name": "LABELS", "description": "Labels widget"},
                    {"name": "MILESTONE", "description": "Milestone widget"},
                    {"name": "DESCRIPTION", "description": "Description widget"},
                    {"name": "WEIGHT", "description": "Weight widget"},
                    {"name": "START_AND_DUE_DATE", "description": "Dates widget"},
                    {"name": "CUSTOM_FIELDS", "description": "Custom fields widget"},
                ],
            },
            {
                "name": "WorkItemWidgetAssignees",
                "kind": "OBJECT",
                "enumValues": None,
                "fields": [
                    {"name": "type", "type": {"name": "WorkItemWidgetType", "kind": "ENUM", "ofType": None}},
                    _object("assignees", "UserConnection"),
                    _scalar("canInviteMembers", "Boolean"),
                ],
            },
            {
                "name": "WorkItemWidgetLabels",
                "kind": "OBJECT",
                "enumValues": None,
                "fields": [
                    _object("labels", "LabelConnection"),
                    _scalar("allowsScopedLabels", "Boolean"),
                ],
            },
            {
                "name": "WorkItemWidgetMilestone",
                "kind": "OBJECT",
                "enumValues": None,
                "fields": [_object("milestone", "Milestone")],
            },
            {
                "name": "WorkItemWidgetDescription",
                "kind": "OBJECT",
                "enumValues": None,
                "fields": [
                    {"name": "type", "type": {"name": "WorkItemWidgetType", "kind": "ENUM", "ofType": None}},
                    _scalar("description"),
                    _scalar("edited", "Boolean"),
                    _object("lastEditedBy", "UserCore"),
                ],
            },
            {
                "name": "WorkItemWidgetStartAndDueDate",
                "kind": "OBJECT",
                "enumValues": None,
                "fields": [
                    {
                        "name": "dueDate",
                        "type": {"name": None, "kind": "NON_NULL", "ofType": {"name": "Date", "kind": "SCALAR"}},
                    },
                    _scalar("startDate", "Date"),
                ],
            },
            {
                "name": "WorkItemWidgetCustomFields",
                "kind": "OBJECT",
                "enumValues": None,
                "fields": [_object("customFieldValues", "CustomFieldValueConnection")],
            },
            {
                "name": "AwardEmoji",
                "kind": "OBJECT",
                "enumValues": None,
                "fields": [_scalar("id", "ID"), _scalar("name")],
            },
            {
                "name": "Milestone",
                "kind": "OBJECT",
                "enumValues": None,
                "fields": [
                    _scalar("id", "ID"),
                    _scalar("title"),
                    {"name": "state", "type": {"name": "MilestoneStateEnum", "kind": "ENUM", "ofType": None}},
                    _scalar("dueDate", "Time"),
                ],
            },
            {
                "name": "User",
                "kind": "OBJECT",
                "enumValues": None,
                "fields": [_scalar("id", "ID"), _scalar("username"), _scalar("name")],
            },
            {
                "name": "Label",
                "kind": "OBJECT",
                "enumValues": None,
                "fields": [_scalar("id", "ID"), _scalar("title"), _scalar("color")],
            },
            {
                "name": "Project",
                "kind": "OBJECT",
                "enumValues": None,
                "fields": [_scalar("id", "ID")],
            },
        ]
    }
}


class FakeGraphQLClient:
    """Stands in for GraphQLClient; records every request."""

    endpoint = "https://gitlab.example.com/api/graphql"

    def __init__(self, response: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None) -> None:
        self.response = response
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def request(self, document: Any, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self.calls.append({"document": document, "variables": variables})
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return copy.deepcopy(self.response)


@pytest.fixture
def introspection_data() -> Dict[str, Any]:
    return copy.deepcopy(INTROSPECTION_DATA)


@pytest.fixture
def fake_client(introspection_data) -> FakeGraphQLClient:
    return FakeGraphQLClient(response=introspection_data)


@pytest.fixture
def introspector(fake_client) -> SchemaIntrospector:
    """Introspector already populated from the live-looking payload."""
    instance = SchemaIntrospector(fake_client)
    asyncio.run(instance.introspect_schema())
    return instance


@pytest.fixture
def fallback_introspector() -> SchemaIntrospector:
    instance = SchemaIntrospector(FakeGraphQLClient(error=ConnectionError("boom")))
    asyncio.run(instance.introspect_schema())
    return instance


@pytest.fixture
def builder(introspector) -> DynamicQueryBuilder:
    return DynamicQueryBuilder(introspector)
