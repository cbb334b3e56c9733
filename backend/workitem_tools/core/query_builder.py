from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from workitem_tools.core.models import QueryDocument, WorkItemsVariables
from workitem_tools.core.naming import widget_type_name
from workitem_tools.core.safe_shapes import NestedShape, select_safe_fields
from workitem_tools.core.schema_introspector import SchemaIntrospector

logger = logging.getLogger(__name__)

FULL_QUERY_VARIABLES: Dict[str, str] = {
    "groupPath": "ID!",
    "types": "[IssueType!]",
    "first": "Int",
    "after": "String",
}
MINIMAL_QUERY_VARIABLES: Dict[str, str] = {
    "groupPath": "ID!",
    "first": "Int",
    "after": "String",
}

FULL_QUERY_TEMPLATE = """query GetWorkItems($groupPath: ID!, $types: [IssueType!], $first: Int, $after: String) {{
  group(fullPath: $groupPath) {{
    workItems(types: $types, first: $first, after: $after) {{
      pageInfo {{
        hasNextPage
        endCursor
      }}
      nodes {{
        id
        iid
        title
        description
        state
        workItemType {{
          id
          name
        }}
        createdAt
        updatedAt
        closedAt
        webUrl
        widgets {{
          type
{fragments}
        }}
      }}
    }}
  }}
}}
"""

MINIMAL_QUERY = """query GetWorkItemsMinimal($groupPath: ID!, $first: Int, $after: String) {
  group(fullPath: $groupPath) {
    workItems(first: $first, after: $after) {
      pageInfo {
        hasNextPage
        endCursor
      }
      nodes {
        id
        iid
        title
        state
        workItemType {
          id
          name
        }
        widgets {
          type
        }
      }
    }
  }
}
"""

FRAGMENT_INDENT = " " * 10


def _indent(block: str, prefix: str) -> str:
    return "\n".join(prefix + line if line else line for line in block.splitlines())


class DynamicQueryBuilder:
    """Builds WorkItem queries that only reference widget fields the connected schema declares."""

    def __init__(self, schema_introspector: SchemaIntrospector) -> None:
        self.schema_introspector = schema_introspector

    def build_full_query(self, requested_widgets: Optional[Sequence[str]] = None) -> QueryDocument:
        widgets = (
            self.schema_introspector.get_available_widget_types()
            if requested_widgets is None
            else list(dict.fromkeys(requested_widgets))
        )
        available = [widget for widget in widgets if self.schema_introspector.is_widget_type_available(widget)]

        logger.info(
            "Building dynamic WorkItems query: requested=%d available=%d widgetTypes=%s",
            len(widgets),
            len(available),
            available[:5],
        )

        fragments = [fragment for fragment in map(self.build_widget_fragment, available) if fragment]
        query = FULL_QUERY_TEMPLATE.format(fragments=_indent("\n".join(fragments), FRAGMENT_INDENT))
        return QueryDocument(operation_name="GetWorkItems", query=query, variable_types=dict(FULL_QUERY_VARIABLES))

    def build_minimal_query(self) -> QueryDocument:
        return QueryDocument(
            operation_name="GetWorkItemsMinimal",
            query=MINIMAL_QUERY,
            variable_types=dict(MINIMAL_QUERY_VARIABLES),
        )

    def build_widget_fragment(self, widget: str) -> Optional[str]:
        type_name = widget_type_name(widget)
        fields = self.schema_introspector.get_fields_for_type(type_name)
        if not fields:
            return None

        safe_fields = select_safe_fields(fields, self._render_detailed)
        if not safe_fields:
            return None

        body = "\n".join(f"  {line}" for line in safe_fields)
        return f"... on {type_name} {{\n{body}\n}}"

    def _render_detailed(self, shape: NestedShape) -> str:
        subfields: List[str] = list(shape.core)
        if shape.node_type and self.schema_introspector.get_type_descriptor(shape.node_type) is not None:
            subfields.extend(
                name
                for name in shape.extended
                if name not in subfields and self.schema_introspector.has_field(shape.node_type, name)
            )
        return shape.render(subfields)

    @staticmethod
    def build_variables(
        group_path: str,
        types: Optional[Iterable[str]] = None,
        first: Optional[int] = None,
        after: Optional[str] = None,
    ) -> Dict[str, object]:
        variables = WorkItemsVariables(
            groupPath=group_path,
            types=list(types) if types is not None else None,
            first=first,
            after=after,
        )
        return variables.model_dump(by_alias=True, exclude_none=True)
