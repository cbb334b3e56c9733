from __future__ import annotations

WIDGET_TYPE_PREFIX = "WorkItemWidget"


def widget_type_name(widget: str) -> str:
    """
    Map a `WorkItemWidgetType` enum value to the GraphQL object type carrying its data.

    Each underscore-separated word is capitalised and joined, then prefixed:
    ``ASSIGNEES`` -> ``WorkItemWidgetAssignees``,
    ``START_AND_DUE_DATE`` -> ``WorkItemWidgetStartAndDueDate``.
    Empty segments from doubled or edge underscores are dropped.
    """
    parts = [part for part in widget.strip().split("_") if part]
    return WIDGET_TYPE_PREFIX + "".join(part[0].upper() + part[1:].lower() for part in parts)
