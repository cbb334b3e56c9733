from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import yaml
from pydantic import BaseModel, Field

from workitem_tools.core.models import FieldDescriptor

SHAPES_PATH = Path(__file__).resolve().with_name("widget_shapes.yaml")

# The widget discriminator; callers already select it once per widget.
DISCRIMINATOR_FIELD = "type"


class NestedShape(BaseModel):
    field: str
    connection: bool = False
    node_type: Optional[str] = None
    core: List[str] = Field(..., min_length=1)
    extended: List[str] = Field(default_factory=list)

    def render(self, subfields: Optional[Iterable[str]] = None) -> str:
        selection = " ".join(subfields if subfields is not None else self.core)
        if self.connection:
            return f"{self.field} {{ nodes {{ {selection} }} }}"
        return f"{self.field} {{ {selection} }}"


@lru_cache(maxsize=4)
def load_shapes(path: Path = SHAPES_PATH) -> Dict[str, NestedShape]:
    with Path(path).open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path} must contain a mapping of field name to shape")
    return {name: NestedShape(field=name, **(spec or {})) for name, spec in raw.items()}


def get_shape(field_name: str) -> Optional[NestedShape]:
    return load_shapes().get(field_name)


def select_safe_fields(
    fields: Iterable[FieldDescriptor],
    render_object: Callable[[NestedShape], Optional[str]],
) -> List[str]:
    """
    Keep leaf fields verbatim and object fields that have a known shape.

    `render_object` turns a shape into a selection string (or None to drop it);
    the introspector and the query builder differ only in that step.
    """
    selections: List[str] = []
    for field in fields:
        if field.name == DISCRIMINATOR_FIELD:
            continue
        if field.is_leaf:
            selections.append(field.name)
        elif field.type.named_kind == "OBJECT":
            shape = get_shape(field.name)
            if shape is None:
                continue
            rendered = render_object(shape)
            if rendered:
                selections.append(rendered)
    return selections
