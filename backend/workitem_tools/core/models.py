from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

WRAPPER_KINDS = {"NON_NULL", "LIST"}
LEAF_KINDS = {"SCALAR", "ENUM"}


class TypeRef(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: Optional[str] = None
    kind: str
    of_type: Optional[TypeRef] = Field(default=None, alias="ofType")

    def named_type(self) -> TypeRef:
        """Unwrap NON_NULL/LIST wrappers down to the innermost reference the payload carries."""
        ref = self
        while ref.kind in WRAPPER_KINDS and ref.of_type is not None:
            ref = ref.of_type
        return ref

    @property
    def named_kind(self) -> str:
        return self.named_type().kind

    @property
    def named_name(self) -> Optional[str]:
        return self.named_type().name


class FieldDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: TypeRef

    @property
    def is_leaf(self) -> bool:
        return self.type.named_kind in LEAF_KINDS


class EnumValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None


class TypeDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    kind: str
    fields: Optional[Tuple[FieldDescriptor, ...]] = None
    enum_values: Optional[Tuple[EnumValue, ...]] = Field(default=None, alias="enumValues")


class IntrospectionType(BaseModel):
    """Raw `__schema.types` entry; nameless entries are tolerated and ignored."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    kind: str
    fields: Optional[Tuple[FieldDescriptor, ...]] = None
    enum_values: Optional[Tuple[EnumValue, ...]] = Field(default=None, alias="enumValues")


class IntrospectionSchema(BaseModel):
    types: List[IntrospectionType]


class IntrospectionResult(BaseModel):
    schema_: IntrospectionSchema = Field(alias="__schema")


class SchemaSnapshot(BaseModel):
    """Reduced capability model of the remote schema. Replaced wholesale, never mutated."""

    model_config = ConfigDict(frozen=True)

    widget_type_names: Tuple[str, ...] = ()
    type_index: Mapping[str, TypeDescriptor] = Field(default_factory=dict, validate_default=True)
    available_features: FrozenSet[str] = frozenset()
    source: Literal["introspection", "fallback"] = "introspection"

    @field_validator("type_index", mode="after")
    @classmethod
    def freeze_type_index(cls, v: Mapping[str, TypeDescriptor]) -> Mapping[str, TypeDescriptor]:
        return MappingProxyType(dict(v))

    @property
    def is_fallback(self) -> bool:
        return self.source == "fallback"


class QueryDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    operation_name: str
    query: str
    variable_types: Dict[str, str]

    def __str__(self) -> str:
        return self.query


class WorkItemsVariables(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    group_path: str = Field(..., alias="groupPath", min_length=1)
    types: Optional[List[str]] = None
    first: Optional[int] = Field(default=None, ge=1)
    after: Optional[str] = None


class WorkItemTypeRef(BaseModel):
    id: str
    name: str


class WorkItemWidget(BaseModel):
    # Widget payloads vary per backend version; keep whatever came back.
    model_config = ConfigDict(extra="allow")

    type: str


class DynamicWorkItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    iid: str
    title: str
    description: Optional[str] = None
    state: str
    work_item_type: WorkItemTypeRef = Field(..., alias="workItemType")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    closed_at: Optional[str] = Field(default=None, alias="closedAt")
    web_url: Optional[str] = Field(default=None, alias="webUrl")
    widgets: List[WorkItemWidget] = Field(default_factory=list)


class PageInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_next_page: bool = Field(False, alias="hasNextPage")
    end_cursor: Optional[str] = Field(default=None, alias="endCursor")


class WorkItemsPage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    nodes: List[DynamicWorkItem] = Field(default_factory=list)
    page_info: PageInfo = Field(default_factory=PageInfo, alias="pageInfo")

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> Optional[WorkItemsPage]:
        """Pull `group.workItems` out of a query result; None when the group does not resolve."""
        group = (data or {}).get("group")
        if not group:
            return None
        return cls.model_validate(group.get("workItems") or {})
