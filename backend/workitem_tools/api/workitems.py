from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from workitem_tools.config import Settings
from workitem_tools.core.graphql_client import GraphQLRequestError
from workitem_tools.core.models import FieldDescriptor, SchemaSnapshot, WorkItemsPage
from workitem_tools.core.naming import widget_type_name
from workitem_tools.core.sessions import GitLabSession, SessionRegistry

router = APIRouter(prefix="/api/workitems")


class SchemaSummaryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source: str
    widget_types: List[str] = Field(..., alias="widgetTypes")
    features: List[str]
    type_names: List[str] = Field(..., alias="typeNames")


class WidgetInfoResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    widget: str
    available: bool
    type_name: str = Field(..., alias="typeName")
    fields: List[FieldDescriptor]


class BuildQueryRequest(BaseModel):
    widgets: Optional[List[str]] = None
    minimal: bool = False


class BuildQueryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    operation_name: str = Field(..., alias="operationName")
    query: str
    variables: Dict[str, str]


class ListWorkItemsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    group_path: str = Field(..., alias="groupPath", min_length=1)
    types: Optional[List[str]] = None
    first: Optional[int] = Field(default=None, ge=1)
    after: Optional[str] = None
    widgets: Optional[List[str]] = None
    minimal: bool = False


async def get_registry() -> SessionRegistry:
    # In-memory registry stored on the router object
    return router.registry  # type: ignore[attr-defined]


async def get_settings() -> Settings:
    return router.settings  # type: ignore[attr-defined]


async def get_session(registry: SessionRegistry = Depends(get_registry)) -> GitLabSession:
    session = await registry.get_session()
    await session.ensure_introspected()
    return session


def _summary(snapshot: SchemaSnapshot) -> SchemaSummaryResponse:
    return SchemaSummaryResponse(
        source=snapshot.source,
        widgetTypes=list(snapshot.widget_type_names),
        features=sorted(snapshot.available_features),
        typeNames=sorted(snapshot.type_index),
    )


@router.get("/schema", response_model=SchemaSummaryResponse)
async def get_schema(session: GitLabSession = Depends(get_session)) -> SchemaSummaryResponse:
    return _summary(await session.ensure_introspected())


@router.post("/schema/refresh", response_model=SchemaSummaryResponse)
async def refresh_schema(registry: SessionRegistry = Depends(get_registry)) -> SchemaSummaryResponse:
    session = await registry.get_session()
    session.introspector.clear_cache()
    snapshot = await session.ensure_introspected()
    return _summary(snapshot)


@router.get("/schema/widgets/{widget}", response_model=WidgetInfoResponse)
async def get_widget(widget: str, session: GitLabSession = Depends(get_session)) -> WidgetInfoResponse:
    widget = widget.upper()
    type_name = widget_type_name(widget)
    return WidgetInfoResponse(
        widget=widget,
        available=session.introspector.is_widget_type_available(widget),
        typeName=type_name,
        fields=session.introspector.get_fields_for_type(type_name),
    )


@router.post("/query", response_model=BuildQueryResponse)
async def build_query(body: BuildQueryRequest, session: GitLabSession = Depends(get_session)) -> BuildQueryResponse:
    document = session.builder.build_minimal_query() if body.minimal else session.builder.build_full_query(body.widgets)
    return BuildQueryResponse(operationName=document.operation_name, query=document.query, variables=document.variable_types)


@router.post("/list", response_model=WorkItemsPage)
async def list_work_items(
    body: ListWorkItemsRequest,
    session: GitLabSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> WorkItemsPage:
    first = body.first or settings.default_page_size
    if first > settings.max_page_size:
        raise HTTPException(status_code=400, detail=f"first cannot exceed {settings.max_page_size}")

    if body.minimal:
        document = session.builder.build_minimal_query()
        variables = session.builder.build_variables(body.group_path, first=first, after=body.after)
    else:
        document = session.builder.build_full_query(body.widgets)
        variables = session.builder.build_variables(body.group_path, types=body.types, first=first, after=body.after)

    try:
        data: Dict[str, Any] = await session.client.request(document, variables)
    except GraphQLRequestError as exc:
        raise HTTPException(status_code=502, detail=str(exc))

    page = WorkItemsPage.from_response(data)
    if page is None:
        raise HTTPException(status_code=404, detail="Group not found")
    return page
