from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from workitem_tools.core.graphql_client import GraphQLClient
from workitem_tools.core.models import SchemaSnapshot
from workitem_tools.core.query_builder import DynamicQueryBuilder
from workitem_tools.core.schema_introspector import SchemaIntrospector

logger = logging.getLogger(__name__)


@dataclass
class GitLabSession:
    client: GraphQLClient
    introspector: SchemaIntrospector
    builder: DynamicQueryBuilder

    @classmethod
    def for_client(cls, client: GraphQLClient) -> GitLabSession:
        introspector = SchemaIntrospector(client)
        return cls(client=client, introspector=introspector, builder=DynamicQueryBuilder(introspector))

    async def ensure_introspected(self) -> SchemaSnapshot:
        return await self.introspector.introspect_schema()


class SessionRegistry:
    """One session (and so one schema cache) per GraphQL endpoint."""

    def __init__(
        self,
        default_endpoint: str,
        default_headers: Dict[str, str] | None = None,
        timeout: float = 20,
    ) -> None:
        self.default_endpoint = default_endpoint
        self.default_headers = default_headers or {}
        self.timeout = timeout
        self._sessions: Dict[str, GitLabSession] = {}
        self._lock = asyncio.Lock()

    async def get_session(self, endpoint: str | None = None, headers: Dict[str, str] | None = None) -> GitLabSession:
        endpoint = endpoint or self.default_endpoint
        async with self._lock:
            session = self._sessions.get(endpoint)
            if session is None:
                client = GraphQLClient(endpoint, headers={**self.default_headers, **(headers or {})}, timeout=self.timeout)
                session = GitLabSession.for_client(client)
                self._sessions[endpoint] = session
                logger.info("Created GitLab session for %s", endpoint)
            return session

    async def register(self, session: GitLabSession) -> None:
        async with self._lock:
            self._sessions[session.client.endpoint] = session

    async def drop_session(self, endpoint: str | None = None) -> Optional[GitLabSession]:
        async with self._lock:
            return self._sessions.pop(endpoint or self.default_endpoint, None)
