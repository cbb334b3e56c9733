from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

import httpx

from workitem_tools.core.models import QueryDocument

logger = logging.getLogger(__name__)


class GraphQLRequestError(Exception):
    """Raised when the endpoint answers with a failure status, GraphQL errors, or no data."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GraphQLClient:
    def __init__(
        self,
        endpoint: str,
        headers: Dict[str, str] | None = None,
        timeout: float = 20,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.headers = headers or {}
        self.timeout = timeout
        self._transport = transport

    def set_headers(self, headers: Dict[str, str]) -> None:
        self.headers = {**self.headers, **headers}

    def set_auth_token(self, token: str) -> None:
        self.set_headers({"Authorization": f"Bearer {token}"})

    async def request(
        self,
        document: Union[QueryDocument, str],
        variables: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        query = document.query if isinstance(document, QueryDocument) else document
        payload = {"query": query, "variables": variables or {}}
        headers = {"Content-Type": "application/json", **self.headers}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.post(self.endpoint, json=payload, headers=headers)
            except httpx.HTTPError as exc:
                raise GraphQLRequestError(f"GraphQL request failed: {exc}") from exc

        if resp.is_error:
            raise GraphQLRequestError(
                f"GraphQL request failed: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
            )

        try:
            result = resp.json()
        except ValueError as exc:
            raise GraphQLRequestError("GraphQL response is not valid JSON", status_code=resp.status_code) from exc

        errors = result.get("errors") if isinstance(result, dict) else None
        if errors:
            messages = ", ".join(str(err.get("message", err)) if isinstance(err, dict) else str(err) for err in errors)
            raise GraphQLRequestError(f"GraphQL errors: {messages}", status_code=resp.status_code)

        data = result.get("data") if isinstance(result, dict) else None
        if not data:
            raise GraphQLRequestError("GraphQL request returned no data", status_code=resp.status_code)

        logger.debug("GraphQL request to %s succeeded", self.endpoint)
        return data
