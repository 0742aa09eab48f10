"""GraphQL data-layer client.

Leaf component: it knows nothing about users, billing or queues. Everything
else reaches the system of record through ``execute_query``.
"""

import logging
from typing import Any

import httpx

from conduit.errors.exceptions import ConfigurationError, QueryError

logger = logging.getLogger(__name__)

_ADMIN_SECRET_HEADER = "x-hasura-admin-secret"


class GraphQLClient:
    """Executes GraphQL operations against the data layer with admin credentials."""

    def __init__(
        self,
        endpoint: str,
        admin_secret: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        missing = [
            name
            for name, value in (("datalayer_endpoint", endpoint), ("datalayer_admin_secret", admin_secret))
            if not value
        ]
        if missing:
            raise ConfigurationError(missing)

        self._endpoint = endpoint
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={_ADMIN_SECRET_HEADER: admin_secret, "Content-Type": "application/json"},
        )

    async def execute_query(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run one operation and return its ``data`` object.

        Raises:
            QueryError: transport failure, non-2xx status, or a GraphQL ``errors`` array.
        """
        try:
            resp = await self._client.post(self._endpoint, json={"query": query, "variables": variables or {}})
        except httpx.HTTPError as exc:
            raise QueryError(str(exc)) from exc

        if resp.status_code >= 400:
            raise QueryError(f"HTTP {resp.status_code}", details={"body": resp.text[:500]})

        try:
            body = resp.json()
        except ValueError as exc:
            raise QueryError("response is not JSON") from exc

        if body.get("errors"):
            messages = [err.get("message", "unknown error") for err in body["errors"]]
            raise QueryError("; ".join(messages), details={"errors": body["errors"]})

        return body.get("data") or {}

    async def ping(self) -> None:
        await self.execute_query("query Ping { __typename }")

    async def aclose(self) -> None:
        await self._client.aclose()
