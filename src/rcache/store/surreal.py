"""
SurrealDB store over the HTTP API.

Uses the REST endpoints of a SurrealDB 2.x server:
- POST /signin for a root bearer token
- POST /sql for record statements, scoped with surreal-ns / surreal-db headers
- GET /health and GET /version

Record ids are built server side with type::thing($tb, $id); the table and
id travel as query-string variables, content is embedded as a JSON object
literal.
"""

from __future__ import annotations

from typing import Any

import httpx
import orjson

from rcache.exceptions import DatabaseError, StoreConnectionError
from rcache.logging import get_logger
from rcache.store.base import BackingStore, Record

logger = get_logger(__name__)

RECORD = "type::thing($tb, $id)"


class SurrealHTTPStore(BackingStore):
    """Client for a SurrealDB server reachable over HTTP(S)."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize SurrealDB store.

        Args:
            base_url: Server URL, e.g. http://localhost:8000.
            timeout: Transport timeout for every request.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._token: str | None = None

    async def connect(self) -> None:
        """Open the HTTP client and check the server is up."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Accept": "application/json"},
            timeout=self.timeout,
            transport=self._transport,
        )
        response = await self._client.get("/health")
        if response.status_code != 200:
            raise StoreConnectionError(
                "SurrealDB health check failed",
                {"url": self.base_url, "status_code": response.status_code},
            )
        logger.debug("Connected to SurrealDB", url=self.base_url)

    async def signin(self, user: str, password: str) -> None:
        """Sign in as a root user and keep the returned token."""
        response = await self._http().post(
            "/signin", content=orjson.dumps({"user": user, "pass": password})
        )
        if response.status_code != 200:
            raise StoreConnectionError(
                "SurrealDB sign-in failed",
                {"url": self.base_url, "status_code": response.status_code},
            )
        self._token = response.json().get("token")

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        self._token = None

    async def version(self) -> str:
        response = await self._http().get("/version")
        response.raise_for_status()
        return response.text.strip()

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("SurrealHTTPStore not connected. Call connect() first.")
        return self._client

    def _headers(self) -> dict[str, str]:
        namespace, database = self.scope
        headers = {"surreal-ns": namespace, "surreal-db": database}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def query(self, sql: str, variables: dict[str, str]) -> Any:
        """Run one statement and return its result.

        Raises:
            DatabaseError: On transport failure, HTTP error or a statement
                reported with status ERR.
        """
        context = {"table": variables.get("tb"), "record_id": variables.get("id")}
        try:
            response = await self._http().post(
                "/sql",
                content=sql.encode("utf-8"),
                params=variables,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise DatabaseError(f"SurrealDB request failed: {e}", context) from e

        if response.status_code != 200:
            raise DatabaseError(
                f"SurrealDB returned HTTP {response.status_code}: {response.text[:200]}",
                context,
            )

        try:
            statements = orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise DatabaseError("SurrealDB returned invalid JSON", context) from e

        if not statements:
            raise DatabaseError("SurrealDB returned no statement results", context)

        result = statements[-1]
        if result.get("status") != "OK":
            raise DatabaseError(f"SurrealDB statement failed: {result.get('result')}", context)
        return result.get("result")

    @staticmethod
    def _first(result: Any) -> Record | None:
        """First record of a statement result, without its id field."""
        if isinstance(result, list):
            result = result[0] if result else None
        if not result:
            return None
        record = dict(result)
        record.pop("id", None)
        return record

    @staticmethod
    def _literal(content: Record) -> str:
        return orjson.dumps(content).decode("utf-8")

    async def select(self, table: str, ident: str) -> Record | None:
        result = await self.query(f"SELECT * FROM {RECORD};", {"tb": table, "id": ident})
        return self._first(result)

    async def create(self, table: str, ident: str, content: Record) -> Record:
        result = await self.query(
            f"CREATE {RECORD} CONTENT {self._literal(content)};",
            {"tb": table, "id": ident},
        )
        return self._first(result) or content

    async def upsert(self, table: str, ident: str, content: Record) -> Record | None:
        result = await self.query(
            f"UPSERT {RECORD} CONTENT {self._literal(content)} RETURN BEFORE;",
            {"tb": table, "id": ident},
        )
        return self._first(result)

    async def delete(self, table: str, ident: str) -> Record | None:
        result = await self.query(
            f"DELETE {RECORD} RETURN BEFORE;", {"tb": table, "id": ident}
        )
        return self._first(result)
