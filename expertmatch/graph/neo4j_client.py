"""
Neo4j client module implementing Repository pattern.

Design follows:
- Repository Pattern: abstraction over the expert graph
- FakeClient for testing: in-memory fake with the same interface
- Connection pooling: one driver instance reused for every request
- Custom exceptions: Neo4jConnectionError/Neo4jQueryError, not builtins
- Async context manager for resource management

The engine only reads from the graph; every query runs in an auto-commit
session opened with READ access mode.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from neo4j import READ_ACCESS, AsyncGraphDatabase
from neo4j.exceptions import ClientError, ServiceUnavailable

from expertmatch.graph.exceptions import Neo4jConnectionError, Neo4jQueryError

if TYPE_CHECKING:
    from neo4j import AsyncDriver


@runtime_checkable
class Neo4jClientProtocol(Protocol):
    """Protocol defining the Neo4jClient interface."""

    async def connect(self) -> None:
        """Connect to Neo4j."""
        ...

    async def close(self) -> None:
        """Close connection."""
        ...

    async def query(
        self,
        cypher: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Execute read query."""
        ...


class Neo4jClient:
    """Neo4j client implementing Repository pattern.

    Usage:
        async with Neo4jClient(settings=settings) as client:
            rows = await client.query("MATCH (e:Expert) RETURN e.id AS id LIMIT 10")
    """

    def __init__(self, settings: Any) -> None:
        """Initialize client with Settings object.

        Args:
            settings: Settings object with neo4j_uri, neo4j_user,
                      neo4j_password, neo4j_database attributes

        Note:
            Driver is NOT created here - uses lazy initialization.
            Call connect() or use as async context manager.
        """
        self._uri = settings.neo4j_uri
        self._user = settings.neo4j_user
        self._password = settings.neo4j_password
        self._database = settings.neo4j_database
        self._driver: AsyncDriver | None = None

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def database(self) -> str:
        return self._database

    @property
    def is_connected(self) -> bool:
        return self._driver is not None

    async def connect(self) -> None:
        """Create driver and verify connectivity.

        Raises:
            Neo4jConnectionError: If connection fails.
        """
        try:
            self._driver = AsyncGraphDatabase.driver(
                self._uri,
                auth=(self._user, self._password),
            )
            await self._driver.verify_connectivity()
        except ServiceUnavailable as e:
            self._driver = None
            raise Neo4jConnectionError(
                f"Failed to connect to Neo4j at {self._uri}",
                cause=e,
            ) from e
        except Exception as e:
            self._driver = None
            raise Neo4jConnectionError(
                f"Unexpected error connecting to Neo4j: {e}",
                cause=e,
            ) from e

    async def close(self) -> None:
        """Close the driver connection. Safe to call when not connected."""
        if self._driver is not None:
            await self._driver.close()
            self._driver = None

    async def __aenter__(self) -> Neo4jClient:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    def _ensure_connected(self) -> AsyncDriver:
        if self._driver is None:
            raise Neo4jConnectionError(
                "Not connected to Neo4j. Call connect() first or use async context manager."
            )
        return self._driver

    async def query(
        self,
        cypher: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Execute a read query and return results.

        Args:
            cypher: Cypher query string
            parameters: Optional query parameters

        Returns:
            List of records as dictionaries

        Raises:
            Neo4jConnectionError: If not connected
            Neo4jQueryError: If query execution fails
        """
        driver = self._ensure_connected()

        try:
            async with driver.session(
                database=self._database,
                default_access_mode=READ_ACCESS,
            ) as session:
                result = await session.run(cypher, parameters or {})
                return await result.data()
        except ClientError as e:
            raise Neo4jQueryError(
                f"Query failed: {e}",
                query=cypher,
                cause=e,
            ) from e
        except Exception as e:
            raise Neo4jQueryError(
                f"Unexpected error executing query: {e}",
                query=cypher,
                cause=e,
            ) from e


QueryHandler = Callable[[str, dict[str, Any]], list[dict[str, Any]]]


class FakeNeo4jClient:
    """In-memory fake Neo4j client for testing.

    Responses are configured per query shape: ``on_query(fragment, rows)``
    answers any Cypher containing ``fragment``; ``set_query_results(rows)``
    answers everything else. Every call is recorded in ``queries``.

    Usage:
        fake = FakeNeo4jClient()
        fake.on_query("USES_TECHNOLOGY", [{"expert_id": "e1"}])
        async with fake:
            rows = await fake.query(cypher, {"technologies": ["Java"]})
    """

    def __init__(self, connected: bool = True) -> None:
        self._connected = connected
        self._query_results: list[dict[str, Any]] = []
        self._routes: list[tuple[str, list[dict[str, Any]] | QueryHandler]] = []
        self._error: Exception | None = None
        self.queries: list[tuple[str, dict[str, Any]]] = []

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        await asyncio.sleep(0)  # Yield to event loop for true async
        self._connected = True

    async def close(self) -> None:
        await asyncio.sleep(0)  # Yield to event loop for true async
        self._connected = False

    async def __aenter__(self) -> FakeNeo4jClient:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    async def query(
        self,
        cypher: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Return the configured rows for this query shape."""
        await asyncio.sleep(0)  # Yield to event loop for true async
        if not self._connected:
            raise Neo4jConnectionError("Fake client not connected")
        params = dict(parameters or {})
        self.queries.append((cypher, params))
        if self._error is not None:
            raise self._error

        for fragment, response in self._routes:
            if fragment in cypher:
                if callable(response):
                    return response(cypher, params)
                return [dict(row) for row in response]
        return [dict(row) for row in self._query_results]

    def set_query_results(self, results: list[dict[str, Any]]) -> None:
        """Configure rows returned for queries without a specific route."""
        self._query_results = results

    def on_query(
        self,
        fragment: str,
        response: list[dict[str, Any]] | QueryHandler,
    ) -> None:
        """Answer Cypher containing ``fragment`` with rows or a handler."""
        self._routes.append((fragment, response))

    def set_error(self, error: Exception | None) -> None:
        """Make every subsequent query raise ``error``."""
        self._error = error

    def clear(self) -> None:
        self._query_results = []
        self._routes.clear()
        self._error = None
        self.queries.clear()
