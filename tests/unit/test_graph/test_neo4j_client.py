"""
Unit tests for Neo4jClient and FakeNeo4jClient.

Design follows:
- Repository pattern with duck typing
- FakeNeo4jClient for service unit tests
- Custom exceptions to avoid shadowing builtins
- Async context manager with lazy driver initialization
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def mock_settings() -> MagicMock:
    """Create mock settings for Neo4j configuration."""
    settings = MagicMock()
    settings.neo4j_uri = "bolt://localhost:7687"
    settings.neo4j_user = "neo4j"
    settings.neo4j_password = "testpassword"
    settings.neo4j_database = "neo4j"
    return settings


def _driver_returning(rows: list[dict]) -> tuple[MagicMock, MagicMock]:
    """Mock async driver whose session.run() yields ``rows``."""
    result = MagicMock()
    result.data = AsyncMock(return_value=rows)
    session = MagicMock()
    session.run = AsyncMock(return_value=result)
    driver = MagicMock()
    driver.verify_connectivity = AsyncMock()
    driver.close = AsyncMock()
    driver.session.return_value.__aenter__.return_value = session
    return driver, session


# =============================================================================
# Test: Neo4jClient Initialization
# =============================================================================


class TestNeo4jClientInitialization:
    """Tests for Neo4jClient initialization and configuration."""

    def test_client_stores_configuration(self, mock_settings: MagicMock) -> None:
        from expertmatch.graph.neo4j_client import Neo4jClient

        client = Neo4jClient(settings=mock_settings)

        assert client.uri == "bolt://localhost:7687"
        assert client.database == "neo4j"

    def test_client_lazy_driver_initialization(self, mock_settings: MagicMock) -> None:
        """Driver should not be created until connect() is called."""
        from expertmatch.graph.neo4j_client import Neo4jClient

        client = Neo4jClient(settings=mock_settings)

        assert client.is_connected is False


# =============================================================================
# Test: Neo4jClient Connection Management
# =============================================================================


class TestNeo4jClientConnection:
    """Tests for Neo4jClient connection lifecycle."""

    @pytest.mark.asyncio
    async def test_connect_creates_and_verifies_driver(self, mock_settings: MagicMock) -> None:
        from expertmatch.graph.neo4j_client import Neo4jClient

        with patch("expertmatch.graph.neo4j_client.AsyncGraphDatabase") as mock_async_db:
            driver, _ = _driver_returning([])
            mock_async_db.driver.return_value = driver

            client = Neo4jClient(settings=mock_settings)
            await client.connect()

            mock_async_db.driver.assert_called_once_with(
                "bolt://localhost:7687",
                auth=("neo4j", "testpassword"),
            )
            driver.verify_connectivity.assert_awaited_once()
            assert client.is_connected

    @pytest.mark.asyncio
    async def test_connect_failure_raises_connection_error(
        self, mock_settings: MagicMock
    ) -> None:
        from neo4j.exceptions import ServiceUnavailable

        from expertmatch.graph.exceptions import Neo4jConnectionError
        from expertmatch.graph.neo4j_client import Neo4jClient

        with patch("expertmatch.graph.neo4j_client.AsyncGraphDatabase") as mock_async_db:
            driver, _ = _driver_returning([])
            driver.verify_connectivity = AsyncMock(side_effect=ServiceUnavailable("down"))
            mock_async_db.driver.return_value = driver

            client = Neo4jClient(settings=mock_settings)
            with pytest.raises(Neo4jConnectionError) as exc_info:
                await client.connect()

        assert client.is_connected is False
        assert isinstance(exc_info.value.cause, ServiceUnavailable)

    @pytest.mark.asyncio
    async def test_context_manager_closes_driver(self, mock_settings: MagicMock) -> None:
        from expertmatch.graph.neo4j_client import Neo4jClient

        with patch("expertmatch.graph.neo4j_client.AsyncGraphDatabase") as mock_async_db:
            driver, _ = _driver_returning([])
            mock_async_db.driver.return_value = driver

            async with Neo4jClient(settings=mock_settings) as client:
                assert client.is_connected

        driver.close.assert_awaited_once()
        assert client.is_connected is False

    @pytest.mark.asyncio
    async def test_close_when_not_connected_is_safe(self, mock_settings: MagicMock) -> None:
        from expertmatch.graph.neo4j_client import Neo4jClient

        await Neo4jClient(settings=mock_settings).close()


# =============================================================================
# Test: Neo4jClient Queries
# =============================================================================


class TestNeo4jClientQuery:
    """Tests for read queries."""

    @pytest.mark.asyncio
    async def test_query_requires_connection(self, mock_settings: MagicMock) -> None:
        from expertmatch.graph.exceptions import Neo4jConnectionError
        from expertmatch.graph.neo4j_client import Neo4jClient

        client = Neo4jClient(settings=mock_settings)

        with pytest.raises(Neo4jConnectionError):
            await client.query("RETURN 1")

    @pytest.mark.asyncio
    async def test_query_runs_in_read_session(self, mock_settings: MagicMock) -> None:
        from neo4j import READ_ACCESS

        from expertmatch.graph.neo4j_client import Neo4jClient

        with patch("expertmatch.graph.neo4j_client.AsyncGraphDatabase") as mock_async_db:
            driver, session = _driver_returning([{"expert_id": "e1"}])
            mock_async_db.driver.return_value = driver
            client = Neo4jClient(settings=mock_settings)
            await client.connect()

            rows = await client.query("MATCH (e:Expert) RETURN e.id AS expert_id", {"x": 1})

        assert rows == [{"expert_id": "e1"}]
        driver.session.assert_called_once_with(
            database="neo4j",
            default_access_mode=READ_ACCESS,
        )
        session.run.assert_awaited_once_with(
            "MATCH (e:Expert) RETURN e.id AS expert_id", {"x": 1}
        )

    @pytest.mark.asyncio
    async def test_query_failure_raises_query_error(self, mock_settings: MagicMock) -> None:
        from expertmatch.graph.exceptions import Neo4jQueryError
        from expertmatch.graph.neo4j_client import Neo4jClient

        with patch("expertmatch.graph.neo4j_client.AsyncGraphDatabase") as mock_async_db:
            driver, session = _driver_returning([])
            session.run = AsyncMock(side_effect=RuntimeError("syntax"))
            mock_async_db.driver.return_value = driver
            client = Neo4jClient(settings=mock_settings)
            await client.connect()

            with pytest.raises(Neo4jQueryError) as exc_info:
                await client.query("MATCH broken")

        assert exc_info.value.query == "MATCH broken"


# =============================================================================
# Test: FakeNeo4jClient
# =============================================================================


class TestFakeNeo4jClient:
    """Tests for the in-memory fake."""

    @pytest.mark.asyncio
    async def test_routes_by_fragment(self) -> None:
        from expertmatch.graph.neo4j_client import FakeNeo4jClient

        fake = FakeNeo4jClient()
        fake.on_query("USES_TECHNOLOGY", [{"expert_id": "e1"}])
        fake.set_query_results([{"expert_id": "other"}])

        assert await fake.query("MATCH ()-[:USES_TECHNOLOGY]->()") == [{"expert_id": "e1"}]
        assert await fake.query("MATCH (n)") == [{"expert_id": "other"}]
        assert len(fake.queries) == 2

    @pytest.mark.asyncio
    async def test_handler_receives_parameters(self) -> None:
        from expertmatch.graph.neo4j_client import FakeNeo4jClient

        fake = FakeNeo4jClient()
        fake.on_query("Expert", lambda cypher, params: [{"expert_id": params["id"]}])

        assert await fake.query("MATCH (e:Expert)", {"id": "e7"}) == [{"expert_id": "e7"}]

    @pytest.mark.asyncio
    async def test_disconnected_fake_raises(self) -> None:
        from expertmatch.graph.exceptions import Neo4jConnectionError
        from expertmatch.graph.neo4j_client import FakeNeo4jClient

        fake = FakeNeo4jClient(connected=False)

        with pytest.raises(Neo4jConnectionError):
            await fake.query("RETURN 1")

    def test_fake_satisfies_protocol(self) -> None:
        from expertmatch.graph.neo4j_client import FakeNeo4jClient, Neo4jClientProtocol

        assert isinstance(FakeNeo4jClient(), Neo4jClientProtocol)
