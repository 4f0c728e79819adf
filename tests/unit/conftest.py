"""Shared Neo4j driver and session doubles for unit tests."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from threadgraph.config import Neo4jStorageConfig


def make_result(
    single: dict[str, Any] | None = None,
    data: list[dict[str, Any]] | None = None,
) -> AsyncMock:
    """Mock Neo4j async result."""
    result = AsyncMock()
    result.single = AsyncMock(return_value=single)
    result.data = AsyncMock(return_value=data or [])
    result.consume = AsyncMock()
    return result


@pytest.fixture
def mock_session():
    """Mock Neo4j async session."""
    session = AsyncMock()
    session.run = AsyncMock(return_value=make_result())
    return session


@pytest.fixture
def session_context(mock_session):
    """Async context manager returned by ``driver.session()``."""
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=mock_session)
    context.__aexit__ = AsyncMock(return_value=None)
    return context


@pytest.fixture
def mock_driver(session_context):
    """Mock Neo4j async driver."""
    driver = MagicMock()
    driver.session.return_value = session_context
    driver.close = AsyncMock()
    return driver


@pytest.fixture
def storage_config():
    return Neo4jStorageConfig(
        uri="bolt://localhost:7687",
        username="neo4j",
        password="password",
    )
