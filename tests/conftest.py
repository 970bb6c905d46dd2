"""
Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import logging
from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import pytest

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires live databases or provider keys)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (may require external services)"
    )
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly enabled."""
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(
        reason="Integration tests disabled (use --run-integration to enable)."
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """Capture logs at DEBUG for every test."""
    caplog.set_level(logging.DEBUG)
    yield


# ============================================================================
# Environment and Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """
    Fresh settings per test.

    Points file-based config at an empty temp dir so a developer's
    config/connections.yaml or .env never leaks into tests.
    """
    from sqlstudio.config import clear_settings_cache

    clear_settings_cache()
    monkeypatch.setenv("DATABASE_CONNECTIONS_FILE", str(tmp_path / "connections.yaml"))
    monkeypatch.setenv("TOOLS_POLICY_PATH", str(tmp_path / "tools.yaml"))
    monkeypatch.delenv("DATABASE_URL", raising=False)
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def restore_tool_catalog():
    """Undo tool registrations and policy changes made by a test."""
    import sqlstudio.tools.builtin  # noqa: F401
    from sqlstudio.tools.registry import ToolCatalog

    definitions = dict(ToolCatalog._definitions)
    handlers = dict(ToolCatalog._handlers)
    yield
    ToolCatalog._definitions.clear()
    ToolCatalog._definitions.update(definitions)
    ToolCatalog._handlers.clear()
    ToolCatalog._handlers.update(handlers)


# ============================================================================
# Provider Stubs
# ============================================================================


class ScriptedProvider:
    """
    Provider stub replaying one scripted delta list per call.

    Each script entry is a list of deltas, or an exception to raise
    instead of streaming. Calls beyond the script reuse the last entry.
    """

    provider_name = "stub"
    model = "stub-model"

    def __init__(self, *scripts):
        self.scripts = list(scripts)
        self.calls: list[dict] = []

    async def send(self, conversation, tools, options) -> AsyncIterator:
        index = min(len(self.calls), len(self.scripts) - 1)
        self.calls.append(
            {
                "conversation": [turn.model_copy(deep=True) for turn in conversation],
                "tools": list(tools),
                "options": options,
            }
        )
        script = self.scripts[index]
        if isinstance(script, Exception):
            raise script
        for delta in script:
            yield delta


@pytest.fixture
def scripted_provider():
    """Factory for ScriptedProvider instances."""
    return ScriptedProvider


# ============================================================================
# Mock Database Connectors
# ============================================================================


@pytest.fixture
def mock_connector():
    """
    Mock connector with the BaseConnector surface.

    Usage:
        def test_query(mock_connector):
            mock_connector.execute.return_value = QueryResult(...)
    """
    connector = AsyncMock()
    connector.is_connected = True
    connector.dialect = "postgresql"
    connector.quote_identifier = MagicMock(side_effect=lambda name: f'"{name}"')
    connector.connect = AsyncMock()
    connector.close = AsyncMock()
    connector.execute = AsyncMock()
    connector.get_schema = AsyncMock(return_value=[])
    connector.get_enums = AsyncMock(return_value=[])
    return connector


@pytest.fixture
def mock_connections(mock_connector):
    """ConnectionRegistry-like mock handing out mock_connector."""
    registry = MagicMock()
    registry.get_connector = AsyncMock(return_value=mock_connector)
    return registry
