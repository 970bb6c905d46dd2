"""
Unit tests for the tool catalog and direct tool execution endpoints.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from sqlstudio.api.main import app, app_state
from sqlstudio.connectors.base import QueryResult
from sqlstudio.database.registry import ConnectionRegistry
from sqlstudio.models.database import DatabaseConnection
from sqlstudio.tools.registry import ToolCatalog


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def registry(mock_connector):
    app_state["connections"] = ConnectionRegistry(
        [
            DatabaseConnection(
                connection_id="shop",
                name="Shop",
                database_url="postgresql://u:p@localhost:5432/shop",
                database_type="postgresql",
                default_schema="public",
            )
        ],
        connector_factory=MagicMock(return_value=mock_connector),
    )
    yield app_state["connections"]
    app_state["connections"] = None


class TestListTools:
    """GET /api/v1/tools"""

    def test_lists_builtin_tools(self, client):
        response = client.get("/api/v1/tools")

        assert response.status_code == 200
        tools = {tool["name"]: tool for tool in response.json()}
        assert {"get_table_schema", "execute_sql_query", "select_data", "get_enums", "generate_bar_graph"} <= set(tools)
        sql_tool = tools["execute_sql_query"]
        assert sql_tool["category"] == "query"
        assert sql_tool["enabled"] is True
        assert sql_tool["parameters_schema"]["required"] == ["query"]

    def test_disabled_tool_listed_as_disabled(self, client, tmp_path):
        policy = tmp_path / "policy.yaml"
        policy.write_text("tools:\n  get_enums:\n    enabled: false\n", encoding="utf-8")
        ToolCatalog.load_policy_config(policy)

        tools = {tool["name"]: tool for tool in client.get("/api/v1/tools").json()}

        assert tools["get_enums"]["enabled"] is False


class TestExecuteTool:
    """POST /api/v1/tools/execute"""

    def test_execute_success(self, client, registry, mock_connector):
        mock_connector.execute.return_value = QueryResult(
            rows=[{"x": 1}], row_count=1, columns=["x"], execution_time_ms=1.0
        )

        response = client.post(
            "/api/v1/tools/execute",
            json={"name": "execute_sql_query", "arguments": {"query": "SELECT 1 AS x"}, "connection_id": "shop"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["tool"] == "execute_sql_query"
        assert data["success"] is True
        assert data["result"]["rows"] == [{"x": 1}]

    def test_execute_error_payload(self, client, registry):
        response = client.post(
            "/api/v1/tools/execute",
            json={"name": "execute_sql_query", "arguments": {}, "connection_id": "shop"},
        )

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["result"] == {"error": "Missing required argument(s): query"}

    def test_schema_override(self, client, registry, mock_connector):
        client.post(
            "/api/v1/tools/execute",
            json={"name": "get_enums", "connection_id": "shop", "schema": "sales"},
        )

        mock_connector.get_enums.assert_awaited_once_with(schema_name="sales")

    def test_unknown_connection(self, client, registry):
        response = client.post(
            "/api/v1/tools/execute", json={"name": "get_enums", "connection_id": "nope"}
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Unknown connection: nope"

    def test_unknown_tool(self, client, registry):
        response = client.post(
            "/api/v1/tools/execute", json={"name": "drop_database", "connection_id": "shop"}
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Unknown tool: drop_database"

    def test_disabled_tool(self, client, registry, tmp_path):
        policy = tmp_path / "policy.yaml"
        policy.write_text("tools:\n  get_enums:\n    enabled: false\n", encoding="utf-8")
        ToolCatalog.load_policy_config(policy)

        response = client.post(
            "/api/v1/tools/execute", json={"name": "get_enums", "connection_id": "shop"}
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Tool is disabled: get_enums"

    def test_registry_not_initialized(self, client):
        app_state["connections"] = None
        response = client.post(
            "/api/v1/tools/execute", json={"name": "get_enums", "connection_id": "shop"}
        )
        assert response.status_code == 503
