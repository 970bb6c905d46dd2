"""
Unit tests for the sqlstudio CLI.

Commands run through click's CliRunner; the provider factory is patched so
`ask` streams scripted output.
"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner
from rich.console import Console

from sqlstudio.cli import cli
from sqlstudio.llm.factory import ProviderConfigurationError
from sqlstudio.llm.models import BlockStart, BlockStop, MessageStop, TextDelta


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Render rich tables wide enough that names are not wrapped."""
    monkeypatch.setattr("sqlstudio.cli.console", Console(width=200))


@pytest.fixture
def runner():
    return CliRunner()


class TestAsk:
    def test_streams_answer(self, runner, scripted_provider):
        provider = scripted_provider(
            [
                BlockStart(kind="text"),
                TextDelta(text="Hello "),
                TextDelta(text="there."),
                BlockStop(),
                MessageStop(reason="end_turn"),
            ]
        )
        with patch(
            "sqlstudio.agent.runner.LLMProviderFactory.create_provider", return_value=provider
        ) as create_provider:
            result = runner.invoke(cli, ["ask", "say hello", "-p", "anthropic", "-m", "claude-x"])

        assert result.exit_code == 0, result.output
        assert "Hello there." in result.output
        assert create_provider.call_args.args[0] == "anthropic"
        assert create_provider.call_args.kwargs["model"] == "claude-x"

    def test_error_exits_nonzero(self, runner):
        with patch(
            "sqlstudio.agent.runner.LLMProviderFactory.create_provider",
            side_effect=ProviderConfigurationError("AWS credentials required for Bedrock"),
        ):
            result = runner.invoke(cli, ["ask", "hi"])

        assert result.exit_code == 1
        assert "Error: AWS credentials required for Bedrock" in result.output

    def test_unknown_connection(self, runner, scripted_provider):
        with patch(
            "sqlstudio.agent.runner.LLMProviderFactory.create_provider",
            return_value=scripted_provider([MessageStop(reason="end_turn")]),
        ):
            result = runner.invoke(cli, ["ask", "hi", "-c", "missing"])

        assert result.exit_code == 1
        assert "Unknown connection: missing" in result.output


class TestListings:
    def test_tools(self, runner):
        result = runner.invoke(cli, ["tools"])

        assert result.exit_code == 0
        for name in ("get_table_schema", "execute_sql_query", "select_data", "get_enums", "generate_bar_graph"):
            assert name in result.output

    def test_connections_empty(self, runner):
        result = runner.invoke(cli, ["connections"])

        assert result.exit_code == 0
        assert "No connections configured." in result.output

    def test_connections_from_file(self, runner, tmp_path):
        (tmp_path / "connections.yaml").write_text(
            "connections:\n"
            "  - id: shop\n"
            "    name: Shop\n"
            "    url: postgresql://u:p@localhost:5432/shop\n"
            "    is_default: true\n",
            encoding="utf-8",
        )

        result = runner.invoke(cli, ["connections"])

        assert result.exit_code == 0
        assert "shop" in result.output
        assert "postgresql" in result.output
        assert "u:p@" not in result.output


class TestServe:
    def test_serve_uses_settings_defaults(self, runner):
        with patch("uvicorn.run") as run:
            result = runner.invoke(cli, ["serve", "--port", "9000"])

        assert result.exit_code == 0
        run.assert_called_once_with(
            "sqlstudio.api.main:app", host="0.0.0.0", port=9000, reload=False
        )


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "SQL Studio" in result.output
