"""
Unit tests for the MCP server wiring in intervals_coach_mcp.server.

The server is built around a fake API client, and the tools are driven through
FastMCP itself so the registered signatures and the error flag are exercised as an
MCP client would see them.
"""

import asyncio
import json
import logging

import pytest
from mcp.server.fastmcp.exceptions import ToolError
from mcp.types import CallToolResult

from intervals_coach_mcp import server
from intervals_coach_mcp.config import Config
from intervals_coach_mcp.server import configure_logging, create_server
from tests.conftest import CONFIG, FakeClient
from tests.sample_data import SPORT_SETTINGS


def _text(result):
    """The text of the only content block in a tool result."""
    assert isinstance(result, CallToolResult)
    assert len(result.content) == 1
    return result.content[0].text


def test_list_tools():
    """
    Test that all six tools are registered with their parameter schemas.
    """
    mcp = create_server(CONFIG, client=FakeClient())
    tools = {tool.name: tool for tool in asyncio.run(mcp.list_tools())}
    assert set(tools) == {
        "get_athlete_settings",
        "get_planned_workouts",
        "get_completed_activities",
        "create_workout",
        "update_workout",
        "delete_workout",
    }
    assert set(tools["create_workout"].inputSchema["required"]) == {
        "date",
        "sport",
        "name",
        "description",
        "workout_syntax",
    }
    assert "time" in tools["create_workout"].inputSchema["properties"]
    assert tools["delete_workout"].inputSchema["required"] == ["event_id"]
    assert "Args:" in tools["update_workout"].description


def test_call_get_athlete_settings():
    client = FakeClient(SPORT_SETTINGS)
    mcp = create_server(CONFIG, client=client)
    result = asyncio.run(mcp.call_tool("get_athlete_settings", {}))
    settings = json.loads(_text(result))
    assert settings[0]["power"]["ftp"] == 250
    assert client.calls[0]["endpoint"] == "/athlete/i1/sport-settings"


def test_call_delete_workout():
    client = FakeClient(1)
    mcp = create_server(CONFIG, client=client)
    result = asyncio.run(mcp.call_tool("delete_workout", {"event_id": 42}))
    assert json.loads(_text(result)) == {"event_id": 42, "deleted": True}


def test_missing_argument_raises_tool_error():
    client = FakeClient()
    mcp = create_server(CONFIG, client=client)
    with pytest.raises(ToolError):
        asyncio.run(mcp.call_tool("delete_workout", {}))
    assert client.calls == []


@pytest.mark.parametrize("event_id", ["42", 42.0, True])
def test_event_id_must_be_an_integer(event_id):
    """
    Test that a non-integer event_id is rejected before any delete is sent.
    """
    client = FakeClient(1)
    mcp = create_server(CONFIG, client=client)
    with pytest.raises(ToolError, match="event_id"):
        asyncio.run(mcp.call_tool("delete_workout", {"event_id": event_id}))
    assert client.calls == []


def test_failed_tool_returns_error_result():
    """
    Test that an error-flagged result reaches the MCP client with the dispatcher's text unchanged.
    """
    client = FakeClient(0)
    mcp = create_server(CONFIG, client=client)
    arguments = {
        "event_id": 42,
        "date": "2025-12-08",
        "sport": "Ride",
        "name": "Endurance",
        "description": "Easy aerobic ride",
        "workout_syntax": "- 60m 65%",
    }
    result = asyncio.run(mcp.call_tool("update_workout", arguments))
    assert isinstance(result, CallToolResult)
    assert result.isError is True
    assert _text(result) == (
        "Error: Failed to delete workout with event_id 42. "
        "The workout may not exist, so it was left unchanged."
    )
    assert len(client.calls) == 1


def test_malformed_upstream_value_returns_error_result():
    client = FakeClient([{"types": ["Ride"], "ftp": "250", "power_zones": [55, 75]}])
    mcp = create_server(CONFIG, client=client)
    result = asyncio.run(mcp.call_tool("get_athlete_settings", {}))
    assert result.isError is True
    assert _text(result).startswith("Error: Unexpected value in sport settings:")


def test_configure_logging_with_debug_log(tmp_path):
    debug_log = tmp_path / "debug.log"
    configure_logging(
        Config(api_key="test", athlete_id="i1", log_level="WARNING", debug_log=str(debug_log))
    )
    try:
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        levels = sorted(handler.level for handler in root.handlers)
        assert levels == [logging.DEBUG, logging.WARNING]
        logging.getLogger("intervals_coach_mcp.tests").debug("written to file")
        for handler in root.handlers:
            handler.flush()
        assert "written to file" in debug_log.read_text(encoding="utf-8")
    finally:
        for handler in logging.getLogger().handlers:
            handler.close()
        logging.basicConfig(level=logging.WARNING, force=True)


def test_main_exits_without_api_key(monkeypatch):
    """
    Test that the server refuses to start when INTERVALS_API_KEY is not set.
    """
    monkeypatch.delenv("INTERVALS_API_KEY", raising=False)
    monkeypatch.setenv("INTERVALS_ATHLETE_ID", "i1")
    monkeypatch.setattr("intervals_coach_mcp.config.load_dotenv", lambda: False)
    with pytest.raises(SystemExit) as exc_info:
        server.main()
    assert "INTERVALS_API_KEY environment variable is required" in str(exc_info.value.code)
