"""
Intervals.icu Coach MCP Server

This module implements a Model Context Protocol (MCP) server that lets an AI coach
work with an athlete's Intervals.icu calendar. It provides tools for reading sport
settings and training zones, listing planned and completed workouts, and
scheduling, replacing and deleting workouts.

Main Features:
    - Sport settings with absolute power, heart rate and pace zones
    - Planned workouts including their parsed workout structure
    - Completed activities with units, training load and zone distributions
    - Workout scheduling in the native intervals.icu workout syntax
    - Error-flagged tool results with user-friendly messages
    - Configuration through environment variables or a .env file

Usage:
    The server speaks MCP over stdio and is meant to be launched by Claude Desktop or
    another MCP-compatible client. INTERVALS_API_KEY and INTERVALS_ATHLETE_ID must be
    set; the server exits with status 1 before serving anything if they are not.

    To run the server:
        $ intervals-coach-mcp
        $ python -m intervals_coach_mcp

    MCP tools provided:
        - get_athlete_settings
        - get_planned_workouts
        - get_completed_activities
        - create_workout
        - update_workout
        - delete_workout
"""

import logging
import sys
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP  # pylint: disable=import-error
from mcp.types import CallToolResult, TextContent  # pylint: disable=import-error
from pydantic import StrictInt

from intervals_coach_mcp.api.client import IntervalsClient
from intervals_coach_mcp.config import Config, load_config
from intervals_coach_mcp.exceptions import ConfigurationError
from intervals_coach_mcp.tools import TOOLS_BY_NAME, ToolDispatcher

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("intervals_coach_mcp")


def configure_logging(config: Config) -> None:
    """Log to stderr, and append everything at DEBUG to the debug log file if one is set.

    stdout carries the MCP protocol, so nothing may be logged there.
    """
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(config.log_level)
    handlers: list[logging.Handler] = [stream_handler]
    root_level = config.log_level

    if config.debug_log:
        file_handler = logging.FileHandler(config.debug_log, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)
        root_level = logging.DEBUG

    logging.basicConfig(level=root_level, format=LOG_FORMAT, handlers=handlers, force=True)


def create_server(config: Config, client: IntervalsClient | None = None) -> FastMCP:
    """Create the MCP server with all tools bound to one configured athlete.

    Args:
        config: The server configuration
        client: Optional API client; a new IntervalsClient is created when omitted
    """
    if client is None:
        client = IntervalsClient(config)
    dispatcher = ToolDispatcher(config, client)

    @asynccontextmanager
    async def lifespan(_app: FastMCP):
        """
        Context manager to ensure the shared httpx client is closed when the server stops.

        Args:
            _app (FastMCP): The MCP server application instance.
        """
        try:
            yield
        finally:
            await client.aclose()

    mcp = FastMCP("intervals-coach", lifespan=lifespan)

    def register(tool_name: str):
        return mcp.tool(name=tool_name, description=TOOLS_BY_NAME[tool_name].help_text())

    async def run_tool(tool_name: str, arguments: dict) -> CallToolResult:
        # FastMCP passes a CallToolResult through unchanged
        result = await dispatcher.dispatch(tool_name, arguments)
        return CallToolResult(
            content=[TextContent(type="text", text=result.text)],
            isError=result.is_error,
        )

    @register("get_athlete_settings")
    async def get_athlete_settings() -> CallToolResult:
        return await run_tool("get_athlete_settings", {})

    @register("get_planned_workouts")
    async def get_planned_workouts(start_date: str, end_date: str) -> CallToolResult:
        return await run_tool(
            "get_planned_workouts", {"start_date": start_date, "end_date": end_date}
        )

    @register("get_completed_activities")
    async def get_completed_activities(start_date: str, end_date: str) -> CallToolResult:
        return await run_tool(
            "get_completed_activities", {"start_date": start_date, "end_date": end_date}
        )

    @register("create_workout")
    async def create_workout(  # pylint: disable=too-many-arguments,too-many-positional-arguments
        date: str,
        sport: str,
        name: str,
        description: str,
        workout_syntax: str,
        time: str | None = None,
    ) -> CallToolResult:
        return await run_tool(
            "create_workout",
            {
                "date": date,
                "sport": sport,
                "name": name,
                "description": description,
                "workout_syntax": workout_syntax,
                "time": time,
            },
        )

    @register("update_workout")
    async def update_workout(  # pylint: disable=too-many-arguments,too-many-positional-arguments
        event_id: StrictInt,
        date: str,
        sport: str,
        name: str,
        description: str,
        workout_syntax: str,
        time: str | None = None,
    ) -> CallToolResult:
        return await run_tool(
            "update_workout",
            {
                "event_id": event_id,
                "date": date,
                "sport": sport,
                "name": name,
                "description": description,
                "workout_syntax": workout_syntax,
                "time": time,
            },
        )

    @register("delete_workout")
    async def delete_workout(event_id: StrictInt) -> CallToolResult:
        return await run_tool("delete_workout", {"event_id": event_id})

    return mcp


def main() -> None:
    """Load configuration and serve MCP over stdio."""
    try:
        config = load_config()
    except ConfigurationError as exc:
        sys.exit(f"Error: {exc}")

    configure_logging(config)
    logger.info("Configuration loaded: %r", config)
    logger.info("intervals.icu coach MCP server running on stdio")
    create_server(config).run()


# Run the server
if __name__ == "__main__":
    main()
