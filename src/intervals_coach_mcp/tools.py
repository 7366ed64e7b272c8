"""
Tool catalog and dispatcher for the Intervals.icu coach MCP server.

The dispatcher validates arguments, performs the upstream call(s) through the API
client, formats the response and returns it as JSON text. Every IntervalsError
raised on the way is turned into an error-flagged ToolResult, so a failing tool
never takes the server down.

Tools provided:
    - get_athlete_settings
    - get_planned_workouts
    - get_completed_activities
    - create_workout
    - update_workout
    - delete_workout
"""

import json
import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Protocol

from intervals_coach_mcp.config import Config
from intervals_coach_mcp.exceptions import (
    IntervalsError,
    MalformedResponseError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
)
from intervals_coach_mcp.utils.formatting import (
    format_athlete_settings,
    format_completed_activity,
    format_planned_workout,
)
from intervals_coach_mcp.utils.validation import (
    DateRangeArguments,
    EventArguments,
    NoArguments,
    ToolArguments,
    UpdateWorkoutArguments,
    WorkoutArguments,
    describe_parameters,
    validate_arguments,
)

logger = logging.getLogger(__name__)

# Bulk event endpoints address the athlete that owns the API key as "0"
KEY_OWNER = "0"

# Field names the bulk-delete count has been reported under
DELETED_COUNT_FIELDS = ("eventsDeleted", "deleted", "count", "deletedCount")

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class ApiClient(Protocol):
    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any: ...


@dataclass(frozen=True)
class ToolDefinition:
    """A tool exposed over MCP: its name, description and argument model."""

    name: str
    description: str
    arguments: type[ToolArguments]

    @property
    def parameters(self) -> dict[str, dict[str, Any]]:
        """Parameter name -> {type, optional, description}."""
        return describe_parameters(self.arguments)

    def help_text(self) -> str:
        """The description followed by an Args section, as shown to the model."""
        lines = [self.description]
        if parameters := self.parameters:
            lines += ["", "Args:"]
            for name, param in parameters.items():
                optional = " (optional)" if param["optional"] else ""
                lines.append(f"    {name}: {param['description']}{optional}")
        return "\n".join(lines)


TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="get_athlete_settings",
        description=(
            "Retrieve athlete's sport settings including FTP, threshold HR, threshold pace, "
            "and zones for all configured sports (Ride, Run, Swim, etc.)"
        ),
        arguments=NoArguments,
    ),
    ToolDefinition(
        name="get_planned_workouts",
        description=(
            "List scheduled workouts/events from the calendar within a date range. Returns "
            "workout details including parsed workout structure with steps and targets."
        ),
        arguments=DateRangeArguments,
    ),
    ToolDefinition(
        name="get_completed_activities",
        description=(
            "List completed activities within a date range with summary metrics including "
            "power, heart rate, training load, and zone distribution."
        ),
        arguments=DateRangeArguments,
    ),
    ToolDefinition(
        name="create_workout",
        description=(
            "Create a new scheduled workout on the calendar. Provide both a textual description "
            "of the workout's purpose and the intervals.icu workout syntax."
        ),
        arguments=WorkoutArguments,
    ),
    ToolDefinition(
        name="update_workout",
        description=(
            "Update an existing scheduled workout by replacing it with a new one. Deletes the "
            "old workout and creates a new one with the provided details. If the new workout "
            "cannot be created after the delete, the original workout is lost."
        ),
        arguments=UpdateWorkoutArguments,
    ),
    ToolDefinition(
        name="delete_workout",
        description="Delete a scheduled workout from the calendar.",
        arguments=EventArguments,
    ),
)

TOOLS_BY_NAME = MappingProxyType({definition.name: definition for definition in TOOL_DEFINITIONS})


@dataclass(frozen=True)
class ToolResult:
    """Text returned to the MCP caller; is_error tells success and failure apart."""

    text: str
    is_error: bool = False


def _leading_int(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def decode_deleted_count(response: Any) -> int | float:
    """Read the number of deleted events out of a bulk-delete response.

    The API normally answers with a bare integer, but a numeric string or an
    object carrying the count under one of DELETED_COUNT_FIELDS is accepted too.
    Any other shape counts as nothing deleted.
    """
    if isinstance(response, bool):
        count = 0
    elif isinstance(response, (int, float)):
        count = response
    elif isinstance(response, str):
        count = _leading_int(response)
    elif isinstance(response, dict):
        value = next(
            (response[key] for key in DELETED_COUNT_FIELDS if response.get(key) is not None), 0
        )
        if isinstance(value, (int, float)):
            count = int(value) if isinstance(value, bool) else value
        elif isinstance(value, str):
            count = _leading_int(value)
        else:
            count = 0
    else:
        count = 0

    logger.debug("Decoded bulk-delete response %r as %s deleted", response, count)
    return count


def build_workout_event(args: WorkoutArguments) -> dict[str, Any]:
    """The event object posted to the bulk upsert endpoint."""
    time = args.time or "00:00"
    return {
        "category": "WORKOUT",
        "start_date_local": f"{args.date}T{time}:00",
        "type": args.sport,
        "name": args.name,
        "description": f"{args.description}\n\n{args.workout_syntax}",
    }


def _expect_list(result: Any, what: str) -> list[Any]:
    if not isinstance(result, list):
        raise MalformedResponseError(
            f"Expected a list of {what}, got {type(result).__name__}",
            raw_text=json.dumps(result),
        )
    return result


def _format_list(result: Any, what: str, formatter: Callable[[list[Any]], Any]) -> Any:
    """Format a list response, reporting values the formatter cannot handle as malformed."""
    items = _expect_list(result, what)
    try:
        return formatter(items)
    except (TypeError, ValueError, AttributeError, KeyError) as exc:
        raise MalformedResponseError(
            f"Unexpected value in {what}: {exc}", raw_text=json.dumps(items)
        ) from exc


def _format_each(formatter: Callable[[dict[str, Any]], Any]) -> Callable[[list[Any]], list[Any]]:
    return lambda items: [formatter(item) for item in items if isinstance(item, dict)]


class ToolDispatcher:
    """Runs tool calls against one configured athlete.

    Args:
        config: The server configuration; only athlete_id is read here
        client: Anything with an async request(endpoint, method, body, params)
    """

    def __init__(self, config: Config, client: ApiClient):
        self.config = config
        self.client = client
        self._handlers: dict[str, Callable[[Any], Awaitable[Any]]] = {
            "get_athlete_settings": self.get_athlete_settings,
            "get_planned_workouts": self.get_planned_workouts,
            "get_completed_activities": self.get_completed_activities,
            "create_workout": self.create_workout,
            "update_workout": self.update_workout,
            "delete_workout": self.delete_workout,
        }

    async def dispatch(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        """Validate, execute and format one tool call."""
        logger.info("Tool called: %s", name)
        logger.debug("Tool arguments for %s: %s", name, arguments)
        try:
            definition = TOOLS_BY_NAME.get(name)
            if definition is None:
                raise ValidationError(f"Unknown tool: {name}")
            args = validate_arguments(definition.arguments, arguments)
            payload = await self._handlers[name](args)
        except IntervalsError as exc:
            logger.error("Error executing tool %s: %s", name, exc)
            return ToolResult(f"Error: {exc}", is_error=True)
        return ToolResult(json.dumps(payload, indent=2, ensure_ascii=False))

    # ----- Tool Implementations ----- #

    async def get_athlete_settings(self, _args: NoArguments) -> list[dict[str, Any]]:
        result = await self.client.request(f"/athlete/{self.config.athlete_id}/sport-settings")
        return _format_list(result, "sport settings", format_athlete_settings)

    async def get_planned_workouts(self, args: DateRangeArguments) -> list[dict[str, Any]]:
        params = {
            "category": "WORKOUT",
            "oldest": args.start_date,
            "newest": args.end_date,
            "resolve": "true",
        }
        result = await self.client.request(
            f"/athlete/{self.config.athlete_id}/events", params=params
        )
        return _format_list(result, "events", _format_each(format_planned_workout))

    async def get_completed_activities(self, args: DateRangeArguments) -> list[dict[str, Any]]:
        params = {"oldest": args.start_date, "newest": args.end_date}
        result = await self.client.request(
            f"/athlete/{self.config.athlete_id}/activities", params=params
        )
        return _format_list(result, "activities", _format_each(format_completed_activity))

    async def _create_event(self, args: WorkoutArguments) -> Any:
        """Post one new workout event and return its id."""
        result = await self.client.request(
            f"/athlete/{KEY_OWNER}/events/bulk",
            method="POST",
            body=[build_workout_event(args)],
            params={"upsert": "true"},
        )
        if not isinstance(result, list) or not result or not isinstance(result[0], dict):
            raise MalformedResponseError(
                "Expected a list containing the created event", raw_text=json.dumps(result)
            )
        return result[0].get("id")

    async def _delete_event(self, event_id: int) -> int | float:
        """Bulk-delete one event and return how many events were deleted."""
        result = await self.client.request(
            f"/athlete/{KEY_OWNER}/events/bulk-delete",
            method="PUT",
            body=[{"id": event_id}],
        )
        return decode_deleted_count(result)

    async def create_workout(self, args: WorkoutArguments) -> dict[str, Any]:
        event_id = await self._create_event(args)
        return {
            "event_id": event_id,
            "date": args.date,
            "sport": args.sport,
            "name": args.name,
            "description": args.description,
            "created": True,
        }

    async def update_workout(self, args: UpdateWorkoutArguments) -> dict[str, Any]:
        """Replace a workout by deleting it and creating a new one.

        There is no atomic replace: if the create fails after the delete went
        through, the original workout is gone and PartialFailureError says so.
        """
        logger.info("update_workout: deleting event %s", args.event_id)
        deleted = await self._delete_event(args.event_id)
        if deleted < 1:
            raise NotFoundError(
                f"Failed to delete workout with event_id {args.event_id}. "
                "The workout may not exist, so it was left unchanged."
            )

        logger.info("update_workout: creating replacement for event %s", args.event_id)
        try:
            new_event_id = await self._create_event(args)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.critical(
                "update_workout: event %s was deleted but its replacement could not be created: %s",
                args.event_id,
                exc,
            )
            raise PartialFailureError(args.event_id, exc) from exc

        logger.info("update_workout: replaced event %s with %s", args.event_id, new_event_id)
        return {
            "old_event_id": args.event_id,
            "new_event_id": new_event_id,
            "date": args.date,
            "sport": args.sport,
            "name": args.name,
            "description": args.description,
            "updated": True,
        }

    async def delete_workout(self, args: EventArguments) -> dict[str, Any]:
        deleted = await self._delete_event(args.event_id)
        return {"event_id": args.event_id, "deleted": deleted >= 1}
