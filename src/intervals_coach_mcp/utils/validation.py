"""
Argument validation for the MCP tools.

Each tool's parameters are declared as a pydantic model. Validation runs before any
request is made and reports every offending field together with the broken constraint.
"""

import re
import typing
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from intervals_coach_mcp.exceptions import ValidationError

WORKOUT_SYNTAX_DESCRIPTION = "intervals.icu workout syntax (Warmup, Main set, Cooldown with steps)"


def validate_date(date_str: str) -> str:
    """Validate date string format (YYYY-MM-DD) and return it if valid."""
    try:
        datetime.strptime(date_str, "%Y-%m-%d")
        return date_str
    except ValueError as exc:
        raise ValueError("Invalid date format. Please use YYYY-MM-DD.") from exc


def validate_time(time_str: str) -> str:
    """Validate a time of day (HH:MM, 24-hour clock) and return it if valid."""
    try:
        if not re.fullmatch(r"\d{2}:\d{2}", time_str):
            raise ValueError(time_str)
        datetime.strptime(time_str, "%H:%M")
        return time_str
    except ValueError as exc:
        raise ValueError("Invalid time format. Please use HH:MM (24-hour clock).") from exc


class ToolArguments(BaseModel):
    """Base for all tool argument models: strict JSON types, unknown keys ignored."""

    model_config = ConfigDict(strict=True, extra="ignore")


class NoArguments(ToolArguments):
    pass


class DateRangeArguments(ToolArguments):
    start_date: str = Field(description="Start date in ISO-8601 format (e.g., 2025-12-06)")
    end_date: str = Field(description="End date in ISO-8601 format (e.g., 2025-12-13)")

    @field_validator("start_date", "end_date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        return validate_date(value)


class WorkoutArguments(ToolArguments):
    date: str = Field(description="Date for the workout in ISO-8601 format (e.g., 2025-12-08)")
    sport: str = Field(description="Sport type: 'Ride', 'Run', 'Swim', etc.")
    name: str = Field(description="Short workout title (e.g., 'VO₂ 6×2', 'Threshold 4x7')")
    description: str = Field(
        description="Textual description of workout intent, purpose, and execution cues"
    )
    workout_syntax: str = Field(description=WORKOUT_SYNTAX_DESCRIPTION)
    time: str | None = Field(
        default=None, description="Time of day in HH:MM format (defaults to '00:00')"
    )

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        return validate_date(value)

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str | None) -> str | None:
        return validate_time(value) if value is not None else None


class EventArguments(ToolArguments):
    event_id: int = Field(description="The intervals.icu event ID")


class UpdateWorkoutArguments(WorkoutArguments, EventArguments):
    pass


_JSON_TYPES = {str: "string", int: "integer", float: "number", bool: "boolean"}


def describe_parameters(model: type[ToolArguments]) -> dict[str, dict[str, Any]]:
    """Map each parameter name to its JSON type, optionality and description."""
    parameters = {}
    for name, field in model.model_fields.items():
        annotation = field.annotation
        candidates = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        base = candidates[0] if candidates else annotation
        parameters[name] = {
            "type": _JSON_TYPES.get(base, "object"),
            "optional": not field.is_required(),
            "description": field.description or "",
        }
    return parameters


def _format_errors(exc: PydanticValidationError) -> str:
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())) or "arguments"
        problems.append(f"{field}: {error.get('msg')}")
    return "; ".join(problems)


def validate_arguments(model: type[ToolArguments], arguments: Any) -> ToolArguments:
    """Validate raw tool arguments against a model.

    Raises:
        ValidationError: naming each offending field and the constraint it broke
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise ValidationError("Invalid arguments: expected an object of named arguments")
    try:
        return model.model_validate(arguments)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid arguments: {_format_errors(exc)}") from exc
