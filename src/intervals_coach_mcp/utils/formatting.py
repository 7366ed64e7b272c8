"""
Formatting utilities for the Intervals.icu coach MCP server

This module reshapes raw Intervals.icu API payloads into smaller JSON objects with
explicit units. Absent values are left out rather than emitted as nulls.
"""

import math
import re
from typing import Any, Callable, List

PACE_UNIT_METERS = {
    "SECS_100M": 100.0,
    "MINS_KM": 1000.0,
    "MINS_MI": 1609.34,
}

_ZONE_ID = re.compile(r"Z(\d+)")


class Section:
    """Context manager for conditionally adding objects to output.

    Only attaches itself to the parent if any field was actually written.
    Fields are only written if the value is not None. Fixed labels (units) are
    carried along but do not count as content.
    """

    def __init__(self,
                 data: dict[str, Any] | None = None,
                 parent: "Section | None" = None,
                 key: str | None = None,
                 labels: dict[str, Any] | None = None):
        self.data = self.process_data(data)
        self.parent = parent
        self.key = key
        self.fields: dict[str, Any] = dict(labels or {})
        self.written = False

    def process_data(self, data: dict[str, Any] | None):
        """Process data, make a copy without None values."""
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if v is not None}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None and self.parent is not None and self.written:
            self.parent.set(self.key, self.fields)

    def set(self, name: str, value: Any):
        """Write a field if value is not None."""
        if value is None:
            return
        self.fields[name] = value
        self.written = True

    def append(self,
               name: str,
               value_key: List[str] | str | None = None,
               value: Any = None,
               convert: Callable[[Any], Any] | None = None,
               truthy: bool = False):
        """Write `name` from the first present `value_key` in the data, or from `value`.

        With truthy=True, zero and empty values are skipped as well.
        """
        if value_key is None and value is None:
            value_key = name
        if isinstance(value_key, str):
            value_key = [value_key]
        if value is None and value_key is not None:
            for key in value_key:
                v = self.data.get(key)
                if v is not None:
                    value = v
                    break

        if value is None or (truthy and not value):
            return
        if convert is not None:
            value = convert(value)
        self.set(name, value)


def round_half_up(value: float, digits: int = 0) -> float | int:
    """Round like Math.round: halves go up, towards positive infinity."""
    factor = 10**digits
    rounded = math.floor(value * factor + 0.5) / factor
    return int(rounded) if digits == 0 else rounded


def _round1(value: float) -> float:
    return round_half_up(value, 1)


def _round2(value: float) -> float:
    return round_half_up(value, 2)


def _kilojoules(joules: float) -> int:
    return round_half_up(joules / 1000)


def convert_threshold_pace(threshold_pace_ms: float | None, pace_units: str | None) -> float | None:
    """Convert a threshold pace in meters/second to the athlete's pace unit.

    SECS_100M gives seconds per 100 m, MINS_KM minutes per km and MINS_MI minutes
    per mile. Unknown units, and a missing or zero pace, pass through unchanged.
    """
    if not threshold_pace_ms or not pace_units:
        return threshold_pace_ms
    meters = PACE_UNIT_METERS.get(pace_units)
    if meters is None:
        return threshold_pace_ms
    if pace_units == "SECS_100M":
        return meters / threshold_pace_ms
    return (meters / threshold_pace_ms) / 60


def power_zone_bounds(ftp: float, percentages: list[float]) -> list[dict[str, int]]:
    """Absolute watt ranges from zone boundaries given as % of FTP."""
    zones = []
    for index, percentage in enumerate(percentages):
        lower = 0 if index == 0 else round_half_up(percentages[index - 1] * ftp / 100)
        zones.append(
            {
                "zone": index + 1,
                "lower_bound": lower,
                "upper_bound": round_half_up(percentage * ftp / 100),
            }
        )
    return zones


def heart_rate_zone_bounds(boundaries: list[float]) -> list[dict[str, float]]:
    """Heart rate ranges from zone boundaries already given in bpm."""
    return [
        {
            "zone": index + 1,
            "lower_bound": 0 if index == 0 else boundaries[index - 1],
            "upper_bound": bpm,
        }
        for index, bpm in enumerate(boundaries)
    ]


def pace_zone_bounds(threshold_pace: float, percentages: list[float]) -> list[dict[str, float]]:
    """Pace ranges with zone 1 as the slowest band.

    lower_bound is the slower pace (bigger number), upper_bound the faster one.
    The fastest zone has no faster limit and reports 0.
    """
    reversed_zones = list(reversed(percentages))
    zones = []
    for index, percentage in enumerate(reversed_zones):
        slower_pace = _round2(percentage * threshold_pace / 100)
        if index == len(reversed_zones) - 1:
            faster_pace = 0
        else:
            faster_pace = _round2(reversed_zones[index + 1] * threshold_pace / 100)
        zones.append({"zone": index + 1, "lower_bound": slower_pace, "upper_bound": faster_pace})
    return zones


def power_zone_distribution(zone_times: list[Any]) -> list[dict[str, Any]]:
    """Time in each power zone, ignoring non-zone buckets such as sweet spot ("SS")."""
    distribution = []
    for entry in zone_times:
        if not isinstance(entry, dict):
            continue
        zone_id = entry.get("id")
        if not isinstance(zone_id, str) or not (match := _ZONE_ID.match(zone_id)):
            continue
        distribution.append({"zone": int(match.group(1)), "time_seconds": entry.get("secs") or 0})
    return distribution


def positional_zone_distribution(seconds: list[Any]) -> list[dict[str, Any]]:
    """Time in zone from a plain list where position i holds zone i + 1."""
    return [{"zone": index + 1, "time_seconds": secs} for index, secs in enumerate(seconds)]


def format_sport_settings(sport: dict[str, Any]) -> dict[str, Any]:
    """Format one sport-settings object with absolute zone ranges."""
    types = sport.get("types")
    main_section = Section(data=sport)
    main_section.set("sport", (types[0] if types else None) or sport.get("type"))
    if types is not None:
        main_section.set("activity_types", types)
    else:
        main_section.set("activity_types", [t for t in [sport.get("type")] if t is not None])

    ftp = sport.get("ftp")
    power_zones = sport.get("power_zones")
    if ftp and power_zones:
        with Section(parent=main_section, key="power", labels={"units": "watts"}) as power_section:
            power_section.set("ftp", ftp)
            power_section.set("zones", power_zone_bounds(ftp, power_zones))

    hr_zones = sport.get("hr_zones")
    if sport.get("lthr") and hr_zones:
        with Section(sport, main_section, "heart_rate", {"units": "bpm"}) as hr_section:
            hr_section.append("lthr")
            hr_section.append("max", "max_hr")
            hr_section.set("zones", heart_rate_zone_bounds(hr_zones))

    pace_zones = sport.get("pace_zones")
    pace_units = sport.get("pace_units")
    if sport.get("threshold_pace") and pace_zones and pace_units:
        threshold = convert_threshold_pace(sport["threshold_pace"], pace_units)
        with Section(parent=main_section, key="pace") as pace_section:
            pace_section.set("threshold_pace", threshold)
            pace_section.set("units", pace_units)
            pace_section.set("zones", pace_zone_bounds(threshold, pace_zones))

    return main_section.fields


def format_athlete_settings(sport_settings: list[Any]) -> list[dict[str, Any]]:
    """Format the sport-settings list of an athlete."""
    return [format_sport_settings(sport) for sport in sport_settings if isinstance(sport, dict)]


def format_planned_workout(event: dict[str, Any]) -> dict[str, Any]:
    """Format a calendar event and, when present, its parsed workout document."""
    main_section = Section(data=event)
    main_section.append("id")
    main_section.append("name")
    main_section.append("description")
    main_section.append("start_date", "start_date_local")
    main_section.append("category")

    doc = event.get("workout_doc")
    if isinstance(doc, dict):
        with Section(doc, main_section, "workout") as workout_section:
            workout_section.append("description")
            workout_section.append("duration_seconds", "duration")
            workout_section.append("distance_meters", "distance")
            workout_section.append("target_type", "target")  # POWER, HR, PACE, AUTO

            if doc.get("ftp"):
                with Section(doc, workout_section, "power", {"units": "watts"}) as power_section:
                    power_section.append("ftp")

            if doc.get("lthr"):
                with Section(doc, workout_section, "heart_rate", {"units": "bpm"}) as hr_section:
                    hr_section.append("lthr")

            if doc.get("threshold_pace") and doc.get("pace_units"):
                with Section(parent=workout_section, key="pace") as pace_section:
                    pace_section.set(
                        "threshold_pace",
                        convert_threshold_pace(doc["threshold_pace"], doc["pace_units"]),
                    )
                    pace_section.set("units", doc["pace_units"])

            workout_section.append("steps")

    return main_section.fields


def format_completed_activity(activity: dict[str, Any]) -> dict[str, Any]:
    """Format a completed activity with units, training load and zone distributions."""
    main_section = Section(data=activity)
    main_section.append("id")
    main_section.append("name")
    main_section.append("description")
    main_section.append("start_date", "start_date_local")
    main_section.append("type")

    with Section(activity, main_section, "duration") as duration_section:
        duration_section.append("moving_time_seconds", "moving_time")
        duration_section.append("elapsed_time_seconds", "elapsed_time")

    main_section.append("distance_meters", "distance", truthy=True)
    main_section.append("elevation_gain_meters", "elevation_gain", truthy=True)

    if activity.get("icu_average_watts") or activity.get("icu_weighted_avg_watts"):
        with Section(activity, main_section, "power", {"units": "watts"}) as power_section:
            power_section.append("average", "icu_average_watts", truthy=True)
            power_section.append("normalized", "icu_weighted_avg_watts", truthy=True)
            power_section.append("variability_index", "icu_variability_index", convert=_round2, truthy=True)
            power_section.append("efficiency_factor", "icu_efficiency_factor", convert=_round2, truthy=True)
            power_section.append("power_hr_ratio", "icu_power_hr", convert=_round2, truthy=True)
            power_section.append("intensity_percent", "icu_intensity", convert=round_half_up)
            power_section.append("ftp_at_time_of_activity", "icu_ftp", truthy=True)
            if balance := activity.get("avg_lr_balance"):
                power_section.set(
                    "left_right_balance",
                    {"left_percent": _round1(balance), "right_percent": _round1(100 - balance)},
                )

    if activity.get("average_heartrate") or activity.get("max_heartrate"):
        with Section(activity, main_section, "heart_rate", {"units": "bpm"}) as hr_section:
            hr_section.append("average", "average_heartrate", truthy=True)
            hr_section.append("max", "max_heartrate", truthy=True)

    if activity.get("average_cadence"):
        with Section(activity, main_section, "cadence", {"units": "rpm"}) as cadence_section:
            cadence_section.append("average", "average_cadence")

    with Section(activity, main_section, "training_load") as load_section:
        load_section.append("value", "icu_training_load")
        load_section.append("tss", truthy=True)  # power based
        load_section.append("trimp", truthy=True)  # heart rate based

    if activity.get("icu_joules"):
        with Section(activity, main_section, "work") as work_section:
            work_section.append("total_kilojoules", "icu_joules", convert=_kilojoules)
            work_section.append("kilojoules_above_ftp", "icu_joules_above_ftp", convert=_kilojoules, truthy=True)
            work_section.append(
                "max_wbal_depletion_kilojoules",
                "icu_max_wbal_depletion",
                convert=lambda joules: _round1(joules / 1000),
                truthy=True,
            )

    main_section.append("calories", truthy=True)
    main_section.append("carbs_used_grams", "carbs_used", truthy=True)
    main_section.append("workout_compliance_percent", "compliance", convert=_round1)
    main_section.append("aerobic_decoupling_percent", "decoupling", convert=_round1)
    main_section.append("polarization_index", convert=_round2)

    if zone_times := activity.get("icu_zone_times"):
        main_section.set("power_zone_distribution", power_zone_distribution(zone_times))
    if hr_zone_times := activity.get("icu_hr_zone_times"):
        main_section.set("heart_rate_zone_distribution", positional_zone_distribution(hr_zone_times))
    if pace_zone_times := activity.get("pace_zone_times"):
        main_section.set("pace_zone_distribution", positional_zone_distribution(pace_zone_times))

    return main_section.fields
