from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Any, Iterable, Union


class ConstraintType(str, enum.Enum):
    MIN_TIME_BETWEEN = "minTimeBetween"
    MAX_PER_PERIOD = "maxPerPeriod"
    MAX_CUMULATIVE_AMOUNT = "maxCumulativeAmount"
    TIME_WINDOW = "timeWindow"
    CUSTOM = "custom"


@dataclass(frozen=True)
class MinTimeBetween:
    duration_minutes: int | None = None
    description: str = ""

    type = ConstraintType.MIN_TIME_BETWEEN


@dataclass(frozen=True)
class MaxPerPeriod:
    max_count: int | None = None
    period_hours: int | None = None
    description: str = ""

    type = ConstraintType.MAX_PER_PERIOD


@dataclass(frozen=True)
class MaxCumulativeAmount:
    max_amount: float | None = None
    unit: str | None = None
    period_hours: int | None = None
    description: str = ""

    type = ConstraintType.MAX_CUMULATIVE_AMOUNT


@dataclass(frozen=True)
class TimeWindow:
    not_before: str | None = None
    not_after: str | None = None
    description: str = ""

    type = ConstraintType.TIME_WINDOW


@dataclass(frozen=True)
class CustomConstraint:
    description: str = ""

    type = ConstraintType.CUSTOM


DosageConstraint = Union[MinTimeBetween, MaxPerPeriod, MaxCumulativeAmount, TimeWindow, CustomConstraint]


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(number)


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def constraint_from_dict(data: dict[str, Any]) -> DosageConstraint:
    if not isinstance(data, dict):
        return CustomConstraint()
    description = str(data.get("description") or "")
    try:
        constraint_type = ConstraintType(data.get("type"))
    except ValueError:
        constraint_type = ConstraintType.CUSTOM

    if constraint_type == ConstraintType.MIN_TIME_BETWEEN:
        return MinTimeBetween(
            duration_minutes=_as_int(data.get("durationMinutes")),
            description=description,
        )
    if constraint_type == ConstraintType.MAX_PER_PERIOD:
        return MaxPerPeriod(
            max_count=_as_int(data.get("maxCount")),
            period_hours=_as_int(data.get("periodHours")),
            description=description,
        )
    if constraint_type == ConstraintType.MAX_CUMULATIVE_AMOUNT:
        return MaxCumulativeAmount(
            max_amount=_as_float(data.get("maxAmount")),
            unit=_as_str(data.get("unit")),
            period_hours=_as_int(data.get("periodHours")),
            description=description,
        )
    if constraint_type == ConstraintType.TIME_WINDOW:
        params = data.get("params")
        if not isinstance(params, dict):
            params = {}
        return TimeWindow(
            not_before=_as_str(params.get("notBefore")),
            not_after=_as_str(params.get("notAfter")),
            description=description,
        )
    return CustomConstraint(description=description)


def constraint_to_dict(constraint: DosageConstraint) -> dict[str, Any]:
    data: dict[str, Any] = {
        "type": constraint.type.value,
        "durationMinutes": None,
        "maxCount": None,
        "periodHours": None,
        "maxAmount": None,
        "unit": None,
        "params": None,
        "description": constraint.description,
    }
    if isinstance(constraint, MinTimeBetween):
        data["durationMinutes"] = constraint.duration_minutes
    elif isinstance(constraint, MaxPerPeriod):
        data["maxCount"] = constraint.max_count
        data["periodHours"] = constraint.period_hours
    elif isinstance(constraint, MaxCumulativeAmount):
        data["maxAmount"] = constraint.max_amount
        data["unit"] = constraint.unit
        data["periodHours"] = constraint.period_hours
    elif isinstance(constraint, TimeWindow):
        params = {}
        if constraint.not_before:
            params["notBefore"] = constraint.not_before
        if constraint.not_after:
            params["notAfter"] = constraint.not_after
        data["params"] = params
    return data


def parse_constraints(records: Iterable[Any] | None) -> list[DosageConstraint]:
    constraints: list[DosageConstraint] = []
    for record in records or []:
        if isinstance(record, (MinTimeBetween, MaxPerPeriod, MaxCumulativeAmount, TimeWindow, CustomConstraint)):
            constraints.append(record)
        else:
            constraints.append(constraint_from_dict(record))
    return constraints
