from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable

from ..models.constraints import (
    CustomConstraint,
    DosageConstraint,
    MaxCumulativeAmount,
    MaxPerPeriod,
    MinTimeBetween,
    TimeWindow,
)
from ..models.medication import LogStatus, Medication, MedicationLog
from .time_utils import (
    describe_period,
    format_duration,
    minutes_since_midnight,
    parse_time_of_day,
    whole_minutes,
)


_AMOUNT_RE = re.compile(r"\d+(?:\.\d+)?")


@dataclass
class ConstraintViolation:
    constraint: DosageConstraint
    message: str
    time_until_allowed: timedelta | None = None

    @property
    def is_blocking(self) -> bool:
        return self.time_until_allowed is not None and self.time_until_allowed > timedelta(0)


def parse_dosage_amount(dosage: str | None) -> float | None:
    """Leading number of a free-text dosage such as "500mg" or "2.5 ml"."""
    if not dosage:
        return None
    match = _AMOUNT_RE.search(str(dosage))
    if not match:
        return None
    return float(match.group(0))


def _format_amount(amount: float) -> str:
    if float(amount).is_integer():
        return str(int(amount))
    return str(amount)


def _taken_logs(medication: Medication, logs: Iterable[MedicationLog]) -> list[MedicationLog]:
    taken = [
        log
        for log in logs
        if log.medication_id == medication.id and log.status == LogStatus.TAKEN
    ]
    taken.sort(key=lambda log: log.timestamp, reverse=True)
    return taken


def _evaluate_min_time_between(
    constraint: MinTimeBetween,
    medication: Medication,
    taken: list[MedicationLog],
    proposed_time: datetime,
) -> ConstraintViolation | None:
    if constraint.duration_minutes is None or not taken:
        return None
    last_taken = taken[0]
    minutes_since_last = whole_minutes(proposed_time - last_taken.timestamp)
    if minutes_since_last >= constraint.duration_minutes:
        return None
    remaining = constraint.duration_minutes - minutes_since_last
    return ConstraintViolation(
        constraint=constraint,
        message=f"Wait {format_duration(remaining)} before the next dose",
        time_until_allowed=timedelta(minutes=remaining),
    )


def _evaluate_max_per_period(
    constraint: MaxPerPeriod,
    medication: Medication,
    taken: list[MedicationLog],
    proposed_time: datetime,
) -> ConstraintViolation | None:
    if constraint.max_count is None or constraint.period_hours is None:
        return None
    if constraint.max_count < 1 or constraint.period_hours <= 0:
        return None
    period = timedelta(hours=constraint.period_hours)
    period_start = proposed_time - period
    in_window = [log for log in taken if log.timestamp > period_start]
    if len(in_window) < constraint.max_count:
        return None

    oldest = min(in_window, key=lambda log: log.timestamp)
    period_end = oldest.timestamp + period
    wait = max(period_end - proposed_time, timedelta(0))
    noun = "dose" if constraint.max_count == 1 else "doses"
    return ConstraintViolation(
        constraint=constraint,
        message=(
            f"Maximum {constraint.max_count} {noun} per "
            f"{describe_period(constraint.period_hours)} reached"
        ),
        time_until_allowed=wait,
    )


def _evaluate_max_cumulative_amount(
    constraint: MaxCumulativeAmount,
    medication: Medication,
    taken: list[MedicationLog],
    proposed_time: datetime,
) -> ConstraintViolation | None:
    if constraint.max_amount is None or constraint.period_hours is None:
        return None
    if constraint.max_amount <= 0 or constraint.period_hours <= 0:
        return None
    per_dose = parse_dosage_amount(medication.dosage)
    if per_dose is None:
        return None

    period_start = proposed_time - timedelta(hours=constraint.period_hours)
    count = sum(1 for log in taken if log.timestamp > period_start)
    total = count * per_dose
    if total < constraint.max_amount:
        return None
    return ConstraintViolation(
        constraint=constraint,
        message=(
            f"Maximum {_format_amount(constraint.max_amount)}{constraint.unit or ''} per "
            f"{describe_period(constraint.period_hours)} reached"
        ),
    )


def _evaluate_time_window(
    constraint: TimeWindow,
    medication: Medication,
    taken: list[MedicationLog],
    proposed_time: datetime,
) -> ConstraintViolation | None:
    now_minutes = minutes_since_midnight(proposed_time)

    not_before = parse_time_of_day(constraint.not_before)
    if not_before is not None and now_minutes < minutes_since_midnight(not_before):
        return ConstraintViolation(
            constraint=constraint,
            message=f"Not allowed before {constraint.not_before}",
        )

    not_after = parse_time_of_day(constraint.not_after)
    if not_after is not None and now_minutes >= minutes_since_midnight(not_after):
        return ConstraintViolation(
            constraint=constraint,
            message=f"Not allowed after {constraint.not_after}",
        )
    return None


def _evaluate_custom(
    constraint: CustomConstraint,
    medication: Medication,
    taken: list[MedicationLog],
    proposed_time: datetime,
) -> ConstraintViolation | None:
    return None


_EVALUATORS: dict[type, Callable[..., ConstraintViolation | None]] = {
    MinTimeBetween: _evaluate_min_time_between,
    MaxPerPeriod: _evaluate_max_per_period,
    MaxCumulativeAmount: _evaluate_max_cumulative_amount,
    TimeWindow: _evaluate_time_window,
    CustomConstraint: _evaluate_custom,
}


class DosageConstraintEngine:
    def evaluate(
        self,
        medication: Medication,
        logs: Iterable[MedicationLog],
        proposed_time: datetime,
    ) -> list[ConstraintViolation]:
        taken = _taken_logs(medication, logs)
        violations: list[ConstraintViolation] = []
        for constraint in medication.constraints:
            evaluator = _EVALUATORS.get(type(constraint))
            if evaluator is None:
                continue
            violation = evaluator(constraint, medication, taken, proposed_time)
            if violation is not None:
                violations.append(violation)
        return violations

    def can_take(
        self,
        medication: Medication,
        logs: Iterable[MedicationLog],
        at: datetime,
    ) -> bool:
        return not self.evaluate(medication, logs, at)

    def next_available_time(
        self,
        medication: Medication,
        logs: Iterable[MedicationLog],
        at: datetime,
    ) -> datetime | None:
        # None when only non-blocking violations (time window, cumulative amount) remain
        violations = self.evaluate(medication, logs, at)
        if not violations:
            return at
        waits = [v.time_until_allowed for v in violations if v.time_until_allowed is not None]
        if not waits:
            return None
        return at + max(waits)
