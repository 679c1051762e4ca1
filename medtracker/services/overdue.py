from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from ..config import get_settings
from ..models.medication import LogStatus, Medication, MedicationFrequency, MedicationLog
from .time_utils import minutes_since_midnight, parse_time_of_day


@dataclass
class OverdueMedication:
    medication: Medication
    scheduled_time: str
    overdue_minutes: int


class OverdueDetector:
    def __init__(self, grace_minutes: int | None = None):
        if grace_minutes is None:
            grace_minutes = get_settings().OVERDUE_GRACE_MINUTES
        self.grace_minutes = grace_minutes

    def detect_overdue(
        self,
        active_medications: Iterable[Medication],
        todays_taken_logs: Iterable[MedicationLog],
        current_time: datetime,
    ) -> list[OverdueMedication]:
        today = current_time.date()
        now_minutes = minutes_since_midnight(current_time)

        taken_minutes: dict[str, list[int]] = {}
        for log in todays_taken_logs:
            if log.status != LogStatus.TAKEN or log.timestamp.date() != today:
                continue
            taken_minutes.setdefault(log.medication_id, []).append(
                minutes_since_midnight(log.timestamp)
            )

        overdue: list[OverdueMedication] = []
        for medication in active_medications:
            if not medication.reminder_times:
                continue
            if medication.frequency == MedicationFrequency.AS_NEEDED:
                continue
            found = self._first_missed_reminder(
                medication, taken_minutes.get(medication.id, []), now_minutes
            )
            if found is not None:
                overdue.append(found)

        overdue.sort(key=lambda item: item.overdue_minutes, reverse=True)
        return overdue

    def _first_missed_reminder(
        self,
        medication: Medication,
        taken_minutes: list[int],
        now_minutes: int,
    ) -> OverdueMedication | None:
        for reminder in medication.reminder_times:
            reminder_time = parse_time_of_day(reminder)
            if reminder_time is None:
                continue
            reminder_minutes = minutes_since_midnight(reminder_time)
            if reminder_minutes >= now_minutes:
                continue
            grace_start = reminder_minutes - self.grace_minutes
            if any(minute >= grace_start for minute in taken_minutes):
                continue
            return OverdueMedication(
                medication=medication,
                scheduled_time=reminder,
                overdue_minutes=now_minutes - reminder_minutes,
            )
        return None
