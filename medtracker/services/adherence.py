from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from ..models.medication import LogStatus, MedicationFrequency, MedicationLog
from .time_utils import add_months, as_date


DOSES_PER_DAY = {
    MedicationFrequency.ONCE_DAILY: 1,
    MedicationFrequency.TWICE_DAILY: 2,
    MedicationFrequency.THREE_TIMES_DAILY: 3,
    MedicationFrequency.FOUR_TIMES_DAILY: 4,
}

# One dose per period; the period length is in days.
INTERVAL_DAYS = {
    MedicationFrequency.EVERY_OTHER_DAY: 2,
    MedicationFrequency.WEEKLY: 7,
}


@dataclass
class MedicationAdherenceSummary:
    start_date: date
    end_date: date
    total_expected: int
    total_taken: int
    total_skipped: int
    total_missed: int

    @property
    def adherence_rate(self) -> float | None:
        """Percentage of expected doses taken, or None when nothing was expected."""
        if self.total_expected == 0:
            return None
        return self.total_taken / self.total_expected * 100


def expected_doses(frequency: MedicationFrequency, start_date: date, end_date: date) -> int:
    if end_date < start_date:
        return 0
    frequency = MedicationFrequency(frequency)
    days = (end_date - start_date).days + 1

    if frequency in DOSES_PER_DAY:
        return days * DOSES_PER_DAY[frequency]
    if frequency in INTERVAL_DAYS:
        return (days - 1) // INTERVAL_DAYS[frequency] + 1
    if frequency == MedicationFrequency.MONTHLY:
        count = 0
        while add_months(start_date, count) <= end_date:
            count += 1
        return count
    return 0


class AdherenceCalculator:
    def summarize(
        self,
        frequency: MedicationFrequency,
        logs: Iterable[MedicationLog],
        start_date: date | datetime,
        end_date: date | datetime,
    ) -> MedicationAdherenceSummary:
        start = as_date(start_date)
        end = as_date(end_date)
        total_expected = expected_doses(frequency, start, end)

        taken = 0
        skipped = 0
        for log in logs:
            if not start <= log.timestamp.date() <= end:
                continue
            if log.status == LogStatus.TAKEN:
                taken += 1
            elif log.status == LogStatus.SKIPPED:
                skipped += 1

        return MedicationAdherenceSummary(
            start_date=start,
            end_date=end,
            total_expected=total_expected,
            total_taken=taken,
            total_skipped=skipped,
            total_missed=max(total_expected - taken - skipped, 0),
        )
