from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Any

from sqlalchemy.orm import Session

from ..database import get_sessionmaker
from ..models.constraints import constraint_to_dict, parse_constraints
from ..models.medication import LogStatus, Medication, MedicationFrequency, MedicationLog
from .adherence import AdherenceCalculator, MedicationAdherenceSummary
from .dosage_constraints import ConstraintViolation, DosageConstraintEngine
from .overdue import OverdueDetector, OverdueMedication

logger = logging.getLogger(__name__)


MEDICATION_FIELDS = {
    "name",
    "dosage",
    "instructions",
    "frequency",
    "category",
    "prescribed_by",
    "purpose",
    "notes",
    "is_active",
    "reminder_times",
    "dosage_constraints",
}

LOG_FIELDS = {"timestamp", "status", "notes", "skip_reason"}


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


class MedicationStore:

    def __init__(self, db: Session | None = None):
        self._external_db = db
        self.constraint_engine = DosageConstraintEngine()
        self.adherence_calculator = AdherenceCalculator()
        self.overdue_detector = OverdueDetector()

    def _get_db(self) -> Session:
        if self._external_db is not None:
            return self._external_db
        SessionLocal = get_sessionmaker()
        return SessionLocal()

    def _release(self, db: Session) -> None:
        if self._external_db is None:
            db.close()

    # Medications

    def add_medication(self, medication: Medication) -> Medication:
        if medication.reminder_times is None:
            medication.reminder_times = []
        medication.dosage_constraints = self._normalize_constraints(medication.dosage_constraints)
        db = self._get_db()
        try:
            db.add(medication)
            db.commit()
            db.refresh(medication)
            logger.info("Added medication %s", medication.id)
            return medication
        finally:
            self._release(db)

    def update_medication(self, medication_id: str, **changes: Any) -> Medication:
        unknown = set(changes) - MEDICATION_FIELDS
        if unknown:
            raise ValueError(f"Unknown medication fields: {', '.join(sorted(unknown))}")
        db = self._get_db()
        try:
            medication = db.get(Medication, medication_id)
            if not medication:
                raise ValueError("Medication not found")
            if "dosage_constraints" in changes:
                changes["dosage_constraints"] = self._normalize_constraints(
                    changes["dosage_constraints"]
                )
            for field, value in changes.items():
                setattr(medication, field, value)
            db.commit()
            db.refresh(medication)
            return medication
        finally:
            self._release(db)

    def delete_medication(self, medication_id: str) -> None:
        db = self._get_db()
        try:
            medication = db.get(Medication, medication_id)
            if not medication:
                raise ValueError("Medication not found")
            deleted_logs = len(medication.logs)
            db.delete(medication)
            db.commit()
            logger.info("Deleted medication %s and %s logs", medication_id, deleted_logs)
        finally:
            self._release(db)

    def deactivate_medication(self, medication_id: str) -> Medication:
        return self.update_medication(medication_id, is_active=False)

    def reactivate_medication(self, medication_id: str) -> Medication:
        return self.update_medication(medication_id, is_active=True)

    def get_medication(self, medication_id: str) -> Medication | None:
        db = self._get_db()
        try:
            return db.get(Medication, medication_id)
        finally:
            self._release(db)

    def list_medications(self, active_only: bool = False) -> list[Medication]:
        db = self._get_db()
        try:
            query = db.query(Medication)
            if active_only:
                query = query.filter(Medication.is_active.is_(True))
            return list(query.order_by(Medication.name.asc()).all())
        finally:
            self._release(db)

    def active_medications(self) -> list[Medication]:
        return self.list_medications(active_only=True)

    # Logs

    def log_taken(
        self,
        medication_id: str,
        timestamp: datetime | None = None,
        notes: str | None = None,
    ) -> MedicationLog:
        timestamp = timestamp or datetime.now()
        medication = self._require_medication(medication_id)
        violations = self.check_constraints(medication_id, at=timestamp)
        if violations:
            logger.warning(
                "Dose of %s logged with %s constraint violation(s): %s",
                medication_id,
                len(violations),
                "; ".join(v.message for v in violations),
            )
        return self.add_log(
            MedicationLog(
                medication_id=medication.id,
                medication_name=medication.display_string,
                timestamp=timestamp,
                status=LogStatus.TAKEN,
                notes=notes,
            )
        )

    def log_skipped(
        self,
        medication_id: str,
        timestamp: datetime | None = None,
        skip_reason: str | None = None,
        notes: str | None = None,
    ) -> MedicationLog:
        medication = self._require_medication(medication_id)
        return self.add_log(
            MedicationLog(
                medication_id=medication.id,
                medication_name=medication.display_string,
                timestamp=timestamp or datetime.now(),
                status=LogStatus.SKIPPED,
                notes=notes,
                skip_reason=skip_reason,
            )
        )

    def add_log(self, log: MedicationLog) -> MedicationLog:
        db = self._get_db()
        try:
            db.add(log)
            db.commit()
            db.refresh(log)
            logger.info("Recorded %s dose for medication %s", LogStatus(log.status).value, log.medication_id)
            return log
        finally:
            self._release(db)

    def update_log(self, log_id: str, **changes: Any) -> MedicationLog:
        unknown = set(changes) - LOG_FIELDS
        if unknown:
            raise ValueError(f"Unknown log fields: {', '.join(sorted(unknown))}")
        db = self._get_db()
        try:
            log = db.get(MedicationLog, log_id)
            if not log:
                raise ValueError("Log not found")
            for field, value in changes.items():
                setattr(log, field, value)
            db.commit()
            db.refresh(log)
            return log
        finally:
            self._release(db)

    def delete_log(self, log_id: str) -> None:
        db = self._get_db()
        try:
            log = db.get(MedicationLog, log_id)
            if not log:
                raise ValueError("Log not found")
            db.delete(log)
            db.commit()
        finally:
            self._release(db)

    # Queries

    def logs_for_medication(self, medication_id: str) -> list[MedicationLog]:
        db = self._get_db()
        try:
            return list(
                db.query(MedicationLog)
                .filter(MedicationLog.medication_id == medication_id)
                .order_by(MedicationLog.timestamp.desc())
                .all()
            )
        finally:
            self._release(db)

    def logs_for_date_range(self, start_date: date, end_date: date) -> list[MedicationLog]:
        range_start, _ = _day_bounds(start_date)
        _, range_end = _day_bounds(end_date)
        db = self._get_db()
        try:
            return list(
                db.query(MedicationLog)
                .filter(
                    MedicationLog.timestamp >= range_start,
                    MedicationLog.timestamp < range_end,
                )
                .order_by(MedicationLog.timestamp.desc())
                .all()
            )
        finally:
            self._release(db)

    def logs_for_date(self, day: date) -> list[MedicationLog]:
        return self.logs_for_date_range(day, day)

    def was_taken_on(self, medication_id: str, day: date) -> bool:
        return any(
            log.medication_id == medication_id and log.status == LogStatus.TAKEN
            for log in self.logs_for_date(day)
        )

    def pending_medications(self, day: date | None = None) -> list[Medication]:
        """Active, scheduled medications with no log at all on ``day``."""
        day = day or date.today()
        logged_ids = {log.medication_id for log in self.logs_for_date(day)}
        return [
            medication
            for medication in self.active_medications()
            if medication.frequency != MedicationFrequency.AS_NEEDED
            and medication.id not in logged_ids
        ]

    def taken_count_on(self, day: date | None = None) -> int:
        day = day or date.today()
        return len(
            {log.medication_id for log in self.logs_for_date(day) if log.status == LogStatus.TAKEN}
        )

    # Engines

    def adherence_summary(
        self, medication_id: str, start_date: date, end_date: date
    ) -> MedicationAdherenceSummary:
        medication = self.get_medication(medication_id)
        if medication is None:
            return MedicationAdherenceSummary(
                start_date=start_date,
                end_date=end_date,
                total_expected=0,
                total_taken=0,
                total_skipped=0,
                total_missed=0,
            )
        return self.adherence_calculator.summarize(
            medication.frequency,
            self.logs_for_medication(medication_id),
            start_date,
            end_date,
        )

    def check_constraints(
        self, medication_id: str, at: datetime | None = None
    ) -> list[ConstraintViolation]:
        medication = self._require_medication(medication_id)
        return self.constraint_engine.evaluate(
            medication, self.logs_for_medication(medication_id), at or datetime.now()
        )

    def can_take_now(self, medication_id: str, at: datetime | None = None) -> bool:
        return not self.check_constraints(medication_id, at=at)

    def next_available_time(
        self, medication_id: str, at: datetime | None = None
    ) -> datetime | None:
        medication = self._require_medication(medication_id)
        return self.constraint_engine.next_available_time(
            medication, self.logs_for_medication(medication_id), at or datetime.now()
        )

    def overdue_medications(self, now: datetime | None = None) -> list[OverdueMedication]:
        now = now or datetime.now()
        todays_taken = [
            log for log in self.logs_for_date(now.date()) if log.status == LogStatus.TAKEN
        ]
        return self.overdue_detector.detect_overdue(self.active_medications(), todays_taken, now)

    def _require_medication(self, medication_id: str) -> Medication:
        medication = self.get_medication(medication_id)
        if medication is None:
            raise ValueError("Medication not found")
        return medication

    @staticmethod
    def _normalize_constraints(records) -> list[dict]:
        return [constraint_to_dict(constraint) for constraint in parse_constraints(records)]
