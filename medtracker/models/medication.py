import enum
from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, JSON, String, Text
from sqlalchemy.orm import mapped_column, relationship
from .base import Base, StringIdMixin, TimestampMixin
from .constraints import DosageConstraint, parse_constraints


class MedicationFrequency(str, enum.Enum):
    AS_NEEDED = "asNeeded"
    ONCE_DAILY = "onceDaily"
    TWICE_DAILY = "twiceDaily"
    THREE_TIMES_DAILY = "threeTimesDaily"
    FOUR_TIMES_DAILY = "fourTimesDaily"
    EVERY_OTHER_DAY = "everyOtherDay"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return _FREQUENCY_LABELS[self][0]

    @property
    def short_name(self) -> str:
        return _FREQUENCY_LABELS[self][1]


_FREQUENCY_LABELS = {
    MedicationFrequency.AS_NEEDED: ("As needed", "PRN"),
    MedicationFrequency.ONCE_DAILY: ("Once daily", "QD"),
    MedicationFrequency.TWICE_DAILY: ("Twice daily", "BID"),
    MedicationFrequency.THREE_TIMES_DAILY: ("3 times daily", "TID"),
    MedicationFrequency.FOUR_TIMES_DAILY: ("4 times daily", "QID"),
    MedicationFrequency.EVERY_OTHER_DAY: ("Every other day", "QOD"),
    MedicationFrequency.WEEKLY: ("Weekly", "Weekly"),
    MedicationFrequency.MONTHLY: ("Monthly", "Monthly"),
    MedicationFrequency.OTHER: ("Other", "Other"),
}


class MedicationCategory(str, enum.Enum):
    PRESCRIPTION = "prescription"
    OVER_THE_COUNTER = "overTheCounter"
    VITAMIN = "vitamin"
    SUPPLEMENT = "supplement"
    HERBAL = "herbal"
    OTHER = "other"


class LogStatus(str, enum.Enum):
    TAKEN = "taken"
    SKIPPED = "skipped"
    DELAYED = "delayed"


class Medication(Base, StringIdMixin, TimestampMixin):
    __tablename__ = "medications"

    name = mapped_column(String(128), nullable=False)
    dosage = mapped_column(String(64), nullable=True)
    instructions = mapped_column(Text, nullable=True)
    frequency = mapped_column(
        Enum(MedicationFrequency), default=MedicationFrequency.ONCE_DAILY, nullable=False
    )
    category = mapped_column(
        Enum(MedicationCategory), default=MedicationCategory.PRESCRIPTION, nullable=False
    )
    prescribed_by = mapped_column(String(128), nullable=True)
    purpose = mapped_column(String(256), nullable=True)
    notes = mapped_column(Text, nullable=True)
    is_active = mapped_column(Boolean, default=True, nullable=False)
    reminder_times = mapped_column(JSON, nullable=False, default=list)
    dosage_constraints = mapped_column(JSON, nullable=False, default=list)

    logs = relationship(
        "MedicationLog", back_populates="medication", cascade="all, delete-orphan"
    )

    @property
    def constraints(self) -> list[DosageConstraint]:
        return parse_constraints(self.dosage_constraints)

    @property
    def display_string(self) -> str:
        if self.dosage:
            return f"{self.name} {self.dosage}"
        return self.name

    @property
    def summary(self) -> str:
        parts = []
        if self.dosage:
            parts.append(self.dosage)
        frequency = MedicationFrequency(self.frequency or MedicationFrequency.ONCE_DAILY)
        parts.append(frequency.display_name)
        return " · ".join(parts)


class MedicationLog(Base, StringIdMixin, TimestampMixin):
    __tablename__ = "medication_logs"

    medication_id = mapped_column(ForeignKey("medications.id"), nullable=False, index=True)
    medication_name = mapped_column(String(200), nullable=False)
    timestamp = mapped_column(DateTime, nullable=False, index=True)
    status = mapped_column(Enum(LogStatus), default=LogStatus.TAKEN, nullable=False)
    notes = mapped_column(Text, nullable=True)
    skip_reason = mapped_column(Text, nullable=True)

    medication = relationship("Medication", back_populates="logs")
