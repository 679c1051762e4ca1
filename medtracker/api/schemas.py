from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.constraints import ConstraintType
from ..models.medication import LogStatus, MedicationCategory, MedicationFrequency


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TimeWindowParams(StrictModel):
    notBefore: Optional[str] = None
    notAfter: Optional[str] = None


class DosageConstraintPayload(StrictModel):
    type: ConstraintType
    durationMinutes: Optional[int] = None
    maxCount: Optional[int] = None
    periodHours: Optional[int] = None
    maxAmount: Optional[float] = None
    unit: Optional[str] = None
    params: Optional[TimeWindowParams] = None
    description: str = ""


class MedicationPayload(StrictModel):
    name: str = Field(min_length=1)
    dosage: Optional[str] = None
    instructions: Optional[str] = None
    frequency: MedicationFrequency = MedicationFrequency.ONCE_DAILY
    category: MedicationCategory = MedicationCategory.PRESCRIPTION
    prescribed_by: Optional[str] = None
    purpose: Optional[str] = None
    notes: Optional[str] = None
    reminder_times: list[str] = Field(default_factory=list)
    dosage_constraints: list[DosageConstraintPayload] = Field(default_factory=list)


class MedicationUpdate(StrictModel):
    name: Optional[str] = Field(default=None, min_length=1)
    dosage: Optional[str] = None
    instructions: Optional[str] = None
    frequency: Optional[MedicationFrequency] = None
    category: Optional[MedicationCategory] = None
    prescribed_by: Optional[str] = None
    purpose: Optional[str] = None
    notes: Optional[str] = None
    reminder_times: Optional[list[str]] = None
    dosage_constraints: Optional[list[DosageConstraintPayload]] = None


class DoseLogPayload(StrictModel):
    status: LogStatus = LogStatus.TAKEN
    timestamp: Optional[datetime] = None
    notes: Optional[str] = None
    skip_reason: Optional[str] = None

    @model_validator(mode="after")
    def _skip_reason_only_when_skipped(self):
        if self.skip_reason and self.status != LogStatus.SKIPPED:
            raise ValueError("skip_reason is only valid for skipped doses")
        return self


def constraint_records(payloads: list[DosageConstraintPayload]) -> list[dict[str, Any]]:
    return [payload.model_dump() for payload in payloads]


def naive_local(value: Optional[datetime]) -> Optional[datetime]:
    """Dose times are wall-clock local; drop any offset the client sent."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)
