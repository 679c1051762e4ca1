from .base import Base
from .constraints import (
    ConstraintType,
    CustomConstraint,
    DosageConstraint,
    MaxCumulativeAmount,
    MaxPerPeriod,
    MinTimeBetween,
    TimeWindow,
    constraint_from_dict,
    constraint_to_dict,
    parse_constraints,
)
from .medication import LogStatus, Medication, MedicationCategory, MedicationFrequency, MedicationLog

__all__ = [
    "Base",
    "ConstraintType",
    "CustomConstraint",
    "DosageConstraint",
    "MaxCumulativeAmount",
    "MaxPerPeriod",
    "MinTimeBetween",
    "TimeWindow",
    "constraint_from_dict",
    "constraint_to_dict",
    "parse_constraints",
    "LogStatus",
    "Medication",
    "MedicationCategory",
    "MedicationFrequency",
    "MedicationLog",
]
