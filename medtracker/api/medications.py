from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.medication import LogStatus, Medication, MedicationLog
from ..services.medication_store import MedicationStore
from .schemas import (
    DoseLogPayload,
    MedicationPayload,
    MedicationUpdate,
    constraint_records,
    naive_local,
)

router = APIRouter(tags=["medications"])


def _medication_out(med: Medication) -> dict:
    return {
        "id": med.id,
        "name": med.name,
        "dosage": med.dosage,
        "display_string": med.display_string,
        "summary": med.summary,
        "instructions": med.instructions,
        "frequency": med.frequency.value,
        "frequency_short": med.frequency.short_name,
        "category": med.category.value,
        "prescribed_by": med.prescribed_by,
        "purpose": med.purpose,
        "notes": med.notes,
        "is_active": med.is_active,
        "reminder_times": list(med.reminder_times or []),
        "dosage_constraints": list(med.dosage_constraints or []),
    }


def _log_out(log: MedicationLog) -> dict:
    return {
        "id": log.id,
        "medication_id": log.medication_id,
        "medication_name": log.medication_name,
        "timestamp": log.timestamp.isoformat(),
        "status": log.status.value,
        "notes": log.notes,
        "skip_reason": log.skip_reason,
    }


def _get_or_404(store: MedicationStore, med_id: str) -> Medication:
    med = store.get_medication(med_id)
    if not med:
        raise HTTPException(status_code=404, detail="Medication not found")
    return med


@router.post("/medications", status_code=201)
def create_medication(payload: MedicationPayload, db: Session = Depends(get_db)):
    data = payload.model_dump(exclude={"dosage_constraints"})
    med = Medication(**data, dosage_constraints=constraint_records(payload.dosage_constraints))
    saved = MedicationStore(db).add_medication(med)
    return _medication_out(saved)


@router.get("/medications")
def list_medications(active_only: bool = False, db: Session = Depends(get_db)):
    meds = MedicationStore(db).list_medications(active_only=active_only)
    return {"count": len(meds), "items": [_medication_out(med) for med in meds]}


@router.get("/medications/{med_id}")
def get_medication(med_id: str, db: Session = Depends(get_db)):
    return _medication_out(_get_or_404(MedicationStore(db), med_id))


@router.patch("/medications/{med_id}")
def update_medication(med_id: str, payload: MedicationUpdate, db: Session = Depends(get_db)):
    changes = payload.model_dump(exclude_unset=True, exclude={"dosage_constraints"})
    for required in ("name", "frequency", "category", "reminder_times"):
        if required in changes and changes[required] is None:
            raise HTTPException(status_code=422, detail=f"{required} cannot be null")
    if payload.dosage_constraints is not None:
        changes["dosage_constraints"] = constraint_records(payload.dosage_constraints)
    store = MedicationStore(db)
    _get_or_404(store, med_id)
    return _medication_out(store.update_medication(med_id, **changes))


@router.delete("/medications/{med_id}", status_code=204)
def delete_medication(med_id: str, db: Session = Depends(get_db)):
    store = MedicationStore(db)
    _get_or_404(store, med_id)
    store.delete_medication(med_id)
    return Response(status_code=204)


@router.post("/medications/{med_id}/deactivate")
def deactivate_medication(med_id: str, db: Session = Depends(get_db)):
    store = MedicationStore(db)
    _get_or_404(store, med_id)
    return _medication_out(store.deactivate_medication(med_id))


@router.post("/medications/{med_id}/reactivate")
def reactivate_medication(med_id: str, db: Session = Depends(get_db)):
    store = MedicationStore(db)
    _get_or_404(store, med_id)
    return _medication_out(store.reactivate_medication(med_id))


@router.post("/medications/{med_id}/logs", status_code=201)
def log_dose(med_id: str, payload: DoseLogPayload, db: Session = Depends(get_db)):
    store = MedicationStore(db)
    med = _get_or_404(store, med_id)
    timestamp = naive_local(payload.timestamp)

    if payload.status == LogStatus.TAKEN:
        log = store.log_taken(med_id, timestamp=timestamp, notes=payload.notes)
    elif payload.status == LogStatus.SKIPPED:
        log = store.log_skipped(
            med_id, timestamp=timestamp, skip_reason=payload.skip_reason, notes=payload.notes
        )
    else:
        log = store.add_log(
            MedicationLog(
                medication_id=med.id,
                medication_name=med.display_string,
                timestamp=timestamp or datetime.now(),
                status=payload.status,
                notes=payload.notes,
            )
        )
    return _log_out(log)


@router.get("/medications/{med_id}/logs")
def list_logs(med_id: str, db: Session = Depends(get_db)):
    store = MedicationStore(db)
    _get_or_404(store, med_id)
    logs = store.logs_for_medication(med_id)
    return {"count": len(logs), "items": [_log_out(log) for log in logs]}


@router.delete("/logs/{log_id}", status_code=204)
def delete_log(log_id: str, db: Session = Depends(get_db)):
    try:
        MedicationStore(db).delete_log(log_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return Response(status_code=204)


@router.get("/medications/{med_id}/constraints/check")
def check_constraints(
    med_id: str,
    at: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    store = MedicationStore(db)
    _get_or_404(store, med_id)
    at = naive_local(at) or datetime.now()
    violations = store.check_constraints(med_id, at=at)
    next_time = store.next_available_time(med_id, at=at)
    return {
        "medication_id": med_id,
        "at": at.isoformat(),
        "can_take": not violations,
        "next_available_time": next_time.isoformat() if next_time else None,
        "violations": [
            {
                "type": violation.constraint.type.value,
                "description": violation.constraint.description,
                "message": violation.message,
                "blocking": violation.is_blocking,
                "time_until_allowed_minutes": (
                    int(violation.time_until_allowed.total_seconds() // 60)
                    if violation.time_until_allowed is not None
                    else None
                ),
            }
            for violation in violations
        ],
    }


@router.get("/medications/{med_id}/adherence")
def adherence(
    med_id: str,
    start_date: date,
    end_date: date,
    db: Session = Depends(get_db),
):
    store = MedicationStore(db)
    _get_or_404(store, med_id)
    summary = store.adherence_summary(med_id, start_date, end_date)
    return {
        "medication_id": med_id,
        "start_date": summary.start_date.isoformat(),
        "end_date": summary.end_date.isoformat(),
        "total_expected": summary.total_expected,
        "total_taken": summary.total_taken,
        "total_skipped": summary.total_skipped,
        "total_missed": summary.total_missed,
        "adherence_rate": summary.adherence_rate,
    }


@router.get("/overdue")
def overdue(at: Optional[datetime] = None, db: Session = Depends(get_db)):
    items = MedicationStore(db).overdue_medications(now=naive_local(at))
    return {
        "count": len(items),
        "items": [
            {
                "medication_id": item.medication.id,
                "name": item.medication.display_string,
                "scheduled_time": item.scheduled_time,
                "overdue_minutes": item.overdue_minutes,
            }
            for item in items
        ],
    }


@router.get("/pending")
def pending(day: Optional[date] = None, db: Session = Depends(get_db)):
    store = MedicationStore(db)
    meds = store.pending_medications(day)
    return {
        "count": len(meds),
        "taken_count": store.taken_count_on(day),
        "items": [_medication_out(med) for med in meds],
    }
