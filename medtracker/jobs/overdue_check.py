import logging
from datetime import datetime

from ..config import get_settings
from ..database import get_sessionmaker
from ..logging_config import configure_logging
from ..services.medication_store import MedicationStore

logger = logging.getLogger(__name__)


def overdue_reminder_check(now: datetime | None = None) -> int:
    logger.info("Starting overdue reminder check")
    SessionLocal = get_sessionmaker()
    db = SessionLocal()
    try:
        overdue = MedicationStore(db).overdue_medications(now=now)
    finally:
        db.close()
    for item in overdue:
        logger.info(
            "%s overdue by %s minutes (reminder %s)",
            item.medication.display_string,
            item.overdue_minutes,
            item.scheduled_time,
        )
    logger.info("Found %s overdue medications", len(overdue))
    return len(overdue)


if __name__ == "__main__":
    configure_logging(get_settings())
    overdue_reminder_check()
