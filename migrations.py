"""
Start-up schema maintenance.
Creates missing tables, then folds the legacy `renewal_payment` column
(older databases kept the renewal date beside a monthly row) into the
canonical month = 0 slot. Safe to run on every start.
"""
import datetime
import logging
from sqlalchemy import inspect, text
from sqlalchemy.orm import Session

from database import Base, engine
from models.masters import GradeMaster, ClassMaster  # noqa: F401  (register tables)
from models.students import Student  # noqa: F401
from models.payments import PaymentRecord

logger = logging.getLogger(__name__)

LEGACY_RENEWAL_COLUMN = "renewal_payment"


def _as_date(value):
    if value is None or isinstance(value, datetime.date):
        return value
    return datetime.date.fromisoformat(str(value)[:10])


def migrate_legacy_renewals(db: Session) -> int:
    """Copy legacy renewal dates into month 0. Returns how many slots were written."""
    columns = {c["name"] for c in inspect(db.get_bind()).get_columns(PaymentRecord.__tablename__)}
    if LEGACY_RENEWAL_COLUMN not in columns:
        return 0

    legacy = db.execute(text(
        f"SELECT student_id, year, {LEGACY_RENEWAL_COLUMN} FROM payment_records "
        f"WHERE {LEGACY_RENEWAL_COLUMN} IS NOT NULL ORDER BY id"
    )).fetchall()

    written = 0
    for student_id, year, renewal in legacy:
        renewal = _as_date(renewal)
        slot = db.query(PaymentRecord).filter(
            PaymentRecord.student_id == student_id,
            PaymentRecord.year == year,
            PaymentRecord.month == 0
        ).first()
        if slot is None:
            db.add(PaymentRecord(student_id=student_id, year=year, month=0, payment_date=renewal))
            db.flush()
            written += 1
        elif slot.payment_date is None:
            # an explicit month 0 date always wins over the legacy column
            slot.payment_date = renewal
            written += 1

    db.commit()
    return written


def run_migrations(bind=None) -> None:
    bind = bind or engine
    Base.metadata.create_all(bind=bind)

    db = Session(bind=bind)
    try:
        written = migrate_legacy_renewals(db)
        if written:
            logger.info("Migrated %d legacy renewal payments to month 0", written)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
