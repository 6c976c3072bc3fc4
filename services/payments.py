"""
Payment Ledger
Owns the per-(student, year, slot) payment cell: upsert, explicit delete
and the renewal-vs-monthly split. Slot 0 is the renewal payment, 1-12 are
monthly dues.

Readers only ever see records that carry a payment_date: a row with a NULL
date and a missing row both mean "unpaid".
"""
import logging
from datetime import date
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Dict, Iterable, List, Optional

from constants import RENEWAL_MONTH, MONTHS
from errors import ValidationError, NotFoundError
from models.payments import PaymentRecord
from models.students import Student
from schemas.payments import PaymentUpsert, PaymentRecordSchema

logger = logging.getLogger(__name__)

MIN_YEAR = 1900
MAX_YEAR = 9999


# =====================
# HELPER FUNCTIONS
# =====================

def payment_to_dict(record: PaymentRecord) -> Dict:
    return PaymentRecordSchema.model_validate(record).model_dump()


def check_year(year) -> int:
    try:
        year = int(year)
    except (TypeError, ValueError):
        raise ValidationError("Year must be a number")
    if year < MIN_YEAR or year > MAX_YEAR:
        raise ValidationError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}")
    return year


def _ensure_student(student_id: int, db: Session) -> Student:
    student = db.query(Student).filter(Student.id == student_id).first()
    if not student:
        raise NotFoundError("Student not found")
    return student


def _find_slot(student_id: int, year: int, month: int, db: Session) -> Optional[PaymentRecord]:
    return db.query(PaymentRecord).filter(
        PaymentRecord.student_id == student_id,
        PaymentRecord.year == year,
        PaymentRecord.month == month
    ).first()


def _write_slot(student_id: int, year: int, month: int, payment_date: Optional[date], db: Session) -> PaymentRecord:
    """Create the slot or overwrite it in place. Last writer wins."""
    _ensure_student(student_id, db)

    record = _find_slot(student_id, year, month, db)
    if record:
        record.payment_date = payment_date
    else:
        record = PaymentRecord(student_id=student_id, year=year, month=month, payment_date=payment_date)
        db.add(record)

    try:
        db.commit()
    except IntegrityError:
        # Another writer inserted this slot between our read and our insert.
        # The unique key serialises us: overwrite what they wrote.
        db.rollback()
        record = _find_slot(student_id, year, month, db)
        if record is None:
            raise
        record.payment_date = payment_date
        db.commit()
        logger.info("Slot %s/%s/%s written concurrently; overwrote it", student_id, year, month)

    db.refresh(record)
    return record


# =====================
# LEDGER OPERATIONS
# =====================

def upsert_monthly_payment(student_id: int, year, month, payment_date: Optional[date], db: Session) -> PaymentRecord:
    year = check_year(year)
    if month not in MONTHS:
        raise ValidationError("Month must be between 1 and 12")
    return _write_slot(student_id, year, month, payment_date, db)


def upsert_renewal_payment(student_id: int, year, renewal_date: Optional[date], db: Session) -> PaymentRecord:
    year = check_year(year)
    return _write_slot(student_id, year, RENEWAL_MONTH, renewal_date, db)


def upsert_payment(data: PaymentUpsert, db: Session) -> PaymentRecord:
    """
    Dispatch a single write to monthly or renewal semantics.
    - renewal_date given, or month == 0  -> renewal slot
    - month 1-12                          -> monthly slot
    Mixing both in one call is rejected.
    """
    wants_renewal = data.renewal_date is not None or data.month == RENEWAL_MONTH

    if wants_renewal:
        if data.month not in (None, RENEWAL_MONTH):
            raise ValidationError("A renewal payment cannot be combined with a monthly payment")
        if data.renewal_date is not None and data.payment_date is not None:
            raise ValidationError("Send either payment_date or renewal_date, not both")
        renewal_date = data.renewal_date if data.renewal_date is not None else data.payment_date
        return upsert_renewal_payment(data.student_id, data.year, renewal_date, db)

    if data.month is None:
        raise ValidationError("Student ID, year, and month are required")
    return upsert_monthly_payment(data.student_id, data.year, data.month, data.payment_date, db)


def update_payment_date(payment_id: int, payment_date: Optional[date], db: Session) -> PaymentRecord:
    record = db.query(PaymentRecord).filter(PaymentRecord.id == payment_id).first()
    if not record:
        raise NotFoundError("Payment not found")
    record.payment_date = payment_date
    db.commit()
    db.refresh(record)
    return record


def delete_payment(payment_id: int, db: Session) -> None:
    """Hard delete. Removes history, unlike writing a NULL date."""
    record = db.query(PaymentRecord).filter(PaymentRecord.id == payment_id).first()
    if not record:
        raise NotFoundError("Payment not found")
    slot = (record.student_id, record.year, record.month)
    db.delete(record)
    db.commit()
    logger.info("Payment %s deleted (student %s, %s/%s)", payment_id, *slot)


# =====================
# READERS
# =====================

def paid_records(db: Session):
    return db.query(PaymentRecord).filter(PaymentRecord.payment_date.isnot(None))


def payments_for_student_year(student_id: int, year, db: Session) -> List[PaymentRecord]:
    year = check_year(year)
    _ensure_student(student_id, db)
    return paid_records(db).filter(
        PaymentRecord.student_id == student_id,
        PaymentRecord.year == year
    ).order_by(PaymentRecord.month).all()


def records_for_students(student_ids: Iterable[int], db: Session, year: Optional[int] = None) -> Dict[int, List[PaymentRecord]]:
    """Paid records grouped by student id, optionally restricted to one year"""
    student_ids = list(student_ids)
    grouped = {sid: [] for sid in student_ids}
    if not student_ids:
        return grouped

    query = paid_records(db).filter(PaymentRecord.student_id.in_(student_ids))
    if year is not None:
        query = query.filter(PaymentRecord.year == year)

    for record in query.order_by(PaymentRecord.year, PaymentRecord.month).all():
        grouped[record.student_id].append(record)
    return grouped


def payment_grid(records: Iterable[PaymentRecord], year: int) -> Dict:
    """Renewal status plus the 12-month paid/unpaid grid for one year"""
    by_month = {r.month: r.payment_date for r in records if r.year == year and r.is_paid}
    months = {m: by_month.get(m) for m in MONTHS}
    return {
        "year": year,
        "renewal": by_month.get(RENEWAL_MONTH),
        "months": months,
        "paid_count": sum(1 for d in months.values() if d is not None),
    }
