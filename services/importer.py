"""
Student Import Reconciler
Validates spreadsheet rows one by one against the current store state,
then inserts every valid student in one batch followed by their payment
records (renewal -> month 0, Month 1..12 -> months 1..12).

Row problems never raise: each becomes one "Row N: ..." string in the
result. Duplicate checks look at the store only, not at earlier rows of
the same batch. If two rows collide the unique index rejects the batch
insert; the rows are then inserted one at a time and the later row of each
collision gets the same "already exists" error the store check gives.
"""
import logging
import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from constants import (
    COL_NAME, COL_TM, COL_IC, COL_GRADE, COL_CLASS, COL_REMARKS,
    SLOT_COLUMNS, FIRST_DATA_ROW, DATE_FORMAT_LABEL,
)
from errors import ValidationError, StoreError
from models.payments import PaymentRecord
from models.students import Student
from services.masters import list_grades, list_classes, grade_lookup, class_lookup, short_grade_label
from services.payments import check_year
from services.students import active_owner, generate_student_code

logger = logging.getLogger(__name__)

DATE_FORMATS = [
    "%Y-%m-%d", "%Y-%m-%d %H:%M:%S", "%Y/%m/%d",
    "%d-%m-%Y", "%d/%m/%Y", "%d-%b-%Y", "%d %b %Y",
]


# ==========================================
#   ROW SHAPES
# ==========================================

@dataclass
class ImportRow:
    """One raw spreadsheet line. Values are whatever the reader produced."""
    name: Any = None
    tm_number: Any = None
    ic_number: Any = None
    grade: Any = None
    class_name: Any = None
    remarks: Any = None
    slots: Dict[int, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: Mapping) -> "ImportRow":
        """Build from a header -> value mapping; headers match case-insensitively"""
        values = {str(k).strip().lower(): v for k, v in mapping.items()}

        def get(column):
            return values.get(column.lower())

        return cls(
            name=get(COL_NAME),
            tm_number=get(COL_TM),
            ic_number=get(COL_IC),
            grade=get(COL_GRADE),
            class_name=get(COL_CLASS),
            remarks=get(COL_REMARKS),
            slots={slot: get(column) for slot, column in SLOT_COLUMNS.items()},
        )

    def is_blank(self) -> bool:
        texts = [self.name, self.tm_number, self.ic_number, self.grade, self.class_name, self.remarks]
        texts.extend(self.slots.values())
        return all(clean_text(v) is None for v in texts)


@dataclass
class StagedStudent:
    row_number: int
    name: str
    tm_number: str
    ic_number: str
    grade_id: int
    class_id: int
    remarks: Optional[str] = None
    payments: Dict[int, datetime.date] = field(default_factory=dict)


@dataclass
class ImportResult:
    success_count: int = 0
    skipped_count: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "success_count": self.success_count,
            "skipped_count": self.skipped_count,
            "error_count": len(self.errors),
            "errors": self.errors,
        }


# ==========================================
#   PARSING HELPERS
# ==========================================

def clean_text(value) -> Optional[str]:
    """Trimmed text, or None for empty / NaN. 123456.0 comes back as '123456'."""
    if value is None:
        return None
    if not isinstance(value, str) and pd.isna(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def parse_payment_date(value) -> Optional[datetime.date]:
    """Empty -> None. Unparseable -> ValueError."""
    if isinstance(value, datetime.datetime):
        return None if pd.isna(value) else value.date()
    if isinstance(value, datetime.date):
        return value

    text = clean_text(value)
    if text is None:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(text)


def validate_row(
    row: ImportRow,
    row_number: int,
    grades: Dict[str, int],
    classes: Dict[str, int],
    grade_labels: List[str],
    class_labels: List[str],
    db: Session,
) -> Tuple[Optional[StagedStudent], Optional[str]]:
    """Either a staged student or the row's error message"""
    prefix = f"Row {row_number}:"

    name = clean_text(row.name)
    tm_number = clean_text(row.tm_number)
    ic_number = clean_text(row.ic_number)
    grade_name = clean_text(row.grade)
    class_name = clean_text(row.class_name)

    if not (name and tm_number and ic_number and grade_name and class_name):
        return None, f"{prefix} Missing required fields"

    grade_id = grades.get(grade_name.lower())
    if not grade_id:
        return None, f'{prefix} Invalid grade "{grade_name}". Available grades: {", ".join(grade_labels)}'

    class_id = classes.get(class_name.lower())
    if not class_id:
        return None, f'{prefix} Invalid class "{class_name}". Available classes: {", ".join(class_labels)}'

    duplicate = duplicate_error(row_number, tm_number, ic_number, db)
    if duplicate:
        return None, duplicate

    payments = {}
    date_errors = []
    for slot, column in SLOT_COLUMNS.items():
        try:
            paid_on = parse_payment_date(row.slots.get(slot))
        except ValueError as e:
            date_errors.append(f'invalid date "{e}" in column "{column}" (expected {DATE_FORMAT_LABEL})')
            continue
        if paid_on:
            payments[slot] = paid_on
    if date_errors:
        return None, f"{prefix} " + "; ".join(date_errors)

    return StagedStudent(
        row_number=row_number,
        name=name,
        tm_number=tm_number,
        ic_number=ic_number,
        grade_id=grade_id,
        class_id=class_id,
        remarks=clean_text(row.remarks),
        payments=payments,
    ), None


# ==========================================
#   BATCH WRITES
# ==========================================

def duplicate_error(row_number: int, tm_number: str, ic_number: str, db: Session) -> Optional[str]:
    """The row's duplicate message if an active student already owns its TM or IC number"""
    if active_owner(Student.tm_number, tm_number, db):
        return f'Row {row_number}: TM Number "{tm_number}" already exists'
    if active_owner(Student.ic_number, ic_number, db):
        return f'Row {row_number}: IC Number "{ic_number}" already exists'
    return None


def _new_student(s: StagedStudent, db: Session) -> Student:
    return Student(
        student_id=generate_student_code(db),
        tm_number=s.tm_number,
        ic_number=s.ic_number,
        name=s.name,
        current_grade_id=s.grade_id,
        class_id=s.class_id,
        remarks=s.remarks,
        is_active=True,
    )


def _insert_row_by_row(staged: List[StagedStudent], db: Session, result: ImportResult):
    """
    Fallback after the batch was rejected: one commit per row so a row that
    collides with an earlier row of the same file only costs itself.
    """
    students, kept = [], []
    for s in staged:
        student = _new_student(s, db)
        db.add(student)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            error = duplicate_error(s.row_number, s.tm_number, s.ic_number, db)
            if error is None:
                logger.error("Row %d rejected by the store: %s", s.row_number, e.orig)
                error = f"Row {s.row_number}: Could not be saved"
            result.errors.append(error)
            continue
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Import row insert failed")
            raise StoreError("Failed to insert students")
        students.append(student)
        kept.append(s)
    return students, kept


def _insert_students(staged: List[StagedStudent], db: Session, result: ImportResult):
    """Returns (inserted students, their staged rows) in matching order"""
    students = [_new_student(s, db) for s in staged]
    db.add_all(students)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("Import batch rejected by unique index (%s); retrying row by row", e.orig)
        return _insert_row_by_row(staged, db, result)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Import batch insert failed")
        raise StoreError("Failed to insert students")
    return students, staged


def build_payment_records(students: List[Student], staged: List[StagedStudent], year: int) -> List[PaymentRecord]:
    return [
        PaymentRecord(student_id=student.id, year=year, month=slot, payment_date=paid_on)
        for student, row in zip(students, staged)
        for slot, paid_on in row.payments.items()
    ]


def _insert_payments(records: List[PaymentRecord], db: Session) -> None:
    """Failures here are logged only; the students stay imported."""
    if not records:
        return
    db.add_all(records)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not save %d payment records for imported students", len(records))


# ==========================================
#   MAIN ENTRY POINT
# ==========================================

def import_students(rows: Iterable[ImportRow], db: Session, year: Optional[int] = None) -> ImportResult:
    rows = list(rows)
    if not rows:
        raise ValidationError("No data found in the Excel file")

    year = check_year(year) if year is not None else datetime.date.today().year

    try:
        grade_rows = list_grades(db)
        class_rows = list_classes(db)
    except SQLAlchemyError:
        logger.exception("Reference data fetch failed during import")
        raise StoreError("Failed to fetch reference data")

    grades = grade_lookup(grade_rows)
    classes = class_lookup(class_rows)
    grade_labels = [short_grade_label(g.grade_name) for g in grade_rows]
    class_labels = [c.class_name for c in class_rows]

    result = ImportResult()
    staged: List[StagedStudent] = []

    for idx, row in enumerate(rows):
        row_number = idx + FIRST_DATA_ROW

        if row.is_blank():
            result.skipped_count += 1
            continue

        student, error = validate_row(row, row_number, grades, classes, grade_labels, class_labels, db)
        if error:
            result.errors.append(error)
            continue
        staged.append(student)

    if staged:
        students, staged = _insert_students(staged, db, result)
        _insert_payments(build_payment_records(students, staged, year), db)
        result.success_count = len(students)

    logger.info(
        "Import for %s: %d imported, %d skipped, %d rejected",
        year, result.success_count, result.skipped_count, len(result.errors)
    )
    return result
