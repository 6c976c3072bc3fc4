"""
Export Projector
One flat row per student for a year: identity, grade, class and the
13 payment slots. Column-for-column the same shape the importer reads,
so an exported sheet can be imported again unchanged.
"""
import logging
import datetime
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from constants import (
    COL_NAME, COL_TM, COL_IC, COL_GRADE, COL_CLASS, COL_REMARKS,
    SLOT_COLUMNS, DATE_FORMAT,
)
from models.payments import PaymentRecord
from models.students import Student
from services.masters import list_grades, list_classes, short_grade_label
from services.payments import check_year, records_for_students

logger = logging.getLogger(__name__)


@dataclass
class ExportSheet:
    year: int
    rows: List[Dict] = field(default_factory=list)
    grade_labels: List[str] = field(default_factory=list)
    class_labels: List[str] = field(default_factory=list)


def export_row(student: Student, records: List[PaymentRecord]) -> Dict:
    paid = {r.month: r.payment_date for r in records if r.is_paid}
    row = {
        COL_NAME: student.name,
        COL_TM: student.tm_number,
        COL_IC: student.ic_number,
        COL_GRADE: short_grade_label(student.grade_val.grade_name) if student.grade_val else "",
        COL_CLASS: student.class_val.class_name if student.class_val else "",
    }
    for slot, column in SLOT_COLUMNS.items():
        paid_on = paid.get(slot)
        row[column] = paid_on.strftime(DATE_FORMAT) if paid_on else ""
    row[COL_REMARKS] = student.remarks or ""
    return row


def reference_labels(db: Session):
    grade_labels = [short_grade_label(g.grade_name) for g in list_grades(db)]
    class_labels = [c.class_name for c in list_classes(db)]
    return grade_labels, class_labels


def export_students(db: Session, year: Optional[int] = None, include_inactive: bool = False) -> ExportSheet:
    year = check_year(year) if year is not None else datetime.date.today().year

    query = db.query(Student).options(
        joinedload(Student.grade_val),
        joinedload(Student.class_val)
    )
    if not include_inactive:
        query = query.filter(Student.is_active == True)
    students = query.order_by(Student.name, Student.id).all()

    records = records_for_students([s.id for s in students], db, year=year)
    grade_labels, class_labels = reference_labels(db)

    logger.info("Exporting %d students for %s", len(students), year)
    return ExportSheet(
        year=year,
        rows=[export_row(s, records[s.id]) for s in students],
        grade_labels=grade_labels,
        class_labels=class_labels,
    )
