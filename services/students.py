"""
Student Registry
Creation with uniqueness enforcement, detail updates, soft deletion and the
search / listing views.

TM and IC numbers are unique among *active* students. The checks below are
only an early, readable answer for the user: two concurrent creates can both
pass them. The partial unique indexes on the students table are what really
enforce the rule, and their IntegrityError is reported with the very same
ConflictError message.
"""
import logging
import random
import string
import time
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError
from typing import Dict, List, Optional

from errors import ValidationError, ConflictError, NotFoundError
from models.masters import GradeMaster, ClassMaster
from models.students import Student
from schemas.students import StudentIn
from services.masters import grade_to_dict, class_to_dict
from services.payments import records_for_students, payment_grid, payment_to_dict

logger = logging.getLogger(__name__)

REQUIRED_MESSAGE = "Name, TM Number, IC Number, Grade, and Class are required"
TM_CONFLICT = "TM Number already exists for an active student. Please use a different TM Number."
IC_CONFLICT = "IC Number already exists for an active student. Please use a different IC Number."

ORDER_NEWEST = "newest"
ORDER_NAME = "name"


# ==========================================
#   HELPERS
# ==========================================

def _base36(number: int) -> str:
    digits = string.digits + string.ascii_uppercase
    out = ""
    while number:
        number, rem = divmod(number, 36)
        out = digits[rem] + out
    return out or "0"


def generate_student_code(db: Session) -> str:
    """Opaque external code: STU-<base36 millis>-<5 random chars>"""
    alphabet = string.digits + string.ascii_uppercase
    while True:
        suffix = "".join(random.choice(alphabet) for _ in range(5))
        code = f"STU-{_base36(int(time.time() * 1000))}-{suffix}"
        existing = db.query(Student.id).filter(Student.student_id == code).first()
        if not existing:
            return code


def _text(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _coerce_id(value, label: str) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a valid id")


def _clean_input(data: StudentIn, db: Session) -> Dict:
    name = _text(data.name)
    tm_number = _text(data.tm_number)
    ic_number = _text(data.ic_number)
    grade_raw = _text(data.current_grade_id)
    class_raw = _text(data.class_id)

    if not (name and tm_number and ic_number and grade_raw and class_raw):
        raise ValidationError(REQUIRED_MESSAGE)

    grade_id = _coerce_id(grade_raw, "Grade")
    class_id = _coerce_id(class_raw, "Class")

    if not db.query(GradeMaster.id).filter(GradeMaster.id == grade_id).first():
        raise ValidationError("Selected grade does not exist")
    if not db.query(ClassMaster.id).filter(ClassMaster.id == class_id).first():
        raise ValidationError("Selected class does not exist")

    return {
        "name": name,
        "tm_number": tm_number,
        "ic_number": ic_number,
        "current_grade_id": grade_id,
        "class_id": class_id,
        "remarks": _text(data.remarks),
    }


def active_owner(field, value: str, db: Session, exclude_id: Optional[int] = None) -> Optional[Student]:
    query = db.query(Student).filter(field == value, Student.is_active == True)
    if exclude_id is not None:
        query = query.filter(Student.id != exclude_id)
    return query.first()


def check_identifiers(tm_number: str, ic_number: str, db: Session, exclude_id: Optional[int] = None) -> None:
    if active_owner(Student.tm_number, tm_number, db, exclude_id):
        raise ConflictError(TM_CONFLICT)
    if active_owner(Student.ic_number, ic_number, db, exclude_id):
        raise ConflictError(IC_CONFLICT)


def conflict_from_integrity(exc: IntegrityError) -> Optional[ConflictError]:
    """Map a partial-index rejection to the message the pre-check would have given"""
    detail = str(exc.orig).lower()
    if "uq_students_active_tm" in detail or "students.tm_number" in detail:
        return ConflictError(TM_CONFLICT)
    if "uq_students_active_ic" in detail or "students.ic_number" in detail:
        return ConflictError(IC_CONFLICT)
    return None


def _commit_student(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        conflict = conflict_from_integrity(e)
        if conflict is None:
            raise
        logger.warning("Student write rejected by unique index: %s", e.orig)
        raise conflict


def student_to_dict(student: Student, records=None, year: Optional[int] = None) -> Dict:
    result = {
        "id": student.id,
        "student_id": student.student_id,
        "tm_number": student.tm_number,
        "ic_number": student.ic_number,
        "name": student.name,
        "current_grade_id": student.current_grade_id,
        "class_id": student.class_id,
        "remarks": student.remarks,
        "is_active": student.is_active,
        "created_at": student.created_at,
        "updated_at": student.updated_at,
        "grade_val": grade_to_dict(student.grade_val) if student.grade_val else None,
        "class_val": class_to_dict(student.class_val) if student.class_val else None,
    }
    if records is not None:
        result["payment_records"] = [payment_to_dict(r) for r in records]
    if year is not None:
        result["payment_grid"] = payment_grid(records or [], year)
    return result


def _load(student_id: int, db: Session) -> Student:
    student = db.query(Student).options(
        joinedload(Student.grade_val),
        joinedload(Student.class_val)
    ).filter(Student.id == student_id).first()
    if not student:
        raise NotFoundError("Student not found")
    return student


# ==========================================
#   REGISTRY OPERATIONS
# ==========================================

def create_student(data: StudentIn, db: Session) -> Student:
    fields = _clean_input(data, db)
    check_identifiers(fields["tm_number"], fields["ic_number"], db)

    student = Student(student_id=generate_student_code(db), is_active=True, **fields)
    db.add(student)
    _commit_student(db)
    logger.info("Student created: %s (%s)", student.student_id, fields["tm_number"])
    return _load(student.id, db)


def get_student(student_id: int, db: Session) -> Student:
    return _load(student_id, db)


def update_student(student_id: int, data: StudentIn, db: Session) -> Student:
    student = _load(student_id, db)
    fields = _clean_input(data, db)
    check_identifiers(fields["tm_number"], fields["ic_number"], db, exclude_id=student_id)

    for key, value in fields.items():
        setattr(student, key, value)
    _commit_student(db)
    return _load(student_id, db)


def soft_delete_student(student_id: int, db: Session) -> None:
    """Marks the student inactive. Payment history is left untouched."""
    student = db.query(Student).filter(Student.id == student_id).first()
    if not student:
        raise NotFoundError("Student not found")
    if student.is_active:
        student.is_active = False
        db.commit()
        logger.info("Student %s soft-deleted", student.student_id)


# ==========================================
#   LISTING / SEARCH
# ==========================================

def list_students(
    db: Session,
    search: Optional[str] = None,
    year: Optional[int] = None,
    class_id: Optional[int] = None,
    include_inactive: bool = False,
    order: str = ORDER_NEWEST,
) -> List[Dict]:
    """
    Filters compose with AND. `year` only narrows which payment records are
    attached; it never drops a student from the result.
    """
    query = db.query(Student).options(
        joinedload(Student.grade_val),
        joinedload(Student.class_val)
    )

    if not include_inactive:
        query = query.filter(Student.is_active == True)

    if class_id:
        query = query.filter(Student.class_id == class_id)

    search = _text(search)
    if search:
        search_fmt = f"%{search}%"
        query = query.filter(
            or_(
                Student.name.ilike(search_fmt),
                Student.tm_number.ilike(search_fmt),
                Student.ic_number.ilike(search_fmt)
            )
        )

    if order == ORDER_NAME:
        query = query.order_by(Student.name.asc(), Student.id.asc())
    else:
        query = query.order_by(Student.created_at.desc(), Student.id.desc())

    students = query.all()
    records = records_for_students([s.id for s in students], db, year=year)
    return [student_to_dict(s, records[s.id], year) for s in students]


def search_students(search: Optional[str], db: Session) -> List[Dict]:
    if not _text(search):
        raise ValidationError("Search query is required")
    return list_students(db, search=search, order=ORDER_NAME)


def find_by_ic_number(ic_number: Optional[str], db: Session) -> Dict:
    """Public lookup: exact IC number among active students"""
    ic_number = _text(ic_number)
    if not ic_number:
        raise ValidationError("IC Number is required")

    student = db.query(Student).options(
        joinedload(Student.grade_val),
        joinedload(Student.class_val)
    ).filter(Student.ic_number == ic_number, Student.is_active == True).first()
    if not student:
        raise NotFoundError("Student not found")

    records = records_for_students([student.id], db)
    return student_to_dict(student, records[student.id])
