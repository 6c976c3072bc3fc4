"""
Grade / Class reference data.
Loaded fresh per request; nothing here is cached across requests.
"""
import logging
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List, Dict

from constants import GRADE_SUFFIX
from errors import ValidationError, ConflictError, NotFoundError
from models.masters import GradeMaster, ClassMaster
from models.students import Student
from schemas.masters import GradeSchema, ClassSchema

logger = logging.getLogger(__name__)


def grade_to_dict(grade: GradeMaster) -> Dict:
    return GradeSchema.model_validate(grade).model_dump()


def class_to_dict(class_obj: ClassMaster) -> Dict:
    return ClassSchema.model_validate(class_obj).model_dump()


def short_grade_label(grade_name: str) -> str:
    """'White Grade' -> 'White'"""
    if grade_name.lower().endswith(GRADE_SUFFIX.lower()):
        return grade_name[: -len(GRADE_SUFFIX)].strip()
    return grade_name


# ==========================================
#   GRADES
# ==========================================

def list_grades(db: Session) -> List[GradeMaster]:
    return db.query(GradeMaster).order_by(GradeMaster.id).all()


def grade_lookup(grades: List[GradeMaster]) -> Dict[str, int]:
    """Case-insensitive label -> id, accepting both 'White Grade' and 'White'"""
    lookup = {}
    for g in grades:
        lookup[g.grade_name.lower()] = g.id
        lookup.setdefault(short_grade_label(g.grade_name).lower(), g.id)
    return lookup


# ==========================================
#   CLASSES
# ==========================================

def list_classes(db: Session) -> List[ClassMaster]:
    return db.query(ClassMaster).order_by(ClassMaster.id).all()


def class_lookup(classes: List[ClassMaster]) -> Dict[str, int]:
    return {c.class_name.lower(): c.id for c in classes}


def _normalize_class_name(class_name) -> str:
    if not class_name or not str(class_name).strip():
        raise ValidationError("Class name is required")
    return str(class_name).strip().upper()


def create_class(class_name, db: Session) -> ClassMaster:
    name = _normalize_class_name(class_name)
    existing = db.query(ClassMaster).filter(ClassMaster.class_name == name).first()
    if existing:
        raise ConflictError("Class with this name already exists")

    new_class = ClassMaster(class_name=name)
    db.add(new_class)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Class with this name already exists")
    db.refresh(new_class)
    logger.info("Class created: %s", name)
    return new_class


def update_class(class_id: int, class_name, db: Session) -> ClassMaster:
    name = _normalize_class_name(class_name)
    class_obj = db.query(ClassMaster).filter(ClassMaster.id == class_id).first()
    if not class_obj:
        raise NotFoundError("Class not found")

    existing = db.query(ClassMaster).filter(
        ClassMaster.class_name == name,
        ClassMaster.id != class_id
    ).first()
    if existing:
        raise ConflictError("Class with this name already exists")

    class_obj.class_name = name
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Class with this name already exists")
    db.refresh(class_obj)
    return class_obj


def delete_class(class_id: int, db: Session) -> None:
    class_obj = db.query(ClassMaster).filter(ClassMaster.id == class_id).first()
    if not class_obj:
        raise NotFoundError("Class not found")

    in_use = db.query(Student.id).filter(
        Student.class_id == class_id,
        Student.is_active == True
    ).first()
    if in_use:
        raise ConflictError("Cannot delete class that is assigned to active students")

    # Soft-deleted students keep their history but lose the class link
    detached = db.query(Student).filter(Student.class_id == class_id).update(
        {Student.class_id: None}, synchronize_session=False
    )
    db.delete(class_obj)
    db.commit()
    logger.info("Class %s deleted (%d inactive students detached)", class_id, detached)
