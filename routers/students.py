from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from database import get_db
from schemas.students import StudentIn
from services import students as registry
from services.payments import payments_for_student_year, records_for_students, payment_to_dict, payment_grid
from typing import Optional

router = APIRouter(prefix="/api/v1", tags=["Students"])


# ===============================
#   1. LIST / SEARCH
# ===============================

@router.get("/students")
def list_students(
    search: str = "",
    year: Optional[int] = None,
    class_id: Optional[int] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db)
):
    """Management view: newest first, active only unless asked otherwise"""
    students = registry.list_students(
        db, search=search, year=year, class_id=class_id, include_inactive=include_inactive
    )
    return {"students": students}


@router.get("/search")
def search_students(search: str = "", db: Session = Depends(get_db)):
    """Search view: name / TM / IC substring, ordered by name"""
    return {"students": registry.search_students(search, db)}


@router.get("/public-search")
def public_search(ic_number: str = "", db: Session = Depends(get_db)):
    return {"student": registry.find_by_ic_number(ic_number, db)}


# ===============================
#   2. STUDENT CRUD OPERATIONS
# ===============================

@router.post("/students", status_code=201)
def add_student(item: StudentIn, db: Session = Depends(get_db)):
    student = registry.create_student(item, db)
    return {"student": registry.student_to_dict(student)}


@router.get("/students/{student_id}")
def get_student(student_id: int, db: Session = Depends(get_db)):
    student = registry.get_student(student_id, db)
    records = records_for_students([student.id], db)[student.id]
    return {"student": registry.student_to_dict(student, records)}


@router.put("/students/{student_id}")
def update_student(student_id: int, item: StudentIn, db: Session = Depends(get_db)):
    student = registry.update_student(student_id, item, db)
    return {"student": registry.student_to_dict(student)}


@router.delete("/students/{student_id}")
def delete_student(student_id: int, db: Session = Depends(get_db)):
    registry.soft_delete_student(student_id, db)
    return {"message": "Student deleted successfully"}


@router.get("/students/{student_id}/payments")
def student_payments(student_id: int, year: int, db: Session = Depends(get_db)):
    records = payments_for_student_year(student_id, year, db)
    return {
        "payments": [payment_to_dict(r) for r in records],
        "grid": payment_grid(records, year),
    }
