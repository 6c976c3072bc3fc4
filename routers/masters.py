from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from database import get_db
from schemas.masters import ClassIn
from services import masters

router = APIRouter(prefix="/api/v1", tags=["Master Records"])


# =======================
# 1. GRADE APIs
# =======================
@router.get("/grades")
def list_grades(db: Session = Depends(get_db)):
    return {"grades": [masters.grade_to_dict(g) for g in masters.list_grades(db)]}


# =======================
# 2. CLASS APIs
# =======================
@router.get("/classes")
def list_classes(db: Session = Depends(get_db)):
    return {"classes": [masters.class_to_dict(c) for c in masters.list_classes(db)]}


@router.post("/classes", status_code=201)
def create_class(item: ClassIn, db: Session = Depends(get_db)):
    new_class = masters.create_class(item.class_name, db)
    return {"class": masters.class_to_dict(new_class)}


@router.put("/classes/{class_id}")
def update_class(class_id: int, item: ClassIn, db: Session = Depends(get_db)):
    updated = masters.update_class(class_id, item.class_name, db)
    return {"class": masters.class_to_dict(updated)}


@router.delete("/classes/{class_id}")
def delete_class(class_id: int, db: Session = Depends(get_db)):
    masters.delete_class(class_id, db)
    return {"message": "Class deleted successfully"}
