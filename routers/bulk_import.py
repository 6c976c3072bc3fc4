"""
Student Bulk Import Router
Upload an Excel sheet of students (with their renewal + monthly payment
dates) and download the matching template.
"""
from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session
from database import get_db
from services.importer import import_students
from services.exporter import reference_labels
from services.spreadsheets import read_rows, build_workbook, template_rows, XLSX_MEDIA_TYPE
from typing import Optional

router = APIRouter(prefix="/api/v1/import", tags=["Bulk Import"])


# ==========================================
#   MAIN BULK IMPORT ENDPOINT
# ==========================================

@router.post("/students")
async def bulk_import_students(
    file: UploadFile = File(...),
    year: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """
    Expected columns: Student Name, TM Number, IC Number, Grade, Class,
    Month 0 (Renewal), Month 1 .. Month 12, Remarks.
    Payment dates land in `year` (default: the current year).
    """
    contents = await file.read()
    rows = read_rows(contents, file.filename)
    result = import_students(rows, db, year=year)

    return {
        "success": True,
        "message": f"Import completed. {result.success_count} students imported successfully.",
        **result.to_dict()
    }


# ==========================================
#   SAMPLE TEMPLATE DOWNLOAD
# ==========================================

@router.get("/template")
def get_sample_template(db: Session = Depends(get_db)):
    grade_labels, class_labels = reference_labels(db)
    content = build_workbook(template_rows(grade_labels, class_labels), grade_labels, class_labels)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="students-import-template.xlsx"'}
    )
