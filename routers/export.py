from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session
from database import get_db
from errors import ValidationError
from services.exporter import export_students
from services.spreadsheets import build_workbook, build_csv, XLSX_MEDIA_TYPE
from typing import Optional

router = APIRouter(prefix="/api/v1/export", tags=["Export"])


@router.get("")
def export_payments(
    year: Optional[int] = None,
    file_format: str = Query("xlsx", alias="format"),
    include_inactive: bool = False,
    db: Session = Depends(get_db)
):
    """Students + their payment slots for one year, in the import layout"""
    if file_format not in ("xlsx", "csv"):
        raise ValidationError("format must be 'xlsx' or 'csv'")

    sheet = export_students(db, year=year, include_inactive=include_inactive)
    filename = f"students-{sheet.year}.{file_format}"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}

    if file_format == "csv":
        return Response(content=build_csv(sheet.rows), media_type="text/csv", headers=headers)

    content = build_workbook(sheet.rows, sheet.grade_labels, sheet.class_labels)
    return Response(content=content, media_type=XLSX_MEDIA_TYPE, headers=headers)
