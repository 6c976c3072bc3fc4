"""
Workbook codec shared by import, export and the import template.
pandas does the reading / writing on the openpyxl engine; openpyxl is used
directly for column widths and the Grade / Class dropdowns.
"""
import io
from typing import Dict, List

import pandas as pd
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.datavalidation import DataValidation

from constants import (
    IMPORT_COLUMNS, COL_NAME, COL_TM, COL_IC, COL_GRADE, COL_CLASS, COL_REMARKS,
    RENEWAL_COLUMN, MONTH_COLUMNS, STUDENTS_SHEET, GRADES_SHEET, CLASSES_SHEET,
)
from errors import ValidationError
from services.importer import ImportRow

EXCEL_EXTENSIONS = (".xlsx", ".xls")
CSV_EXTENSION = ".csv"

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

COLUMN_WIDTHS = {COL_NAME: 20, COL_TM: 15, COL_IC: 15, COL_GRADE: 15, COL_CLASS: 15,
                 RENEWAL_COLUMN: 18, COL_REMARKS: 30}
DATE_COLUMN_WIDTH = 12

# Dropdowns cover more than the filled rows so appended lines get them too
VALIDATED_ROWS = 500


def read_rows(contents: bytes, filename: str) -> List[ImportRow]:
    """Parse an uploaded .xlsx / .xls / .csv into raw import rows (first sheet only)"""
    name = (filename or "").lower()
    if not name.endswith(EXCEL_EXTENSIONS + (CSV_EXTENSION,)):
        raise ValidationError("Invalid file format. Please upload an Excel file (.xlsx or .xls)")

    try:
        if name.endswith(CSV_EXTENSION):
            df = pd.read_csv(io.BytesIO(contents), dtype=str)
        else:
            # openpyxl = .xlsx (new format); let pandas pick for .xls
            engine = "openpyxl" if name.endswith(".xlsx") else None
            df = pd.read_excel(io.BytesIO(contents), sheet_name=0, engine=engine, dtype=str)
    except Exception as e:
        raise ValidationError(f"Error reading Excel file: {e}")

    df.columns = [str(c).strip() for c in df.columns]
    return [ImportRow.from_mapping(record) for record in df.to_dict(orient="records")]


def _students_frame(rows: List[Dict]) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=IMPORT_COLUMNS)


def _format_students_sheet(ws, grade_count: int, class_count: int) -> None:
    for idx, column in enumerate(IMPORT_COLUMNS, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = COLUMN_WIDTHS.get(column, DATE_COLUMN_WIDTH)

    for column, sheet, count, title in (
        (COL_GRADE, GRADES_SHEET, grade_count, "Invalid Grade"),
        (COL_CLASS, CLASSES_SHEET, class_count, "Invalid Class"),
    ):
        if not count:
            continue
        letter = get_column_letter(IMPORT_COLUMNS.index(column) + 1)
        dv = DataValidation(
            type="list",
            formula1=f"{sheet}!$A$2:$A${count + 1}",
            allow_blank=False,
            showErrorMessage=True,
            errorTitle=title,
            error=f"Please select a valid {column.lower()} from the dropdown list.",
        )
        ws.add_data_validation(dv)
        dv.add(f"{letter}2:{letter}{VALIDATED_ROWS + 1}")


def build_workbook(rows: List[Dict], grade_labels: List[str], class_labels: List[str]) -> bytes:
    """Students sheet plus Grades / Classes reference sheets"""
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        _students_frame(rows).to_excel(writer, sheet_name=STUDENTS_SHEET, index=False)
        pd.DataFrame({"Grade Name": grade_labels}).to_excel(writer, sheet_name=GRADES_SHEET, index=False)
        pd.DataFrame({"Class Name": class_labels}).to_excel(writer, sheet_name=CLASSES_SHEET, index=False)

        _format_students_sheet(writer.sheets[STUDENTS_SHEET], len(grade_labels), len(class_labels))
        writer.sheets[GRADES_SHEET].column_dimensions["A"].width = 20
        writer.sheets[CLASSES_SHEET].column_dimensions["A"].width = 20
    return buffer.getvalue()


def build_csv(rows: List[Dict]) -> str:
    return _students_frame(rows).to_csv(index=False)


def template_rows(grade_labels: List[str], class_labels: List[str]) -> List[Dict]:
    """Two sample students using real reference labels where there are any"""
    def pick(labels, idx, fallback):
        if len(labels) > idx:
            return labels[idx]
        return labels[0] if labels else fallback

    samples = [
        ("John Doe", "123456", "123456789012", pick(grade_labels, 0, "White"), pick(class_labels, 0, "MAIN CLASS"),
         {RENEWAL_COLUMN: "2024-01-20", MONTH_COLUMNS[0]: "2024-01-15"}, "Sample student"),
        ("Jane Smith", "789012", "987654321098", pick(grade_labels, 1, "Yellow"), pick(class_labels, 1, "MAK MANDIN"),
         {MONTH_COLUMNS[1]: "2024-02-20"}, "Another sample student"),
    ]
    rows = []
    for name, tm, ic, grade, class_name, paid, remarks in samples:
        row = {column: "" for column in IMPORT_COLUMNS}
        row.update({COL_NAME: name, COL_TM: tm, COL_IC: ic, COL_GRADE: grade, COL_CLASS: class_name,
                    COL_REMARKS: remarks})
        row.update(paid)
        rows.append(row)
    return rows
