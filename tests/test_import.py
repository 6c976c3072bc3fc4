import datetime
import io

import pandas as pd
import pytest

from constants import IMPORT_COLUMNS
from errors import ValidationError
from models.payments import PaymentRecord
from models.students import Student
from services import importer
from services.importer import ImportRow, import_students, clean_text, parse_payment_date
from services.students import soft_delete_student


def sheet_row(**values):
    """Spreadsheet-style mapping keyed by the real column headers"""
    row = {column: None for column in IMPORT_COLUMNS}
    row.update({
        "Student Name": "John Doe",
        "TM Number": "123456",
        "IC Number": "123456789012",
        "Grade": "White",
        "Class": "Main Class",
    })
    row.update(values)
    return ImportRow.from_mapping(row)


def active_students(db):
    return db.query(Student).filter(Student.is_active == True).all()


def test_first_data_row_is_row_two_and_errors_are_data(db):
    rows = [
        sheet_row(**{"Month 0 (Renewal)": "2024-01-20"}),
        sheet_row(**{"Student Name": None, "TM Number": "789012", "IC Number": "987654321098"}),
    ]

    result = import_students(rows, db)

    assert result.success_count == 1
    assert result.skipped_count == 0
    assert result.errors == ["Row 3: Missing required fields"]

    student = db.query(Student).filter_by(tm_number="123456").one()
    renewal = db.query(PaymentRecord).filter_by(student_id=student.id).one()
    assert renewal.month == 0
    assert renewal.payment_date == datetime.date(2024, 1, 20)
    assert renewal.year == datetime.date.today().year


def test_unknown_grade_lists_valid_labels(db):
    result = import_students([sheet_row(Grade="Purple")], db)

    assert result.success_count == 0
    assert result.errors == [
        'Row 2: Invalid grade "Purple". Available grades: White, Red, Blue, Green, Yellow, Black'
    ]
    assert active_students(db) == []


@pytest.mark.parametrize("label", ["White", "white grade", "WHITE GRADE", " White "])
def test_grade_label_with_or_without_suffix(db, grades, label):
    result = import_students([sheet_row(Grade=label)], db)
    assert result.errors == []
    assert active_students(db)[0].current_grade_id == grades["White Grade"]


def test_unknown_class_lists_valid_labels(db):
    result = import_students([sheet_row(Class="Night Class")], db)
    assert result.errors == ['Row 2: Invalid class "Night Class". Available classes: MAIN CLASS, MAK MANDIN']


def test_duplicate_of_active_student_is_a_row_error(db, make_student):
    make_student(tm_number="123456")
    make_student(ic_number="555")

    result = import_students([
        sheet_row(),
        sheet_row(**{"TM Number": "999", "IC Number": "555"}),
    ], db)

    assert result.success_count == 0
    assert result.errors == [
        'Row 2: TM Number "123456" already exists',
        'Row 3: IC Number "555" already exists',
    ]


def test_identifiers_of_inactive_students_are_free(db, make_student):
    old = make_student(tm_number="123456", ic_number="123456789012")
    soft_delete_student(old.id, db)

    result = import_students([sheet_row()], db)
    assert result.success_count == 1


def test_bad_date_names_column_and_format(db):
    result = import_students([sheet_row(**{"Month 3": "next tuesday"})], db)

    assert result.success_count == 0
    assert result.errors == [
        'Row 2: invalid date "next tuesday" in column "Month 3" (expected YYYY-MM-DD)'
    ]
    assert active_students(db) == []


def test_payments_are_tagged_by_slot_under_one_year(db):
    row = sheet_row(**{
        "Month 0 (Renewal)": "2023-01-20",
        "Month 1": datetime.datetime(2023, 1, 15),
        "Month 12": "2023-12-01 00:00:00",
        "Month 6": float("nan"),
    })

    result = import_students([row], db, year=2023)
    assert result.errors == []

    records = db.query(PaymentRecord).order_by(PaymentRecord.month).all()
    assert [(r.year, r.month, r.payment_date) for r in records] == [
        (2023, 0, datetime.date(2023, 1, 20)),
        (2023, 1, datetime.date(2023, 1, 15)),
        (2023, 12, datetime.date(2023, 12, 1)),
    ]


def test_blank_rows_are_skipped(db):
    blank = ImportRow.from_mapping({column: float("nan") for column in IMPORT_COLUMNS})
    result = import_students([blank, sheet_row(), blank], db)

    assert result.success_count == 1
    assert result.skipped_count == 2
    assert result.errors == []


def test_numeric_cells_are_read_as_text(db):
    result = import_students([sheet_row(**{"TM Number": 123456.0, "IC Number": 880101})], db)
    assert result.errors == []
    student = active_students(db)[0]
    assert (student.tm_number, student.ic_number) == ("123456", "880101")


def test_same_tm_twice_in_one_batch_rejects_only_the_later_row(db):
    rows = [
        sheet_row(**{"TM Number": "1", "IC Number": "A"}),
        sheet_row(**{"TM Number": "2", "IC Number": "B", "Month 1": "2024-01-05"}),
        sheet_row(**{"TM Number": "2", "IC Number": "C", "Month 2": "2024-02-05"}),
    ]

    result = import_students(rows, db, year=2024)

    assert result.success_count == 2
    assert result.errors == ['Row 4: TM Number "2" already exists']
    assert sorted(s.ic_number for s in active_students(db)) == ["A", "B"]

    kept = db.query(Student).filter_by(ic_number="B").one()
    assert [(r.month, r.payment_date) for r in db.query(PaymentRecord).all()] == [
        (1, datetime.date(2024, 1, 5))
    ]
    assert db.query(PaymentRecord).one().student_id == kept.id


def test_same_ic_twice_in_one_batch_names_the_ic_number(db):
    rows = [
        sheet_row(**{"TM Number": "1", "IC Number": "A"}),
        sheet_row(**{"TM Number": "2", "IC Number": "A"}),
    ]

    result = import_students(rows, db)

    assert result.success_count == 1
    assert result.errors == ['Row 3: IC Number "A" already exists']


def test_payment_insert_failure_keeps_students(db, monkeypatch):
    def broken_records(students, staged, year):
        return [PaymentRecord(student_id=s.id, year=year, month=42, payment_date=datetime.date(2024, 1, 1))
                for s in students]

    monkeypatch.setattr(importer, "build_payment_records", broken_records)
    result = import_students([sheet_row(**{"Month 1": "2024-01-01"})], db, year=2024)

    assert result.success_count == 1
    assert len(active_students(db)) == 1
    assert db.query(PaymentRecord).count() == 0


def test_empty_batch_is_rejected(db):
    with pytest.raises(ValidationError):
        import_students([], db)


def test_clean_text_and_date_helpers():
    assert clean_text(None) is None
    assert clean_text(float("nan")) is None
    assert clean_text("  ") is None
    assert clean_text(42.0) == "42"
    assert parse_payment_date("") is None
    assert parse_payment_date(pd.NaT) is None
    assert parse_payment_date(pd.Timestamp("2024-05-06")) == datetime.date(2024, 5, 6)
    assert parse_payment_date("06/05/2024") == datetime.date(2024, 5, 6)
    with pytest.raises(ValueError):
        parse_payment_date("2024-13-40")


# ==========================================
#   HTTP
# ==========================================

def xlsx_upload(rows):
    buffer = io.BytesIO()
    pd.DataFrame(rows, columns=IMPORT_COLUMNS).to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()


def test_import_route_reads_excel(client):
    content = xlsx_upload([
        {"Student Name": "John Doe", "TM Number": "123456", "IC Number": "012345678901",
         "Grade": "White", "Class": "Main Class", "Month 0 (Renewal)": "2024-01-20", "Month 1": "2024-01-15"},
        {"Student Name": "Jane Smith", "TM Number": "789012", "IC Number": "987654321098",
         "Grade": "Purple", "Class": "Main Class"},
    ])

    response = client.post(
        "/api/v1/import/students",
        params={"year": 2024},
        files={"file": ("students.xlsx", content, "application/octet-stream")},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success_count"] == 1
    assert body["error_count"] == 1
    assert body["errors"][0].startswith('Row 3: Invalid grade "Purple"')

    students = client.get("/api/v1/students", params={"year": 2024}).json()["students"]
    assert students[0]["ic_number"] == "012345678901"
    assert [p["month"] for p in students[0]["payment_records"]] == [0, 1]


def test_import_route_rejects_other_files(client):
    response = client.post(
        "/api/v1/import/students",
        files={"file": ("students.txt", b"hello", "text/plain")},
    )
    assert response.status_code == 400


def test_import_route_rejects_empty_sheet(client):
    response = client.post(
        "/api/v1/import/students",
        files={"file": ("students.xlsx", xlsx_upload([]), "application/octet-stream")},
    )
    assert response.status_code == 400


def test_template_route(client):
    response = client.get("/api/v1/import/template")
    assert response.status_code == 200

    sheets = pd.read_excel(io.BytesIO(response.content), sheet_name=None, dtype=str)
    assert list(sheets) == ["Students", "Grades", "Classes"]
    assert list(sheets["Students"].columns) == IMPORT_COLUMNS
    assert list(sheets["Grades"]["Grade Name"]) == ["White", "Red", "Blue", "Green", "Yellow", "Black"]
    assert list(sheets["Classes"]["Class Name"]) == ["MAIN CLASS", "MAK MANDIN"]
