RENEWAL_MONTH = 0
MONTHS = list(range(1, 13))
SLOTS = [RENEWAL_MONTH] + MONTHS

# Spreadsheet layout (import, export and template share it)
COL_NAME = "Student Name"
COL_TM = "TM Number"
COL_IC = "IC Number"
COL_GRADE = "Grade"
COL_CLASS = "Class"
COL_REMARKS = "Remarks"
RENEWAL_COLUMN = "Month 0 (Renewal)"
MONTH_COLUMNS = [f"Month {m}" for m in MONTHS]
SLOT_COLUMNS = dict(zip(SLOTS, [RENEWAL_COLUMN] + MONTH_COLUMNS))

IMPORT_COLUMNS = [COL_NAME, COL_TM, COL_IC, COL_GRADE, COL_CLASS] + list(SLOT_COLUMNS.values()) + [COL_REMARKS]

# Excel row number of the first data row (row 1 is the header)
FIRST_DATA_ROW = 2

# "White Grade" may be written as just "White"
GRADE_SUFFIX = " Grade"

DATE_FORMAT = "%Y-%m-%d"
DATE_FORMAT_LABEL = "YYYY-MM-DD"

STUDENTS_SHEET = "Students"
GRADES_SHEET = "Grades"
CLASSES_SHEET = "Classes"
