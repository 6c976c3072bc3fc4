from pydantic import BaseModel
from typing import Optional, Union


# Everything optional on purpose: missing fields are reported by the
# registry as a 400 with a readable message, not as a pydantic 422.
class StudentIn(BaseModel):
    name: Optional[str] = None
    tm_number: Optional[str] = None
    ic_number: Optional[str] = None
    current_grade_id: Optional[Union[int, str]] = None
    class_id: Optional[Union[int, str]] = None
    remarks: Optional[str] = None
