from pydantic import BaseModel
from datetime import date
from typing import Optional


# 1. Mark / unmark a slot. Either month-keyed (1-12) or renewal, never both.
class PaymentUpsert(BaseModel):
    student_id: int
    year: int
    month: Optional[int] = None
    payment_date: Optional[date] = None
    renewal_date: Optional[date] = None


# 2. Edit a single record by its own id
class PaymentUpdate(BaseModel):
    id: int
    payment_date: Optional[date] = None


class PaymentRecordSchema(BaseModel):
    id: int
    student_id: int
    year: int
    month: int
    payment_date: Optional[date] = None

    class Config:
        from_attributes = True
