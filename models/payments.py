"""
Payment ledger table.
One row per (student, year, slot). Slot 0 is the annual renewal,
slots 1-12 are the calendar months. A row whose payment_date is NULL
means "not paid" and is treated exactly like a missing row.
"""
from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
import datetime
from database import Base


class PaymentRecord(Base):
    __tablename__ = "payment_records"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)          # 0 = renewal, 1-12 = monthly dues
    payment_date = Column(Date, nullable=True)       # NULL = unpaid

    created_at = Column(DateTime, default=datetime.datetime.now)
    updated_at = Column(DateTime, default=datetime.datetime.now, onupdate=datetime.datetime.now)

    # Upsert key: at most one record per student per year per slot
    __table_args__ = (
        UniqueConstraint("student_id", "year", "month", name="uq_payment_student_year_month"),
        CheckConstraint("month >= 0 AND month <= 12", name="ck_payment_month_range"),
    )

    student = relationship("models.students.Student", back_populates="payment_records")

    @property
    def is_paid(self):
        return self.payment_date is not None
