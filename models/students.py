from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
import datetime
from database import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String(40), unique=True, index=True, nullable=False)  # STU-XXXX-XXXXX
    tm_number = Column(String(50), nullable=False, index=True)
    ic_number = Column(String(50), nullable=False, index=True)
    name = Column(String(150), nullable=False)

    current_grade_id = Column(Integer, ForeignKey("grades.id"), nullable=False)
    # Nullable only so a class can be removed from under soft-deleted students
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True)
    remarks = Column(String(500), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.datetime.now)
    updated_at = Column(DateTime, default=datetime.datetime.now, onupdate=datetime.datetime.now)

    # TM / IC numbers are unique among active students only; inactive rows may share them
    __table_args__ = (
        Index(
            "uq_students_active_tm", "tm_number", unique=True,
            sqlite_where=text("is_active = 1"), postgresql_where=text("is_active = true"),
        ),
        Index(
            "uq_students_active_ic", "ic_number", unique=True,
            sqlite_where=text("is_active = 1"), postgresql_where=text("is_active = true"),
        ),
    )

    # --- RELATIONSHIPS ---
    grade_val = relationship("models.masters.GradeMaster")
    class_val = relationship("models.masters.ClassMaster")
    payment_records = relationship(
        "models.payments.PaymentRecord", back_populates="student", order_by="PaymentRecord.month"
    )
