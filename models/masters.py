from sqlalchemy import Column, Integer, String, DateTime
import datetime
from database import Base


# 1. GRADE TABLE (reference data, seeded)
class GradeMaster(Base):
    __tablename__ = "grades"
    id = Column(Integer, primary_key=True, index=True)
    grade_name = Column(String(50), unique=True, nullable=False)   # e.g. "White Grade"
    grade_level = Column(String(10), nullable=False)               # "0".."9", "1D".. for dan ranks
    created_at = Column(DateTime, default=datetime.datetime.now)

    @property
    def badge_tier(self):
        level = self.grade_level or ""
        if "D" in level.upper():
            return "dan"
        if level >= "7":
            return "yellow"
        if level >= "5":
            return "green"
        if level >= "3":
            return "blue"
        if level >= "1":
            return "red"
        return "white"


# 2. CLASS TABLE
class ClassMaster(Base):
    __tablename__ = "classes"
    id = Column(Integer, primary_key=True, index=True)
    class_name = Column(String(100), unique=True, index=True, nullable=False)  # always upper-case
    created_at = Column(DateTime, default=datetime.datetime.now)
