from pydantic import BaseModel
from typing import Optional


class ClassIn(BaseModel):
    class_name: Optional[str] = None


class ClassSchema(BaseModel):
    id: int
    class_name: str

    class Config:
        from_attributes = True


class GradeSchema(BaseModel):
    id: int
    grade_name: str
    grade_level: str
    badge_tier: str

    class Config:
        from_attributes = True
