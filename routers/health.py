import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from database import get_db
from models.masters import GradeMaster, ClassMaster

router = APIRouter(prefix="/api/v1/health", tags=["Health"])
logger = logging.getLogger(__name__)


@router.get("")
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        grades = db.query(GradeMaster).count()
        classes = db.query(ClassMaster).count()
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        return JSONResponse(status_code=503, content={"success": False, "detail": "Database connection failed"})

    return {
        "success": True,
        "message": "Database connection successful",
        "grades_count": grades,
        "classes_count": classes
    }
