import logging
from database import SessionLocal
from migrations import run_migrations
from models.masters import GradeMaster, ClassMaster

logger = logging.getLogger(__name__)

# grade_level drives the badge colour (see GradeMaster.badge_tier)
GRADES = [
    ("White Grade", "0"),
    ("Red Grade", "1"),
    ("Blue Grade", "3"),
    ("Green Grade", "5"),
    ("Yellow Grade", "7"),
    ("Black Grade", "1D"),
]

CLASSES = ["MAIN CLASS", "MAK MANDIN"]


def seed_data(db):
    added = 0
    for name, level in GRADES:
        exists = db.query(GradeMaster).filter_by(grade_name=name).first()
        if not exists:
            db.add(GradeMaster(grade_name=name, grade_level=level))
            added += 1

    for c_name in CLASSES:
        exists = db.query(ClassMaster).filter_by(class_name=c_name).first()
        if not exists:
            db.add(ClassMaster(class_name=c_name))
            added += 1

    db.commit()
    return added


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_migrations()
    db = SessionLocal()
    try:
        logger.info("Seeded %d reference rows", seed_data(db))
    finally:
        db.close()
