import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db, enable_sqlite_foreign_keys
from main import app
from models.masters import GradeMaster, ClassMaster
from schemas.students import StudentIn
from seed import seed_data
from services.students import create_student


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    seed_data(session)
    yield session
    session.close()


@pytest.fixture
def client(db, session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def grades(db):
    return {g.grade_name: g.id for g in db.query(GradeMaster).all()}


@pytest.fixture
def classes(db):
    return {c.class_name: c.id for c in db.query(ClassMaster).all()}


@pytest.fixture
def make_student(db, grades, classes):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        fields = {
            "name": f"Student {n}",
            "tm_number": f"TM{n:04d}",
            "ic_number": f"IC{n:08d}",
            "current_grade_id": grades["White Grade"],
            "class_id": classes["MAIN CLASS"],
        }
        fields.update(overrides)
        return create_student(StudentIn(**fields), db)

    return _make
