from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from dormitory import models, repositories
from dormitory.database import make_engine, create_db_and_tables, get_session
from dormitory.main import app


@pytest.fixture
def engine(tmp_path):
    """A fresh SQLite database file per test."""
    db_engine = make_engine(f"sqlite:///{tmp_path / 'dormitory.db'}")
    create_db_and_tables(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def client(engine):
    def _session_override():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _session_override
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def add_room(engine):
    def _add(room_number: str, capacity: int) -> int:
        with Session(engine) as s:
            room = repositories.RoomRepository(s).create(models.Room(room_number=room_number, capacity=capacity))
            s.commit()
            return room.room_id
    return _add


@pytest.fixture
def add_student(engine):
    def _add(full_name: str = "Olena Petrenko") -> int:
        with Session(engine) as s:
            student = repositories.StudentRepository(s).create(models.Student(
                full_name=full_name,
                birth_date=date(2004, 3, 14),
                gender="F",
                phone="+380501234567",
                university_group="CS-21",
                passport_number="AB123456",
            ))
            s.commit()
            return student.student_id
    return _add
