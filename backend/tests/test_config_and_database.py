import argparse
from datetime import date

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from dormitory import models
from dormitory.repositories import RoomRepository
from dormitory.config import Settings
from dormitory.database import make_engine, init_database
from dormitory.exceptions import StartupError, classify_integrity_error
from scripts.seed_rooms import parse_room, seed


def test_settings_reject_sqlite_outside_dev(monkeypatch):
    monkeypatch.setenv("ENV", "prod")
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("ALLOW_SQLITE", raising=False)
    with pytest.raises(RuntimeError):
        Settings()
    monkeypatch.setenv("ALLOW_SQLITE", "true")
    assert Settings().ENV == "prod"


def test_settings_reject_non_positive_pool_timeout(monkeypatch):
    monkeypatch.setenv("DB_POOL_TIMEOUT", "0")
    with pytest.raises(RuntimeError):
        Settings()


def test_settings_parse_cors_origins(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:63342, http://localhost:3000")
    assert Settings().CORS_ORIGINS == ["http://localhost:63342", "http://localhost:3000"]


class _PgError(Exception):
    pgcode = "23505"


class _MySQLError(Exception):
    pass


def test_classify_integrity_error_by_code_and_message():
    assert classify_integrity_error(_PgError("duplicate key")) == "unique"
    assert classify_integrity_error(_MySQLError(1452, "Cannot add or update a child row")) == "foreign_key"
    assert classify_integrity_error(_MySQLError(1062, "Duplicate entry '7'")) == "unique"
    wrapped = IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed"))
    assert classify_integrity_error(wrapped) == "foreign_key"
    assert classify_integrity_error(Exception("NOT NULL constraint failed")) is None


def test_init_database_creates_tables(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'fresh.db'}")
    init_database(engine)
    tables = set(inspect(engine).get_table_names())
    assert {"students", "rooms", "settlements", "payments"} <= tables
    engine.dispose()


def test_init_database_failure_is_a_startup_error(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'missing' / 'dir' / 'app.db'}")
    with pytest.raises(StartupError):
        init_database(engine)
    engine.dispose()


def test_sqlite_engine_enforces_foreign_keys(session):
    session.add(models.Payment(student_id=404, payment_date=date(2024, 1, 1), amount=1.0, payment_method="cash"))
    with pytest.raises(IntegrityError):
        session.flush()
    session.rollback()


def test_room_capacity_must_be_positive(session):
    session.add(models.Room(room_number="000", capacity=0))
    with pytest.raises(IntegrityError):
        session.flush()
    session.rollback()


def test_seed_rooms_skips_existing(tmp_path):
    url = f"sqlite:///{tmp_path / 'seed.db'}"
    first = seed([("101", 2), ("102", 3)], url)
    assert first == {'created': ['101', '102'], 'skipped': []}
    second = seed([("102", 3), ("103", 1)], url)
    assert second == {'created': ['103'], 'skipped': ['102']}

    engine = make_engine(url)
    with Session(engine) as s:
        assert [r.room_number for r in RoomRepository(s).list_all()] == ['101', '102', '103']
    engine.dispose()


def test_parse_room_argument():
    assert parse_room("101:2") == ("101", 2)
    for bad in ("101", "101:x", "101:0", ":3"):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_room(bad)


def test_settings_reject_non_numeric_pool_timeout(monkeypatch):
    monkeypatch.setenv("DB_POOL_TIMEOUT", "ten")
    with pytest.raises(RuntimeError):
        Settings()
