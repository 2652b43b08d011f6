"""Business logic services used by HTTP controllers.

Services coordinate repositories and own the unit of work: every public
method either commits what it staged or rolls the session back before
raising. Domain failures are raised as `dormitory.exceptions` types;
unexpected database failures are logged and re-raised as `StoreError`.
"""

import logging
from datetime import date
from typing import List
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session
from . import models, repositories
from .exceptions import (
    ConflictError,
    ErrorCode,
    InvalidReferenceError,
    NotFoundError,
    StoreError,
    classify_integrity_error,
)

logger = logging.getLogger("dormitory.services")


class SettlementService:
    """Assign students to rooms, evict them, and delete students with their records.

    The two invariants guarded here are that a student holds at most one
    settlement and that a room never holds more settlements than its
    capacity.
    """
    def __init__(self, session: Session):
        self.session = session
        self.student_repo = repositories.StudentRepository(session)
        self.room_repo = repositories.RoomRepository(session)
        self.settlement_repo = repositories.SettlementRepository(session)
        self.payment_repo = repositories.PaymentRepository(session)

    def assign(self, student_id: int, room_number: str, settle_date: date) -> models.Settlement:
        """Settle `student_id` into the room known as `room_number`.

        Checks run in this order, each with its own error: the student
        exists, the student is not settled yet, the room exists, the room
        has a free place. The room row is locked for the rest of the
        transaction so two concurrent assignments cannot both see the
        last free place. Everything, including the insert, is one
        transaction; on any failure nothing is written.
        """
        try:
            if not self.student_repo.exists(student_id):
                raise NotFoundError("Student not found", ErrorCode.STUDENT_NOT_FOUND, status_code=400)
            if self.settlement_repo.get_for_student(student_id) is not None:
                raise ConflictError("Student is already settled in a room", ErrorCode.ALREADY_SETTLED)
            room = self.room_repo.get_by_number(room_number, lock=True)
            if room is None:
                raise NotFoundError("Room with this number not found", ErrorCode.ROOM_NOT_FOUND, status_code=400)
            if self.settlement_repo.count_for_room(room.room_id) >= room.capacity:
                raise ConflictError("Room is fully occupied", ErrorCode.ROOM_FULL)
            settlement = self.settlement_repo.create(
                models.Settlement(student_id=student_id, room_id=room.room_id, settle_date=settle_date)
            )
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            kind = classify_integrity_error(exc)
            logger.warning("settlement insert rejected by database (%s): %s", kind, exc.orig)
            if kind == "unique":
                raise ConflictError(
                    "Student is already settled or the room is occupied", ErrorCode.DUPLICATE_ENTRY
                ) from exc
            if kind == "foreign_key":
                raise InvalidReferenceError("Invalid student ID", "student_id") from exc
            raise StoreError() from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("failed to settle student %s into room %s", student_id, room_number)
            raise StoreError() from exc
        except Exception:
            self.session.rollback()
            raise
        logger.info("settled student %s into room %s", student_id, room_number)
        return settlement

    def evict(self, student_id: int) -> bool:
        """Remove the student's settlement. Returns False if there was none."""
        try:
            removed = self.settlement_repo.delete_for_student(student_id)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("failed to evict student %s", student_id)
            raise StoreError() from exc
        if removed:
            logger.info("evicted student %s", student_id)
        return removed > 0

    def delete_student_cascade(self, student_id: int) -> bool:
        """Delete a student together with their settlement and payments.

        The three deletions form one transaction: if any of them fails the
        session is rolled back and the student, settlement and payments are
        left exactly as they were. Returns whether the student existed.
        """
        try:
            settlements = self.settlement_repo.delete_for_student(student_id)
            payments = self.payment_repo.delete_for_student(student_id)
            deleted = self.student_repo.delete(student_id)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("failed to delete student %s", student_id)
            raise StoreError() from exc
        except Exception:
            self.session.rollback()
            raise
        if deleted:
            logger.info(
                "deleted student %s (settlements=%d, payments=%d)", student_id, settlements, payments
            )
        return deleted > 0


class StudentService:
    """Add and list students."""
    def __init__(self, session: Session):
        self.session = session
        self.student_repo = repositories.StudentRepository(session)

    def add(self, full_name: str, birth_date: date, gender: str, phone: str,
            university_group: str, passport_number: str) -> models.Student:
        student = models.Student(
            full_name=full_name,
            birth_date=birth_date,
            gender=gender,
            phone=phone,
            university_group=university_group,
            passport_number=passport_number,
        )
        try:
            student = self.student_repo.create(student)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("failed to add student")
            raise StoreError("Failed to add student") from exc
        return student

    def list_students(self) -> List[models.Student]:
        return self.student_repo.list_all()


class PaymentService:
    """Record and list payments."""
    def __init__(self, session: Session):
        self.session = session
        self.payment_repo = repositories.PaymentRepository(session)

    def add(self, student_id: int, payment_date: date, amount: float, payment_method: str) -> models.Payment:
        """Record a payment. Only the database's foreign key validates `student_id`."""
        payment = models.Payment(
            student_id=student_id,
            payment_date=payment_date,
            amount=amount,
            payment_method=payment_method,
        )
        try:
            payment = self.payment_repo.create(payment)
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            if classify_integrity_error(exc) == "foreign_key":
                raise InvalidReferenceError("Invalid student ID", "student_id") from exc
            logger.exception("failed to add payment for student %s", student_id)
            raise StoreError("Failed to add payment") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("failed to add payment for student %s", student_id)
            raise StoreError("Failed to add payment") from exc
        return payment

    def list_payments(self) -> List[models.Payment]:
        return self.payment_repo.list_all()

    def list_for_student(self, student_id: int) -> List[dict]:
        return self.payment_repo.list_for_student(student_id)


class StatisticsService:
    """Headline counters for the dashboard.

    The three counts are independent reads and are not a consistent
    snapshot of each other.
    """
    def __init__(self, session: Session):
        self.session = session

    def get_statistics(self) -> dict:
        return {
            'totalStudents': repositories.StudentRepository(self.session).count(),
            'totalSettlements': repositories.SettlementRepository(self.session).count(),
            'totalPayments': repositories.PaymentRepository(self.session).count(),
        }
