"""Repository classes encapsulating database operations.

Each repository is small and focused on a single table (students,
rooms, settlements, payments). Repositories share the caller's `Session`
and only `flush`; committing or rolling back is the job of the service
that owns the unit of work, so several repository calls can form one
transaction.
"""

from typing import List, Optional
from sqlmodel import Session, select, col
from sqlalchemy import func
from . import models


class StudentRepository:
    """CRUD operations for `Student` rows."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, student: models.Student) -> models.Student:
        """Stage a new student and flush so its `student_id` is assigned."""
        self.session.add(student)
        self.session.flush()
        self.session.refresh(student)
        return student

    def get(self, student_id: int) -> Optional[models.Student]:
        return self.session.get(models.Student, student_id)

    def exists(self, student_id: int) -> bool:
        stmt = select(models.Student.student_id).where(models.Student.student_id == student_id)
        return self.session.exec(stmt).first() is not None

    def list_all(self) -> List[models.Student]:
        """Return every student ordered by `student_id`."""
        stmt = select(models.Student).order_by(col(models.Student.student_id))
        return self.session.exec(stmt).all()

    def delete(self, student_id: int) -> int:
        """Delete the student row and return the number of rows removed."""
        student = self.get(student_id)
        if student is None:
            return 0
        self.session.delete(student)
        self.session.flush()
        return 1

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.Student)).one()


class RoomRepository:
    """Room lookups by internal id and by business key (`room_number`)."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, room: models.Room) -> models.Room:
        """Stage a new room. Only used by seeding and tests; the API never creates rooms."""
        self.session.add(room)
        self.session.flush()
        self.session.refresh(room)
        return room

    def get_by_number(self, room_number: str, lock: bool = False) -> Optional[models.Room]:
        """Resolve a room by its `room_number`.

        With `lock=True` the row is selected `FOR UPDATE` so concurrent
        assignments to the same room serialize on it until the surrounding
        transaction ends. Dialects without row locks (sqlite) ignore it.
        """
        stmt = select(models.Room).where(models.Room.room_number == room_number)
        if lock:
            stmt = stmt.with_for_update()
        return self.session.exec(stmt).first()

    def list_all(self) -> List[models.Room]:
        stmt = select(models.Room).order_by(col(models.Room.room_id))
        return self.session.exec(stmt).all()

    def list_available(self) -> List[dict]:
        """Return rooms with free places and their occupancy.

        Occupancy is an outer join against settlements grouped by room,
        so rooms nobody lives in count as `occupied_count == 0`. Ordered
        by `room_number`.
        """
        occupied = (
            select(models.Settlement.room_id, func.count().label("occupant_count"))
            .group_by(models.Settlement.room_id)
            .subquery()
        )
        occupied_count = func.coalesce(occupied.c.occupant_count, 0)
        available_spots = models.Room.capacity - occupied_count
        stmt = (
            select(
                models.Room.room_id,
                models.Room.room_number,
                models.Room.capacity,
                occupied_count.label("occupied_count"),
                available_spots.label("available_spots"),
            )
            .outerjoin(occupied, models.Room.room_id == occupied.c.room_id)
            .where(available_spots > 0)
            .order_by(col(models.Room.room_number))
        )
        return [dict(row._mapping) for row in self.session.exec(stmt)]


class SettlementRepository:
    """Queries over `Settlement` rows."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, settlement: models.Settlement) -> models.Settlement:
        self.session.add(settlement)
        self.session.flush()
        self.session.refresh(settlement)
        return settlement

    def get_for_student(self, student_id: int) -> Optional[models.Settlement]:
        stmt = select(models.Settlement).where(models.Settlement.student_id == student_id)
        return self.session.exec(stmt).first()

    def count_for_room(self, room_id: int) -> int:
        """Number of students currently settled in `room_id`."""
        stmt = select(func.count()).select_from(models.Settlement).where(models.Settlement.room_id == room_id)
        return self.session.exec(stmt).one()

    def delete_for_student(self, student_id: int) -> int:
        """Delete the student's settlement rows and return how many were removed."""
        rows = self.session.exec(
            select(models.Settlement).where(models.Settlement.student_id == student_id)
        ).all()
        for row in rows:
            self.session.delete(row)
        self.session.flush()
        return len(rows)

    def list_detailed(self) -> List[dict]:
        """Settlements with the student's name and the room number, newest first."""
        stmt = (
            select(
                models.Settlement.student_id,
                models.Student.full_name,
                models.Room.room_number,
                models.Settlement.settle_date,
            )
            .join(models.Student, models.Settlement.student_id == models.Student.student_id)
            .join(models.Room, models.Settlement.room_id == models.Room.room_id)
            .order_by(col(models.Settlement.settle_date).desc(), col(models.Settlement.settlement_id).desc())
        )
        return [dict(row._mapping) for row in self.session.exec(stmt)]

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.Settlement)).one()


class PaymentRepository:
    """Persist and query `Payment` rows."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, payment: models.Payment) -> models.Payment:
        self.session.add(payment)
        self.session.flush()
        self.session.refresh(payment)
        return payment

    def list_all(self) -> List[models.Payment]:
        """All payments, most recent `payment_date` first."""
        stmt = select(models.Payment).order_by(
            col(models.Payment.payment_date).desc(), col(models.Payment.payment_id).desc()
        )
        return self.session.exec(stmt).all()

    def list_for_student(self, student_id: int) -> List[dict]:
        """Date, amount and method of a student's payments, oldest first."""
        stmt = (
            select(models.Payment.payment_date, models.Payment.amount, models.Payment.payment_method)
            .where(models.Payment.student_id == student_id)
            .order_by(col(models.Payment.payment_date), col(models.Payment.payment_id))
        )
        return [dict(row._mapping) for row in self.session.exec(stmt)]

    def delete_for_student(self, student_id: int) -> int:
        rows = self.session.exec(
            select(models.Payment).where(models.Payment.student_id == student_id)
        ).all()
        for row in rows:
            self.session.delete(row)
        self.session.flush()
        return len(rows)

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.Payment)).one()
