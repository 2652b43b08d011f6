"""SQLModel data models.

This module defines the dormitory tables using SQLModel. Table and
column names match the relational schema the API exposes (`students`,
`rooms`, `settlements`, `payments`), so rows serialize to JSON with the
same keys clients already use.
"""

from typing import Optional
from datetime import date
from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field


class Student(SQLModel, table=True):
    """A resident (or prospective resident) of the dormitory.

    Deleting a student removes its settlement and payments first; that
    cascade lives in `SettlementService.delete_student_cascade`, not in
    the schema.
    """
    __tablename__ = "students"

    student_id: Optional[int] = Field(default=None, primary_key=True)
    full_name: str
    birth_date: date
    gender: str
    phone: str
    university_group: str
    passport_number: str


class Room(SQLModel, table=True):
    """A room identified externally by `room_number`.

    `room_id` is internal and never accepted from API callers.
    """
    __tablename__ = "rooms"
    __table_args__ = (CheckConstraint("capacity > 0", name="ck_rooms_capacity_positive"),)

    room_id: Optional[int] = Field(default=None, primary_key=True)
    room_number: str = Field(index=True, unique=True, nullable=False)
    capacity: int


class Settlement(SQLModel, table=True):
    """A student occupying a room since `settle_date`.

    `student_id` is unique: a student holds at most one settlement.
    """
    __tablename__ = "settlements"

    settlement_id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key="students.student_id", unique=True, nullable=False)
    room_id: int = Field(foreign_key="rooms.room_id", index=True, nullable=False)
    settle_date: date


class Payment(SQLModel, table=True):
    """A payment made by a student."""
    __tablename__ = "payments"

    payment_id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key="students.student_id", index=True, nullable=False)
    payment_date: date
    amount: float
    payment_method: str
