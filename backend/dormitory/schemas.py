"""Pydantic request schemas used by the API.

Request bodies keep the camelCase keys the admin frontend sends
(`birthDate`, `studentId`, ...) as aliases; handlers read the
snake_case attributes.
"""

from datetime import date
from pydantic import BaseModel, ConfigDict, Field, field_validator

# largest id a signed 64-bit INTEGER column can hold
MAX_ID = 2**63 - 1


class StudentIn(BaseModel):
    """Payload for adding a student."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    birth_date: date = Field(alias='birthDate')
    gender: str
    phone: str
    group: str
    passport: str


class SettlementIn(BaseModel):
    """Payload for settling a student into a room by its number."""
    model_config = ConfigDict(populate_by_name=True)

    student_id: int = Field(alias='studentId', le=MAX_ID)
    room_number: str = Field(alias='roomNumber', min_length=1)
    settle_date: date = Field(alias='settleDate')

    @field_validator('room_number', mode='before')
    @classmethod
    def _room_number_as_text(cls, value):
        # frontends send 101 as often as "101"
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class PaymentIn(BaseModel):
    """Payload for recording a payment."""
    model_config = ConfigDict(populate_by_name=True)

    student_id: int = Field(alias='studentId', le=MAX_ID)
    payment_date: date = Field(alias='paymentDate')
    amount: float
    payment_method: str = Field(alias='paymentMethod')
