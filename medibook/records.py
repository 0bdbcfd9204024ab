"""Typed records exchanged with the document store.

Every record carries a ``kind`` tag so a listing never has to guess what shape
it is holding.
"""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ROLES = ('patient', 'doctor', 'admin')
DEFAULT_RATING = 4.5

Role = Literal['patient', 'doctor', 'admin']
AppointmentStatus = Literal['scheduled', 'cancelled']


class StoreRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class DayAvailability(BaseModel):
    date: date
    slots: list[str] = Field(default_factory=list)

    @field_validator('slots')
    @classmethod
    def validate_slots(cls, value: list[str]) -> list[str]:
        return [slot.strip() for slot in value if slot and slot.strip()]


class UserRecord(StoreRecord):
    kind: Literal['user'] = 'user'
    uid: str
    email: str
    name: str = ''
    role: Role
    created_at: datetime | None = None


class DoctorRecord(StoreRecord):
    kind: Literal['doctor'] = 'doctor'
    uid: str
    name: str = ''
    email: str | None = None
    specialty: str | None = None
    qualification: str | None = None
    consultation_fee: float = 0
    bio: str | None = None
    profile_image: str | None = None
    experience: int | None = None
    clinic_name: str | None = None
    clinic_city: str | None = None
    availability: list[DayAvailability] = Field(default_factory=list)
    rating: float = DEFAULT_RATING
    reviews: int = 0
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator('consultation_fee', mode='before')
    @classmethod
    def validate_fee(cls, value):
        if value is None:
            return 0
        if float(value) < 0:
            raise ValueError('Consultation fee cannot be negative.')
        return value

    @field_validator('availability', mode='before')
    @classmethod
    def default_availability(cls, value):
        return value or []

    @field_validator('rating', mode='before')
    @classmethod
    def default_rating(cls, value):
        return DEFAULT_RATING if value is None else value

    @field_validator('reviews', 'version', mode='before')
    @classmethod
    def default_counter(cls, value, info):
        if value is None:
            return 1 if info.field_name == 'version' else 0
        return value


class PatientRecord(StoreRecord):
    kind: Literal['patient'] = 'patient'
    uid: str
    name: str = ''
    email: str | None = None
    created_at: datetime | None = None


class AdminRecord(StoreRecord):
    kind: Literal['admin'] = 'admin'
    uid: str
    name: str = ''
    email: str | None = None
    created_at: datetime | None = None


class AppointmentRecord(StoreRecord):
    kind: Literal['appointment'] = 'appointment'
    id: str
    doctor_id: str
    doctor_name: str | None = None
    doctor_specialty: str | None = None
    patient_id: str
    patient_name: str | None = None
    date: date
    time: str
    status: AppointmentStatus = 'scheduled'
    fee: float = 0
    created_at: datetime | None = None


Record = UserRecord | DoctorRecord | PatientRecord | AdminRecord | AppointmentRecord
