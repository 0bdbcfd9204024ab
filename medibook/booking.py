"""Doctor availability calendar and the appointment booking form.

A doctor publishes an ordered list of dates, each with its own slot labels. The
patient picks a date from a month calendar, then one of that date's slots, and
confirms. Slots are the doctor's static data: booking one does not take it off
the list.
"""

import calendar
import logging
from datetime import date
from typing import Literal

from pydantic import BaseModel

from medibook.auth.session import CurrentUser
from medibook.core import config
from medibook.core.errors import LoginRequired, StoreUnavailable, ValidationFailed
from medibook.records import AppointmentRecord, DayAvailability, DoctorRecord
from medibook.store import DocumentStore

logger = logging.getLogger(__name__)

DASHBOARD_PATH = '/dashboard'
SCHEDULED = 'scheduled'
WEEKDAY_LABELS = ('Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat')


class CalendarCell(BaseModel):
    date: date
    available: bool
    selectable: bool
    selected: bool


class BookingOutcome(BaseModel):
    status: Literal['success', 'error']
    message: str
    appointment: AppointmentRecord | None = None
    redirect_to: str | None = None
    redirect_after_seconds: float | None = None


def month_calendar(year: int, month: int) -> list[date | None]:
    """Every date of the month, led by ``None`` cells up to its Sunday-first column."""
    if not 1 <= month <= 12:
        raise ValueError(f'Month must be between 1 and 12, got {month}.')

    first = date(year, month, 1)
    leading_blanks = (first.weekday() + 1) % 7
    _, days_in_month = calendar.monthrange(year, month)

    cells: list[date | None] = [None] * leading_blanks
    cells.extend(date(year, month, day) for day in range(1, days_in_month + 1))
    return cells


def shift_month(year: int, month: int, step: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + step
    return index // 12, index % 12 + 1


def available_dates(availability: list[DayAvailability]) -> set[date]:
    return {entry.date for entry in availability}


def is_selectable(day: date, availability: list[DayAvailability], today: date) -> bool:
    return day in available_dates(availability) and day >= today


def slots_for(availability: list[DayAvailability], day: date | None) -> list[str]:
    if day is None:
        return []
    for entry in availability:
        if entry.date == day:
            return list(entry.slots)
    return []


def calendar_cells(
    doctor: DoctorRecord,
    year: int,
    month: int,
    today: date,
    selected: date | None = None,
) -> list[CalendarCell | None]:
    offered = available_dates(doctor.availability)
    cells: list[CalendarCell | None] = []
    for day in month_calendar(year, month):
        if day is None:
            cells.append(None)
            continue
        cells.append(
            CalendarCell(
                date=day,
                available=day in offered,
                selectable=day in offered and day >= today,
                selected=day == selected,
            )
        )
    return cells


class BookingForm:
    """Selection state for one visit to a doctor's profile."""

    def __init__(self, doctor: DoctorRecord, today: date | None = None):
        self.doctor = doctor
        self.today = today or date.today()
        self.selected_date: date | None = None
        self.selected_time: str | None = None
        self.in_flight = False
        self.status: Literal['success', 'error'] | None = None

    @property
    def slots(self) -> list[str]:
        return slots_for(self.doctor.availability, self.selected_date)

    @property
    def can_confirm(self) -> bool:
        return bool(self.selected_date and self.selected_time) and not self.in_flight

    def select_date(self, day: date) -> list[str]:
        if not is_selectable(day, self.doctor.availability, self.today):
            raise ValidationFailed('This date is not available for booking.')

        self.selected_date = day
        self.selected_time = None
        return self.slots

    def select_slot(self, label: str) -> None:
        if self.selected_date is None:
            raise ValidationFailed('Select a date first.')
        if label not in self.slots:
            raise ValidationFailed(f'{label} is not offered on {self.selected_date.isoformat()}.')
        self.selected_time = label

    def on_doctor_update(self, doctor: DoctorRecord | None) -> None:
        """Live-subscription hook: keep the selection only while it is still offered."""
        if doctor is None:
            return
        self.doctor = doctor
        if self.selected_date and self.selected_date not in available_dates(doctor.availability):
            self.selected_date = None
            self.selected_time = None
        elif self.selected_time and self.selected_time not in self.slots:
            self.selected_time = None

    def confirm(
        self,
        user: CurrentUser | None,
        store: DocumentStore,
        redirect_after_seconds: float | None = None,
    ) -> BookingOutcome:
        if user is None:
            raise LoginRequired('Please log in to book an appointment.')

        if not self.selected_date or not self.selected_time:
            raise ValidationFailed('Please select a date and time.')

        if self.in_flight:
            raise ValidationFailed('A booking request is already in progress.')

        self.in_flight = True
        self.status = None
        try:
            appointment = store.create('appointments', {
                'doctor_id': self.doctor.uid,
                'doctor_name': self.doctor.name,
                'doctor_specialty': self.doctor.specialty,
                'patient_id': user.uid,
                'patient_name': user.display_name,
                'date': self.selected_date,
                'time': self.selected_time,
                'status': SCHEDULED,
                'fee': self.doctor.consultation_fee,
            })
        except StoreUnavailable:
            logger.warning(
                'Booking failed for doctor %s on %s %s',
                self.doctor.uid,
                self.selected_date,
                self.selected_time,
            )
            self.status = 'error'
            return BookingOutcome(status='error', message='Failed to book.')
        finally:
            self.in_flight = False

        self.status = 'success'
        logger.info('Appointment %s booked with doctor %s', appointment.id, self.doctor.uid)
        if redirect_after_seconds is None:
            redirect_after_seconds = config.BOOKING_REDIRECT_DELAY_SECONDS
        return BookingOutcome(
            status='success',
            message='Appointment booked!',
            appointment=appointment,
            redirect_to=DASHBOARD_PATH,
            redirect_after_seconds=redirect_after_seconds,
        )
