import calendar
from collections import Counter
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field, field_validator

from medibook import appointments as appointment_service
from medibook.auth.dependencies import get_optional_user, get_store, require_roles
from medibook.auth.session import CurrentUser
from medibook.booking import (
    WEEKDAY_LABELS,
    BookingForm,
    BookingOutcome,
    CalendarCell,
    calendar_cells,
    shift_month,
)
from medibook.core.errors import LoginRequired, NotFound
from medibook.profiles import ProfileEditSession
from medibook.records import AppointmentRecord, DayAvailability, DoctorRecord
from medibook.store import DocumentStore

router = APIRouter(tags=['doctors'])


class SpecialtyResponse(BaseModel):
    specialty: str
    doctor_count: int


class MonthCalendarResponse(BaseModel):
    year: int
    month: int
    month_name: str
    weekdays: list[str]
    cells: list[CalendarCell | None]
    previous: tuple[int, int]
    next: tuple[int, int]


class DoctorProfileResponse(BaseModel):
    doctor: DoctorRecord
    calendar: MonthCalendarResponse
    selected_date: date | None = None
    slots: list[str] = Field(default_factory=list)


class BookingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    selected_date: date | None = Field(default=None, alias='date')
    time: str | None = None

    @field_validator('time')
    @classmethod
    def validate_time(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class DoctorDashboardResponse(BaseModel):
    doctor: DoctorRecord | None = None
    appointments: list[AppointmentRecord]


class DoctorProfileUpdate(BaseModel):
    name: str | None = None
    specialty: str | None = None
    qualification: str | None = None
    consultation_fee: float | None = Field(default=None, ge=0)
    bio: str | None = None
    profile_image: str | None = None
    experience: int | None = Field(default=None, ge=0)
    clinic_name: str | None = None
    clinic_city: str | None = None
    availability: list[DayAvailability] | None = None
    expected_version: int | None = None
    force: bool = False

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name cannot be empty.')
        return normalized

    @field_validator('availability')
    @classmethod
    def validate_availability(cls, value: list[DayAvailability] | None) -> list[DayAvailability] | None:
        if value is None:
            return None
        seen: set[date] = set()
        for entry in value:
            if entry.date in seen:
                raise ValueError(f'{entry.date.isoformat()} is listed more than once.')
            seen.add(entry.date)
        return value

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude={'expected_version', 'force'})


class DoctorEditResponse(BaseModel):
    doctor: DoctorRecord
    needs_onboarding: bool


def _load_doctor(store: DocumentStore, doctor_id: str) -> DoctorRecord:
    doctor = store.get('doctors', doctor_id)
    if doctor is None:
        raise NotFound('Doctor not found')
    return doctor


def _save_profile(store: DocumentStore, doctor_id: str, user: CurrentUser, data: DoctorProfileUpdate) -> DoctorRecord:
    with ProfileEditSession(store, doctor_id, user, base_version=data.expected_version) as session:
        session.edit(**data.changes())
        return session.save(force=data.force)


def _edit_response(doctor: DoctorRecord) -> DoctorEditResponse:
    return DoctorEditResponse(doctor=doctor, needs_onboarding=not doctor.specialty)


@router.get('/specialties', response_model=list[SpecialtyResponse])
def list_specialties(store: DocumentStore = Depends(get_store)):
    counts = Counter(doctor.specialty for doctor in store.list('doctors') if doctor.specialty)
    return [
        SpecialtyResponse(specialty=specialty, doctor_count=count)
        for specialty, count in sorted(counts.items())
    ]


@router.get('/doctors', response_model=list[DoctorRecord])
def list_doctors(
    specialty: str | None = Query(default=None),
    search: str | None = Query(default=None),
    store: DocumentStore = Depends(get_store),
):
    doctors = store.list('doctors')

    if specialty:
        wanted = specialty.strip().lower()
        doctors = [doctor for doctor in doctors if (doctor.specialty or '').lower() == wanted]

    if search:
        needle = search.strip().lower()
        doctors = [
            doctor for doctor in doctors
            if needle in (doctor.name or '').lower() or needle in (doctor.specialty or '').lower()
        ]

    return sorted(doctors, key=lambda doctor: (doctor.name or '').lower())


@router.get('/doctors/{doctor_id}', response_model=DoctorProfileResponse)
def get_doctor_profile(
    doctor_id: str,
    year: int | None = Query(default=None, ge=1, le=9999),
    month: int | None = Query(default=None, ge=1, le=12),
    selected: date | None = Query(default=None, alias='date'),
    store: DocumentStore = Depends(get_store),
):
    doctor = _load_doctor(store, doctor_id)
    today = date.today()
    year = year or today.year
    month = month or today.month

    form = BookingForm(doctor, today=today)
    if selected is not None:
        form.select_date(selected)

    return DoctorProfileResponse(
        doctor=doctor,
        calendar=MonthCalendarResponse(
            year=year,
            month=month,
            month_name=calendar.month_name[month],
            weekdays=list(WEEKDAY_LABELS),
            cells=calendar_cells(doctor, year, month, today, form.selected_date),
            previous=shift_month(year, month, -1),
            next=shift_month(year, month, 1),
        ),
        selected_date=form.selected_date,
        slots=form.slots,
    )


@router.post(
    '/doctors/{doctor_id}/appointments',
    response_model=BookingOutcome,
    status_code=status.HTTP_201_CREATED,
)
def book_appointment(
    doctor_id: str,
    data: BookingRequest,
    user: CurrentUser | None = Depends(get_optional_user),
    store: DocumentStore = Depends(get_store),
):
    if user is None:
        raise LoginRequired('Please log in to book an appointment.')

    form = BookingForm(_load_doctor(store, doctor_id))
    if data.selected_date is not None:
        form.select_date(data.selected_date)
    if data.time is not None and form.selected_date is not None:
        form.select_slot(data.time)

    outcome = form.confirm(user, store)
    if outcome.status == 'error':
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=outcome.message,
        )
    return outcome


@router.get('/doctor/dashboard', response_model=DoctorDashboardResponse)
def doctor_dashboard(
    user: CurrentUser = Depends(require_roles('doctor')),
    store: DocumentStore = Depends(get_store),
):
    return DoctorDashboardResponse(
        doctor=store.get('doctors', user.uid),
        appointments=appointment_service.list_for_doctor(store, user.uid),
    )


@router.delete('/doctor/dashboard/appointments/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def doctor_cancel_appointment(
    appointment_id: str,
    user: CurrentUser = Depends(require_roles('doctor')),
    store: DocumentStore = Depends(get_store),
):
    appointment_service.cancel_appointment(store, appointment_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get('/doctor/onboarding', response_model=DoctorEditResponse)
def get_onboarding(
    user: CurrentUser = Depends(require_roles('doctor')),
    store: DocumentStore = Depends(get_store),
):
    return _edit_response(_load_doctor(store, user.uid))


@router.put('/doctor/onboarding', response_model=DoctorEditResponse)
def complete_onboarding(
    data: DoctorProfileUpdate,
    user: CurrentUser = Depends(require_roles('doctor')),
    store: DocumentStore = Depends(get_store),
):
    return _edit_response(_save_profile(store, user.uid, user, data))


@router.get('/doctor/edit/{doctor_id}', response_model=DoctorEditResponse)
def get_doctor_edit(
    doctor_id: str,
    user: CurrentUser = Depends(require_roles('doctor')),
    store: DocumentStore = Depends(get_store),
):
    return _edit_response(_load_doctor(store, doctor_id))


@router.put('/doctor/edit/{doctor_id}', response_model=DoctorEditResponse)
def update_doctor_profile(
    doctor_id: str,
    data: DoctorProfileUpdate,
    user: CurrentUser = Depends(require_roles('doctor')),
    store: DocumentStore = Depends(get_store),
):
    return _edit_response(_save_profile(store, doctor_id, user, data))
