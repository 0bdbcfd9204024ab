from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from medibook.booking import (
    BookingForm,
    calendar_cells,
    is_selectable,
    month_calendar,
    shift_month,
    slots_for,
)
from medibook.core.errors import LoginRequired, ValidationFailed
from medibook.records import DayAvailability

TODAY = date(2025, 6, 1)
JUNE_AVAILABILITY = [
    {'date': '2025-05-30', 'slots': ['09:00']},
    {'date': '2025-06-01', 'slots': ['11:00']},
    {'date': '2025-06-10', 'slots': ['09:00', '10:00']},
    {'date': '2025-06-12', 'slots': ['14:00']},
]


def test_month_calendar_pads_to_sunday_first_column() -> None:
    cells = month_calendar(2025, 6)

    # June 1st 2025 is a Sunday.
    assert cells[0] == date(2025, 6, 1)
    assert len(cells) == 30


def test_month_calendar_leading_blanks_match_weekday() -> None:
    cells = month_calendar(2025, 10)

    # October 1st 2025 is a Wednesday: Sun, Mon, Tue stay empty.
    assert cells[:3] == [None, None, None]
    assert cells[3] == date(2025, 10, 1)
    assert cells[-1] == date(2025, 10, 31)


def test_month_calendar_handles_leap_february() -> None:
    cells = [cell for cell in month_calendar(2024, 2) if cell is not None]

    assert cells[-1] == date(2024, 2, 29)


def test_month_calendar_rejects_invalid_month() -> None:
    with pytest.raises(ValueError):
        month_calendar(2025, 13)


@pytest.mark.parametrize(
    ('year', 'month', 'step', 'expected'),
    [
        (2025, 1, -1, (2024, 12)),
        (2025, 12, 1, (2026, 1)),
        (2025, 6, 1, (2025, 7)),
    ],
)
def test_shift_month_rolls_over_years(year: int, month: int, step: int, expected: tuple[int, int]) -> None:
    assert shift_month(year, month, step) == expected


def test_is_selectable_requires_listed_date_not_in_past() -> None:
    availability = [DayAvailability.model_validate(entry) for entry in JUNE_AVAILABILITY]

    assert is_selectable(date(2025, 6, 10), availability, TODAY)
    assert is_selectable(date(2025, 6, 1), availability, TODAY)
    assert not is_selectable(date(2025, 5, 30), availability, TODAY)
    assert not is_selectable(date(2025, 6, 11), availability, TODAY)


def test_slots_for_unknown_date_is_empty() -> None:
    availability = [DayAvailability.model_validate(entry) for entry in JUNE_AVAILABILITY]

    assert slots_for(availability, date(2025, 6, 10)) == ['09:00', '10:00']
    assert slots_for(availability, date(2025, 6, 11)) == []
    assert slots_for(availability, None) == []


def test_calendar_cells_flag_available_and_selectable(doctor_factory) -> None:
    doctor = doctor_factory(availability=JUNE_AVAILABILITY)

    cells = calendar_cells(doctor, 2025, 5, TODAY, selected=None)
    may_30 = next(cell for cell in cells if cell and cell.date == date(2025, 5, 30))

    assert may_30.available
    assert not may_30.selectable

    june = calendar_cells(doctor, 2025, 6, TODAY, selected=date(2025, 6, 10))
    june_10 = next(cell for cell in june if cell and cell.date == date(2025, 6, 10))
    june_11 = next(cell for cell in june if cell and cell.date == date(2025, 6, 11))

    assert june_10.selectable and june_10.selected
    assert not june_11.available and not june_11.selectable


def test_select_date_clears_previous_slot(doctor_factory) -> None:
    form = BookingForm(doctor_factory(availability=JUNE_AVAILABILITY), today=TODAY)

    form.select_date(date(2025, 6, 10))
    form.select_slot('10:00')
    slots = form.select_date(date(2025, 6, 12))

    assert slots == ['14:00']
    assert form.selected_time is None
    assert not form.can_confirm


def test_reselecting_same_date_still_clears_slot(doctor_factory) -> None:
    form = BookingForm(doctor_factory(availability=JUNE_AVAILABILITY), today=TODAY)

    form.select_date(date(2025, 6, 10))
    form.select_slot('09:00')
    form.select_date(date(2025, 6, 10))

    assert form.selected_time is None


def test_select_date_rejects_past_and_unlisted_dates(doctor_factory) -> None:
    form = BookingForm(doctor_factory(availability=JUNE_AVAILABILITY), today=TODAY)

    with pytest.raises(ValidationFailed):
        form.select_date(date(2025, 5, 30))
    with pytest.raises(ValidationFailed):
        form.select_date(date(2025, 6, 11))

    assert form.selected_date is None


def test_select_slot_requires_offered_label(doctor_factory) -> None:
    form = BookingForm(doctor_factory(availability=JUNE_AVAILABILITY), today=TODAY)

    with pytest.raises(ValidationFailed):
        form.select_slot('09:00')

    form.select_date(date(2025, 6, 10))
    with pytest.raises(ValidationFailed):
        form.select_slot('14:00')


def test_can_confirm_is_false_while_request_in_flight(doctor_factory) -> None:
    form = BookingForm(doctor_factory(availability=JUNE_AVAILABILITY), today=TODAY)
    form.select_date(date(2025, 6, 10))
    form.select_slot('09:00')

    assert form.can_confirm
    form.in_flight = True
    assert not form.can_confirm


def test_confirm_without_user_requires_login_and_writes_nothing(doctor_factory, store) -> None:
    form = BookingForm(doctor_factory(availability=JUNE_AVAILABILITY), today=TODAY)
    form.select_date(date(2025, 6, 10))
    form.select_slot('09:00')

    with pytest.raises(LoginRequired) as exception_info:
        form.confirm(None, store)

    assert exception_info.value.redirect_to == '/auth/login'
    assert store.list('appointments') == []


def test_confirm_without_selection_reports_validation_message(doctor_factory, store, patient_user) -> None:
    form = BookingForm(doctor_factory(availability=JUNE_AVAILABILITY), today=TODAY)
    form.select_date(date(2025, 6, 10))

    with pytest.raises(ValidationFailed) as exception_info:
        form.confirm(patient_user, store)

    assert exception_info.value.message == 'Please select a date and time.'
    assert store.list('appointments') == []


def test_confirm_writes_one_scheduled_appointment(doctor_factory, store, patient_user) -> None:
    doctor = doctor_factory('D', availability=[{'date': '2025-06-10', 'slots': ['09:00', '10:00']}])
    form = BookingForm(doctor, today=TODAY)
    form.select_date(date(2025, 6, 10))
    form.select_slot('09:00')

    outcome = form.confirm(patient_user, store, redirect_after_seconds=2)

    appointments = store.list('appointments')
    assert len(appointments) == 1
    appointment = appointments[0]
    assert appointment.doctor_id == 'D'
    assert appointment.date == date(2025, 6, 10)
    assert appointment.time == '09:00'
    assert appointment.status == 'scheduled'
    assert appointment.fee == 500
    assert appointment.patient_id == 'patient-1'
    assert appointment.patient_name == 'Pat Lee'
    assert appointment.doctor_name == 'Dr. Asha Rao'
    assert outcome.status == 'success'
    assert outcome.redirect_to == '/dashboard'
    assert outcome.redirect_after_seconds == 2
    assert form.status == 'success'
    assert not form.in_flight


def test_confirm_uses_fee_at_confirmation_time(doctor_factory, store, patient_user) -> None:
    doctor_factory('D', availability=JUNE_AVAILABILITY)
    form = BookingForm(store.get('doctors', 'D'), today=TODAY)
    form.select_date(date(2025, 6, 10))
    form.select_slot('09:00')

    form.on_doctor_update(store.update('doctors', 'D', {'consultation_fee': 750}))
    form.confirm(patient_user, store)

    assert store.list('appointments')[0].fee == 750


def test_confirm_leaves_slot_in_doctor_availability(doctor_factory, store, patient_user) -> None:
    doctor_factory('D', availability=JUNE_AVAILABILITY)
    form = BookingForm(store.get('doctors', 'D'), today=TODAY)
    form.select_date(date(2025, 6, 10))
    form.select_slot('09:00')

    form.confirm(patient_user, store)

    assert slots_for(store.get('doctors', 'D').availability, date(2025, 6, 10)) == ['09:00', '10:00']


def test_same_slot_can_be_booked_twice(doctor_factory, store, patient_user) -> None:
    from medibook.auth.session import CurrentUser

    doctor = doctor_factory('D', availability=JUNE_AVAILABILITY)
    other_patient = CurrentUser(uid='patient-2', display_name='Sam Roy', role='patient')

    first = BookingForm(doctor, today=TODAY)
    second = BookingForm(doctor, today=TODAY)
    for form in (first, second):
        form.select_date(date(2025, 6, 10))
        form.select_slot('09:00')

    first.confirm(patient_user, store)
    second.confirm(other_patient, store)

    booked = store.list('appointments', doctor_id='D')
    assert len(booked) == 2
    assert {appointment.patient_id for appointment in booked} == {'patient-1', 'patient-2'}
    assert {(appointment.date, appointment.time) for appointment in booked} == {(date(2025, 6, 10), '09:00')}


def test_confirm_store_failure_keeps_form_interactive(
    doctor_factory,
    store,
    patient_user,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    form = BookingForm(doctor_factory(availability=JUNE_AVAILABILITY), today=TODAY)
    form.select_date(date(2025, 6, 10))
    form.select_slot('09:00')

    def failing_commit():
        raise OperationalError('INSERT', {}, Exception('database is locked'))

    monkeypatch.setattr(store.db, 'commit', failing_commit)

    outcome = form.confirm(patient_user, store)

    assert outcome.status == 'error'
    assert outcome.message == 'Failed to book.'
    assert outcome.appointment is None
    assert form.status == 'error'
    assert form.selected_date == date(2025, 6, 10)
    assert form.selected_time == '09:00'
    assert form.can_confirm


def test_doctor_update_drops_selection_no_longer_offered(doctor_factory, store) -> None:
    doctor_factory('D', availability=JUNE_AVAILABILITY)
    form = BookingForm(store.get('doctors', 'D'), today=TODAY)
    form.select_date(date(2025, 6, 10))
    form.select_slot('09:00')

    updated = store.update('doctors', 'D', {'availability': [{'date': '2025-06-12', 'slots': ['14:00']}]})
    form.on_doctor_update(updated)

    assert form.selected_date is None
    assert form.selected_time is None
