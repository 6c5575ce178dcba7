"""
Integration tests for the scheduling API.

These tests exercise availability, booking checks, booking creation,
status transitions and access control through DRF's APIClient.  The
request clock is frozen at Monday 2024-06-03 07:00 so that past-slot
checks are deterministic.

To run the tests:

```
pytest -q scheduling/tests
```
"""
from datetime import date, datetime
from unittest import mock

import pytest
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from scheduling.models import Booking, BookingTransition, DateOverride, OverrideSlot, User, WeeklyRule
from scheduling.services.clock import FixedClock

pytestmark = pytest.mark.django_db

MONDAY = '2024-06-03'
NOW = datetime(2024, 6, 3, 7, 0)


def frozen_clock():
    return FixedClock(NOW)


@pytest.fixture(autouse=True)
def freeze(monkeypatch):
    monkeypatch.setattr('scheduling.views.common.get_clock', frozen_clock)


@pytest.fixture
def doctor():
    d = User.objects.create_user(username='doc1', password='P@ssw0rd1', role='doctor')
    for weekday in range(1, 6):
        WeeklyRule.objects.create(practitioner=d, weekday=weekday, start_time='08:00', end_time='12:00')
    return d


@pytest.fixture
def patient():
    return User.objects.create_user(username='patient1', password='P@ssw0rd1', role='patient')


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


def create(client, doctor, start, **extra):
    payload = {'practitionerId': doctor.id, 'date': MONDAY, 'start': start, **extra}
    return client.post('/api/bookings/create', payload, format='json')


def test_availability_requires_authentication(doctor):
    r = APIClient().get('/api/schedule/availability', {'practitionerId': doctor.id, 'date': MONDAY})
    assert r.status_code == status.HTTP_401_UNAUTHORIZED
    assert r.data['ok'] is False


def test_availability_lists_slots_with_flags(doctor, patient):
    Booking.objects.create(practitioner=doctor, patient=patient, date=date(2024, 6, 3), start_time='09:00',
                           status='CONFIRMED')
    r = client_for(patient).get('/api/schedule/availability', {'practitionerId': doctor.id, 'date': MONDAY})
    assert r.status_code == 200
    data = r.data['data']
    assert data['source'] == 'weekly'
    assert len(data['slots']) == 8
    by_start = {s['start']: s for s in data['slots']}
    assert by_start['09:00']['isBooked'] is True
    assert by_start['08:00']['isAvailable'] is True


def test_availability_honours_override_and_slot_minutes(doctor, patient):
    override = DateOverride.objects.create(practitioner=doctor, date=date(2024, 6, 3), reason='Half day')
    OverrideSlot.objects.create(override=override, position=0, start_time='13:00', end_time='15:00')
    r = client_for(patient).get('/api/schedule/availability',
                                {'practitionerId': doctor.id, 'date': MONDAY, 'slotMinutes': 60})
    assert r.data['data']['source'] == 'override'
    assert [s['start'] for s in r.data['data']['slots']] == ['13:00', '14:00']


def test_availability_validates_query(doctor, patient):
    client = client_for(patient)
    r = client.get('/api/schedule/availability', {'practitionerId': doctor.id, 'date': MONDAY, 'slotMinutes': 5})
    assert r.status_code == 400
    r = client.get('/api/schedule/availability', {'practitionerId': patient.id, 'date': MONDAY})
    assert r.status_code == 404
    assert r.data['error']['code'] == 'not_found'


def test_corrupt_schedule_is_reported_not_hidden(doctor, patient):
    WeeklyRule.objects.create(practitioner=doctor, weekday=3, start_time='12:00', end_time='08:00')
    r = client_for(patient).get('/api/schedule/availability', {'practitionerId': doctor.id, 'date': MONDAY})
    assert r.status_code == 422
    assert r.data['error']['code'] == 'invalid_schedule'
    assert r.data['error']['record']


def test_horizon_and_work_stats(doctor, patient):
    client = client_for(patient)
    r = client.get('/api/schedule/horizon', {'practitionerId': doctor.id, 'days': 7})
    assert r.status_code == 200
    days = r.data['data']
    assert [d['date'] for d in days] == ['2024-06-03', '2024-06-04', '2024-06-05', '2024-06-06', '2024-06-07']
    assert days[0]['isToday'] and days[1]['isTomorrow']
    assert days[0]['weekdayLabel'] == 'Thứ 2'

    r = client.get('/api/schedule/horizon', {'practitionerId': doctor.id, 'days': 365})
    assert r.status_code == 400

    r = client.get('/api/schedule/work-stats', {'practitionerId': doctor.id})
    assert r.status_code == 403
    r = client_for(doctor).get('/api/schedule/work-stats', {'practitionerId': doctor.id})
    assert r.data['data']['totalHoursPerWeek'] == 20
    assert r.data['data']['daysPerWeek'] == 5


def test_check_reports_conflict_without_persisting(doctor, patient):
    client = client_for(patient)
    assert create(client, doctor, '09:00').status_code == 201
    r = client.post('/api/bookings/check',
                    {'practitionerId': doctor.id, 'date': MONDAY, 'start': '09:15'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['accepted'] is False
    assert r.data['data']['conflictingBooking']['start'] == '09:00'
    assert Booking.objects.count() == 1


def test_patient_books_for_themselves(doctor, patient):
    r = create(client_for(patient), doctor, '09:00', notes='<script>x</script>Knee pain')
    assert r.status_code == 201
    assert r.data['data']['status'] == 'PENDING'
    b = Booking.objects.get()
    assert b.patient_id == patient.id
    assert '<script>' not in b.notes
    assert BookingTransition.objects.filter(booking=b, to_status='PENDING').exists()


def test_patient_cannot_book_for_someone_else(doctor, patient):
    other = User.objects.create_user(username='patient2', password='P@ssw0rd1', role='patient')
    r = create(client_for(patient), doctor, '09:00', patientId=other.id)
    assert r.status_code == 403


def test_booking_rejections_map_to_error_codes(doctor, patient):
    client = client_for(patient)
    assert create(client, doctor, '09:00').status_code == 201

    r = create(client, doctor, '09:15')
    assert r.status_code == 409
    assert r.data['error']['code'] == 'booking_conflict'
    assert r.data['error']['conflictingBooking']['start'] == '09:00'

    r = create(client, doctor, '11:45')
    assert r.status_code == 409
    assert r.data['error']['code'] == 'outside_working_hours'
    assert r.data['error']['reason'] == 'OUTSIDE_WORKING_HOURS'
    assert r.data['error']['suggestedSlots']

    r = create(client, doctor, '25:00')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid_time'


def test_booking_in_the_past_is_rejected(doctor, patient):
    r = client_for(patient).post('/api/bookings/create',
                                 {'practitionerId': doctor.id, 'date': '2024-05-27', 'start': '09:00'}, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid_time'


def test_patients_only_list_their_own_bookings(doctor, patient):
    other = User.objects.create_user(username='patient2', password='P@ssw0rd1', role='patient')
    assert create(client_for(patient), doctor, '09:00').status_code == 201
    assert create(client_for(other), doctor, '10:00').status_code == 201

    params = {'practitionerId': doctor.id, 'date': MONDAY}
    mine = client_for(patient).get('/api/bookings', params).data['data']
    assert [b['start'] for b in mine] == ['09:00']
    everything = client_for(doctor).get('/api/bookings', params).data['data']
    assert [b['start'] for b in everything] == ['09:00', '10:00']


def reschedule(client, booking_id, start, **extra):
    payload = {'id': booking_id, 'date': MONDAY, 'start': start, **extra}
    return client.post('/api/bookings/reschedule', payload, format='json')


def test_patient_reschedules_own_booking(doctor, patient):
    client = client_for(patient)
    booking_id = create(client, doctor, '09:00').data['data']['id']
    r = reschedule(client, booking_id, '09:15')
    assert r.status_code == 200
    assert (r.data['data']['start'], r.data['data']['end']) == ('09:15', '09:45')
    t = BookingTransition.objects.filter(booking_id=booking_id).latest('id')
    assert t.reason == 'rescheduled from 2024-06-03 09:00'
    assert t.from_status == t.to_status == 'PENDING'


def test_reschedule_rejections(doctor, patient):
    client = client_for(patient)
    first = create(client, doctor, '09:00').data['data']['id']
    assert create(client, doctor, '10:00').status_code == 201

    r = reschedule(client, first, '10:15')
    assert r.status_code == 409
    assert r.data['error']['code'] == 'booking_conflict'
    r = reschedule(client, first, '11:45')
    assert r.data['error']['code'] == 'outside_working_hours'
    assert Booking.objects.get(pk=first).start_time == '09:00'

    other = User.objects.create_user(username='patient2', password='P@ssw0rd1', role='patient')
    assert reschedule(client_for(other), first, '11:00').status_code == 403
    assert reschedule(client, 999, '11:00').status_code == 404

    Booking.objects.filter(pk=first).update(status='CANCELLED')
    r = reschedule(client_for(doctor), first, '11:00')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'invalid_transition'


def test_booking_and_its_audit_row_are_written_together(doctor, patient, monkeypatch):
    def fail(*args, **kwargs):
        raise RuntimeError('audit table unavailable')

    monkeypatch.setattr('scheduling.views.bookings._record_transition', fail)
    r = create(client_for(patient), doctor, '09:00')
    assert r.status_code == 500
    assert r.data['error']['code'] == 'server_error'
    assert not Booking.objects.exists()


def test_healthz():
    r = APIClient().get('/healthz')
    assert r.status_code == 200
    assert r.json()['ok'] is True


class BookingStatusTests(APITestCase):
    def setUp(self) -> None:
        """Create a practitioner, two patients and a pending booking."""
        patcher = mock.patch('scheduling.views.common.get_clock', frozen_clock)
        patcher.start()
        self.addCleanup(patcher.stop)

        self.doctor = User.objects.create_user(username='doc1', password='docpass', role='doctor')
        WeeklyRule.objects.create(practitioner=self.doctor, weekday=1, start_time='08:00', end_time='12:00')
        self.patient = User.objects.create_user(username='patient1', password='patientpass', role='patient')
        self.other = User.objects.create_user(username='patient2', password='patientpass', role='patient')
        self.booking = Booking.objects.create(
            practitioner=self.doctor, patient=self.patient, date=date(2024, 6, 3), start_time='09:00',
        )

    def update(self, user, **payload):
        self.client.force_authenticate(user=user)
        return self.client.post('/api/bookings/update-status', payload, format='json')

    def test_patient_can_cancel_own_booking_and_slot_is_freed(self):
        resp = self.update(self.patient, id=self.booking.id, status='CANCELLED', reason='sick')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, 'CANCELLED')
        t = BookingTransition.objects.get(booking=self.booking)
        self.assertEqual((t.from_status, t.to_status, t.operator), ('PENDING', 'CANCELLED', self.patient))

        self.client.force_authenticate(user=self.other)
        resp = self.client.post('/api/bookings/create',
                                {'practitionerId': self.doctor.id, 'date': MONDAY, 'start': '09:00'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)

    def test_patient_cannot_confirm_or_touch_other_bookings(self):
        resp = self.update(self.patient, bookingId=self.booking.id, newStatus='CONFIRMED')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        resp = self.update(self.other, id=self.booking.id, status='CANCELLED')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_doctor_follows_transition_table(self):
        resp = self.update(self.doctor, id=self.booking.id, status='COMPLETED')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['error']['code'], 'invalid_transition')

        resp = self.update(self.doctor, id=self.booking.id, status='confirmed')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        resp = self.update(self.doctor, id=self.booking.id, status='NO_SHOW')
        self.assertEqual(resp.data['data']['status'], 'NO_SHOW')
        self.assertEqual(self.booking.transitions.count(), 2)

    def test_unknown_booking(self):
        resp = self.update(self.doctor, id=999, status='CANCELLED')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
