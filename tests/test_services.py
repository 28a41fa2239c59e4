"""Record, calendar, notification and report services over a temporary database"""

from datetime import datetime, timedelta

import pytest

from greenhouse.models.irrigation import IrrigationConfig, IrrigationState
from greenhouse.models.result import ErrorKind
from greenhouse.models.sensor_data import SensorReading, SensorStatus
from greenhouse.services.calendar_service import CalendarService
from greenhouse.services.diagnostics import DiagnosticsService
from greenhouse.services.firebase_service import FirebaseMirror
from greenhouse.services.notification_service import NotificationService
from greenhouse.services.record_service import RecordService
from greenhouse.services.report_service import ReportService, period_days


@pytest.fixture
def records(database, clock):
    return RecordService(database, greenhouse_id=1, clock=clock)


def _reading(moment, temperature=21.0, humidity=80.0, status=SensorStatus.NORMAL):
    return SensorReading(temperature=temperature, humidity=humidity, timestamp=moment, status=status)


# ===== records =====

def test_save_reading_and_statistics(records, clock):
    result = records.save_reading(_reading(clock.now - timedelta(hours=1), 20, 78))
    assert result.success
    assert result.data['id'] is not None
    records.save_reading(_reading(clock.now, 22, 82))
    # Yesterday's record is outside today's statistics
    records.save_reading(_reading(clock.now - timedelta(days=1), 30, 60))

    stats = records.statistics()
    assert stats['total_records'] == 2
    assert stats['temperature']['average'] == 21.0
    assert [r.temperature for r in records.records(limit=2)] == [22, 20]


def test_save_reading_rejects_impossible_values(records, clock):
    result = records.save_reading(_reading(clock.now, 150, 80))
    assert result.error == ErrorKind.INVALID
    assert records.records() == []


@pytest.mark.asyncio
async def test_async_save_reading(records, clock):
    result = await records.async_save_reading(_reading(clock.now))
    assert result.success
    assert len(records.records()) == 1


def test_anomalies_and_cleanup(records, clock):
    records.save_reading(_reading(clock.now - timedelta(hours=2), 26, 80))
    records.save_reading(_reading(clock.now - timedelta(hours=1), 21, 80))
    records.save_reading(_reading(clock.now - timedelta(days=400), 21, 80))

    found = records.anomalies(clock.now - timedelta(days=1))
    assert [r.temperature for r in found] == [26]
    assert records.cleanup(days=365) == 1


# ===== calendars =====

def test_calendar_service_crud(database, clock):
    service = CalendarService(database, clock=clock)
    created = service.create({'greenhouse_id': 1, 'days': [4, 6], 'watering_time': '18:00'})
    assert created.success
    calendar = created.data
    assert calendar['next_watering'] == "2024-05-15T18:00:00"
    assert calendar['days_label'] == "Wed, Fri"
    assert calendar['duration_minutes'] == 10

    updated = service.update(calendar['id'], {'duration_minutes': 25, 'name': 'Orchids'})
    assert updated.success
    assert updated.data['name'] == 'Orchids'
    assert service.get(calendar['id']).data['duration_minutes'] == 25

    assert [c.id for c in service.due_today()] == [calendar['id']]

    assert service.delete(calendar['id']).success
    assert service.list_calendars().data == []
    assert service.get(calendar['id']).data['active'] is False


def test_calendar_service_errors(database, clock):
    service = CalendarService(database, clock=clock)
    invalid = service.create({'greenhouse_id': 1, 'days': []})
    assert invalid.error == ErrorKind.INVALID
    assert "At least one watering day is required" in invalid.message

    calendar = service.create({'greenhouse_id': 1, 'days': [2]}).data
    assert service.update(calendar['id'], {'duration_minutes': 500}).error == ErrorKind.INVALID
    assert service.update(99, {'name': 'x'}).error == ErrorKind.NOT_FOUND
    assert service.delete(99).error == ErrorKind.NOT_FOUND


# ===== notifications =====

def test_check_environment_stores_alerts(database, clock):
    service = NotificationService(database, default_recipients=[1])
    created = service.check_environment(_reading(clock.now, 26, 70))
    assert len(created) == 2
    assert service.check_environment(_reading(clock.now, 21, 80)) == []

    listing = service.for_user(1).data
    assert len(listing['items']) == 2
    assert listing['unread_count'] == 2
    assert listing['by_type']['ALERT'] == 2

    assert service.mark_read(created[0].id, 1).success
    assert service.for_user(1, unread_only=True).data['unread_count'] == 1
    assert service.mark_read(created[0].id, 5).error == ErrorKind.NOT_FOUND


def test_create_notification(database):
    service = NotificationService(database)
    result = service.create({'type': 'SYSTEM', 'title': 'Restarted', 'message': 'Server restarted',
                             'recipients': [3]})
    assert result.success
    assert result.data['priority'] == 'MEDIUM'
    assert len(service.for_user(3).data['items']) == 1

    assert service.create({'type': 'SYSTEM', 'title': '', 'message': 'x'}).error == ErrorKind.INVALID


def test_remind_watering(database, clock):
    calendars = CalendarService(database, clock=clock)
    calendars.create({'greenhouse_id': 1, 'days': [4]})
    service = NotificationService(database, default_recipients=[1])
    reminders = service.remind_watering(calendars.due_today())
    assert len(reminders) == 1
    assert reminders[0].type.value == 'IRRIGATION'


# ===== reports =====

@pytest.mark.parametrize("period,days", [
    ('today', 1), ('week', 7), ('30days', 30), ('90days', 90), ('1year', 365), ('bogus', 7), (None, 7),
])
def test_period_days(period, days):
    assert period_days(period) == days


def test_generate_report(records, database, clock):
    for day, temperature in ((2, 20), (1, 21), (0, 23)):
        records.save_reading(_reading(clock.now - timedelta(days=day), temperature, 80))
    records.save_reading(_reading(clock.now - timedelta(days=20), 30, 80))

    report = ReportService(database, clock=clock).generate_report(1, 'week').data
    assert report['days'] == 7
    assert report['total_records'] == 3
    assert len(report['daily']) == 3
    assert report['trends']['temperature']['trend'] == 'rising'
    assert report['trends']['humidity']['trend'] == 'stable'


def test_alert_summary(records, database, clock):
    records.save_reading(_reading(clock.now, 21, 80))
    records.save_reading(_reading(clock.now, 25, 78, SensorStatus.WARNING))
    records.save_reading(_reading(clock.now, 27, 60, SensorStatus.CRITICAL))
    summary = ReportService(database, clock=clock).alert_summary(1, days=7).data
    assert summary == {'total': 3, 'normal': 1, 'warning': 1, 'critical': 1}


# ===== diagnostics and mirror =====

def test_diagnostics_health_summary():
    diagnostics = DiagnosticsService()
    diagnostics.record_sensor_tick()
    diagnostics.record_request()
    diagnostics.record_error('firebase')
    summary = diagnostics.get_health_summary()
    assert summary['sensor_ticks'] == 1
    assert summary['firebase_errors'] == 1
    assert summary['total_errors'] == 1
    assert summary['status'] == 'degraded'
    assert summary['last_sensor_tick'] is not None


def test_firebase_mirror_disabled_without_credentials(tmp_path, clock):
    diagnostics = DiagnosticsService()
    mirror = FirebaseMirror(str(tmp_path / "missing.json"), "https://example.firebaseio.com",
                            diagnostics=diagnostics)
    assert mirror.connect() is False
    assert not mirror.connected
    assert mirror.publish(_reading(clock.now)) is False


class FailingRef:
    def set(self, payload):
        raise ConnectionError("offline")


def test_firebase_publish_failure_is_counted(tmp_path, clock):
    diagnostics = DiagnosticsService()
    mirror = FirebaseMirror(str(tmp_path / "key.json"), "", diagnostics=diagnostics)
    mirror.connected = True
    mirror._ref = FailingRef()
    assert mirror.publish(_reading(clock.now)) is False
    assert diagnostics.counters['firebase_errors'] == 1


def test_firebase_payload(clock):
    state = IrrigationState(
        last_watering_at=clock.now, next_scheduled_at=None, days_since_last=0,
        days_remaining=None, in_progress=True, progress=33.333, remaining_minutes=10,
        config=IrrigationConfig(),
    )
    payload = FirebaseMirror.build_payload(_reading(clock.now, 22.5, 79), state)
    assert payload == {
        'temperature': 22.5,
        'humidity': 79,
        'status': 'NORMAL',
        'timestamp': clock.now.isoformat(),
        'irrigation': {'in_progress': True, 'progress': 33.3},
    }
