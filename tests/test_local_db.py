"""LocalDatabase CRUD against a temporary sqlite file"""

from greenhouse.models.sensor_data import SensorStatus
from greenhouse.storage.models import (
    IrrigationCalendar,
    Notification,
    NotificationPriority,
    NotificationType,
    SensorRecord,
)

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS
BASE_MS = 1_715_774_400_000  # 2024-05-15 12:00 UTC


def _record(offset_hours=0, temperature=21.0, humidity=80.0, greenhouse_id=1,
            status=SensorStatus.NORMAL):
    return SensorRecord(
        greenhouse_id=greenhouse_id,
        temperature=temperature,
        humidity=humidity,
        timestamp=BASE_MS + offset_hours * HOUR_MS,
        status=status,
    )


# ===== records =====

def test_insert_assigns_id(database):
    saved = database.insert_record(_record())
    assert saved.id is not None
    assert saved.greenhouse_id == 1


def test_get_records_by_range(database):
    for hours in (-3, -2, -1, 0):
        database.insert_record(_record(hours))
    database.insert_record(_record(0, greenhouse_id=2))

    records = database.get_records(1, since=BASE_MS - 2 * HOUR_MS, until=BASE_MS - HOUR_MS)
    assert [r.timestamp for r in records] == [BASE_MS - 2 * HOUR_MS, BASE_MS - HOUR_MS]
    assert len(database.get_records(1)) == 4
    assert len(database.get_records(1, limit=2)) == 2


def test_latest_records_newest_first(database):
    for hours in range(5):
        database.insert_record(_record(hours, temperature=20 + hours))
    latest = database.get_latest_records(1, limit=3)
    assert [r.temperature for r in latest] == [24, 23, 22]


def test_status_round_trips(database):
    database.insert_record(_record(status=SensorStatus.CRITICAL, temperature=27))
    assert database.get_records(1)[0].status == SensorStatus.CRITICAL


def test_cleanup_old_records(database):
    database.insert_record(_record(-24 * 400))
    database.insert_record(_record(-24 * 10))
    deleted = database.cleanup_old_records(days=365, now_ms=BASE_MS)
    assert deleted == 1
    assert len(database.get_records(1)) == 1


# ===== calendars =====

def test_calendar_crud(database):
    created = database.create_calendar(IrrigationCalendar(
        greenhouse_id=1, name="Orchids", watering_time="07:30:00",
        duration_minutes=12, days=[6, 2, 4, 2],
    ))
    assert created.id is not None
    assert created.created_at is not None

    fetched = database.get_calendar(created.id)
    assert fetched.days == [2, 4, 6]
    assert fetched.name == "Orchids"

    assert database.update_calendar(fetched.model_copy(update={'duration_minutes': 20}))
    assert database.get_calendar(created.id).duration_minutes == 20

    assert database.deactivate_calendar(created.id)
    assert database.get_calendars(1) == []
    assert len(database.get_calendars(1, active_only=False)) == 1


def test_calendar_missing(database):
    assert database.get_calendar(99) is None
    assert not database.deactivate_calendar(99)
    assert not database.update_calendar(IrrigationCalendar(id=99, greenhouse_id=1, days=[1]))


def test_calendars_filtered_by_greenhouse(database):
    database.create_calendar(IrrigationCalendar(greenhouse_id=1, days=[1]))
    database.create_calendar(IrrigationCalendar(greenhouse_id=2, days=[2]))
    assert len(database.get_calendars()) == 2
    assert [c.greenhouse_id for c in database.get_calendars(2)] == [2]


# ===== notifications =====

def test_notifications_per_user(database):
    first = database.create_notification(Notification(
        type=NotificationType.ALERT, title="Hot", message="25°C",
        priority=NotificationPriority.HIGH, recipients=[1, 2],
    ))
    database.create_notification(Notification(
        type=NotificationType.SYSTEM, title="Info", message="Started", recipients=[2],
    ))

    assert [n.title for n in database.get_notifications(1)] == ["Hot"]
    user_two = database.get_notifications(2)
    assert len(user_two) == 2
    assert sorted(user_two[-1].recipients) == [1, 2]

    assert database.mark_notification_read(first.id, 1)
    assert database.get_notifications(1)[0].read
    assert database.get_notifications(1, unread_only=True) == []
    # Read state is per recipient
    assert not [n for n in database.get_notifications(2) if n.id == first.id][0].read


def test_mark_notification_read_unknown(database):
    assert not database.mark_notification_read(42, 1)
