"""Calendar, notification and record rules"""

from datetime import datetime

import pytest

from greenhouse.domain import calendars, notifications, records
from greenhouse.models.sensor_data import SensorStatus
from greenhouse.storage.models import (
    IrrigationCalendar,
    Notification,
    NotificationPriority,
    NotificationType,
    SensorRecord,
    to_ms,
)

WEDNESDAY_NOON = datetime(2024, 5, 15, 12, 0)


def _calendar(days, time="08:00:00", active=True):
    return IrrigationCalendar(greenhouse_id=1, watering_time=time, days=days, active=active)


def _record(moment, temperature=21.0, humidity=80.0, status=SensorStatus.NORMAL):
    return SensorRecord(greenhouse_id=1, temperature=temperature, humidity=humidity,
                        timestamp=to_ms(moment), status=status)


# =============================================================================
# CALENDARS
# =============================================================================

def test_day_number_starts_on_sunday():
    assert calendars.day_number(datetime(2024, 5, 12)) == 1  # Sunday
    assert calendars.day_number(WEDNESDAY_NOON) == 4
    assert calendars.day_number(datetime(2024, 5, 18)) == 7  # Saturday


@pytest.mark.parametrize("value,valid", [
    ("08:00", True), ("08:00:30", True), ("23:59", True),
    ("24:00", False), ("8", False), (None, False),
])
def test_validate_time_format(value, valid):
    assert calendars.validate_time_format(value) is valid


def test_validate_calendar_collects_errors():
    errors = calendars.validate_calendar({
        'greenhouse_id': None, 'watering_time': 'noon', 'duration_minutes': 0, 'days': [0, 8],
    })
    assert len(errors) == 4

    assert calendars.validate_calendar({
        'greenhouse_id': 1, 'watering_time': '08:00', 'duration_minutes': 10, 'days': [2, 4],
    }) == []


def test_next_watering_later_today():
    upcoming = calendars.next_watering(_calendar([4], "18:00:00"), WEDNESDAY_NOON)
    assert upcoming == datetime(2024, 5, 15, 18, 0)


def test_next_watering_rolls_to_next_listed_day():
    upcoming = calendars.next_watering(_calendar([4, 6], "08:00:00"), WEDNESDAY_NOON)
    assert upcoming == datetime(2024, 5, 17, 8, 0)
    # Only Wednesday and the time has passed: a week later
    upcoming = calendars.next_watering(_calendar([4], "08:00:00"), WEDNESDAY_NOON)
    assert upcoming == datetime(2024, 5, 22, 8, 0)


def test_next_watering_none_when_inactive():
    assert calendars.next_watering(_calendar([4], active=False), WEDNESDAY_NOON) is None
    assert calendars.next_watering(_calendar([]), WEDNESDAY_NOON) is None


def test_should_water_today_and_labels():
    assert calendars.should_water_today(_calendar([4]), WEDNESDAY_NOON)
    assert not calendars.should_water_today(_calendar([1]), WEDNESDAY_NOON)
    assert calendars.day_name(1) == "Sunday"
    assert calendars.day_name(9) == "Unknown"
    assert calendars.format_days([6, 2, 2]) == "Mon, Fri"
    assert calendars.format_days([]) == "No days configured"


# =============================================================================
# NOTIFICATIONS
# =============================================================================

def test_validate_notification():
    assert notifications.validate_notification({
        'type': 'ALERT', 'title': 'Hot', 'message': '25°C', 'priority': 'HIGH',
    }) == []
    errors = notifications.validate_notification({'type': 'SPAM', 'title': 'x' * 201, 'message': ' '})
    assert len(errors) == 3
    assert notifications.validate_notification({
        'type': 'SYSTEM', 'title': 'ok', 'message': 'ok', 'priority': 'CRITICAL',
    }) == ["Invalid notification priority"]


@pytest.mark.parametrize("value,expected", [
    (20, NotificationPriority.LOW),
    (24.5, NotificationPriority.MEDIUM),
    (26, NotificationPriority.HIGH),
    (30, NotificationPriority.URGENT),
    (15, NotificationPriority.URGENT),
])
def test_priority_for_deviation(value, expected):
    assert notifications.priority_for_deviation(value, 18, 24) == expected


def test_environment_alert_factories():
    assert notifications.temperature_alert(24.5, 18, 24).priority == NotificationPriority.HIGH
    assert notifications.temperature_alert(26, 18, 24).priority == NotificationPriority.URGENT
    assert notifications.humidity_alert(73, 75, 82).priority == NotificationPriority.HIGH
    assert notifications.humidity_alert(68, 75, 82).type == NotificationType.ALERT
    assert notifications.humidity_alert(68, 75, 82).priority == NotificationPriority.URGENT


def test_watering_factories():
    reminder = notifications.watering_reminder(_calendar([4], "07:00:00"))
    assert reminder.type == NotificationType.IRRIGATION
    assert "07:00:00" in reminder.message
    assert notifications.watering_completed(15).priority == NotificationPriority.LOW


def test_notification_collections():
    items = [
        Notification(type=NotificationType.ALERT, title="a", message="a",
                     priority=NotificationPriority.URGENT),
        Notification(type=NotificationType.ALERT, title="b", message="b", read=True),
        Notification(type=NotificationType.SYSTEM, title="c", message="c"),
    ]
    groups = notifications.group_by_priority(items)
    assert len(groups['URGENT']) == 1
    assert len(groups['MEDIUM']) == 2
    assert [n.title for n in notifications.unread(items)] == ["a", "c"]
    assert notifications.count_by_type(items) == {'IRRIGATION': 0, 'ALERT': 2, 'SYSTEM': 1}


# =============================================================================
# RECORDS
# =============================================================================

def test_validate_record():
    assert records.validate_record({'temperature': 21, 'humidity': 80, 'greenhouse_id': 1}) == []
    assert len(records.validate_record({'temperature': 150, 'humidity': -1, 'greenhouse_id': None})) == 3


def test_statistics():
    items = [_record(WEDNESDAY_NOON, 20, 78), _record(WEDNESDAY_NOON, 22, 82)]
    stats = records.calculate_statistics(items)
    assert stats['temperature'] == {'average': 21.0, 'minimum': 20, 'maximum': 22}
    assert stats['humidity']['average'] == 80.0
    assert stats['total_records'] == 2
    assert records.calculate_statistics([])['temperature']['average'] == 0


def test_group_by_hour_and_day():
    items = [
        _record(datetime(2024, 5, 14, 9, 10), 20),
        _record(datetime(2024, 5, 14, 9, 40), 22),
        _record(datetime(2024, 5, 15, 10, 0), 25, status=SensorStatus.WARNING),
    ]
    hours = records.group_by_hour(items)
    assert list(hours) == ["2024-05-14-09", "2024-05-15-10"]
    assert hours["2024-05-14-09"]['temperature_average'] == 21

    days = records.group_by_day(items)
    assert [d['date'] for d in days] == ["2024-05-14", "2024-05-15"]
    assert days[0]['records'] == 2
    assert days[1]['alerts'] == 1
    assert records.daily_summary(items)['date'] == "2024-05-15"
    assert records.daily_summary(items, "2024-05-14")['records'] == 2
    assert records.daily_summary(items, "2024-01-01") is None


def test_detect_anomalies():
    items = [_record(WEDNESDAY_NOON, 21, 80), _record(WEDNESDAY_NOON, 26, 80),
             _record(WEDNESDAY_NOON, 21, 70)]
    found = records.detect_anomalies(items, (18, 24), (75, 82))
    assert [(r.temperature, r.humidity) for r in found] == [(26, 80), (21, 70)]


@pytest.mark.parametrize("values,expected", [
    ([20, 20, 22, 22], 'rising'),
    ([22, 22, 20, 20], 'falling'),
    ([21, 21.2, 21.1, 21.3], 'stable'),
    ([21], 'stable'),
    ([], 'stable'),
])
def test_trend(values, expected):
    assert records.trend(values) == expected


def test_latest_and_chart_series():
    items = [_record(datetime(2024, 5, 15, h, 0), 20 + h) for h in (8, 10, 9)]
    assert [r.temperature for r in records.latest(items, 2)] == [30, 29]
    series = records.chart_series(items)
    assert series['labels'] == ["08:00", "09:00", "10:00"]
    assert series['status'] == ["NORMAL"] * 3
