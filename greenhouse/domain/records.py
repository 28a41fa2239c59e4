"""Historical sensor record rules: validation, statistics, grouping and trends"""

from collections import OrderedDict
from typing import Dict, List, Optional

from ..models.sensor_data import SensorStatus
from ..storage.models import SensorRecord

TEMPERATURE_VALID_RANGE = (-50.0, 100.0)
HUMIDITY_VALID_RANGE = (0.0, 100.0)
# Half-over-half change below this is reported as stable
TREND_THRESHOLD = 0.5


def validate_record(data: dict) -> List[str]:
    errors = []
    temperature = data.get('temperature')
    humidity = data.get('humidity')

    if not isinstance(temperature, (int, float)) or not (
            TEMPERATURE_VALID_RANGE[0] <= temperature <= TEMPERATURE_VALID_RANGE[1]):
        errors.append("Temperature out of valid range (-50 to 100°C)")
    if not isinstance(humidity, (int, float)) or not (
            HUMIDITY_VALID_RANGE[0] <= humidity <= HUMIDITY_VALID_RANGE[1]):
        errors.append("Humidity out of valid range (0-100%)")
    if not data.get('greenhouse_id'):
        errors.append("Greenhouse id is required")
    return errors


def average(values: List[float]) -> float:
    if not values:
        return 0
    return round(sum(values) / len(values), 1)


def _channel_stats(values: List[float]) -> dict:
    if not values:
        return {'average': 0, 'minimum': 0, 'maximum': 0}
    return {'average': average(values), 'minimum': min(values), 'maximum': max(values)}


def calculate_statistics(records: List[SensorRecord]) -> dict:
    return {
        'temperature': _channel_stats([r.temperature for r in records]),
        'humidity': _channel_stats([r.humidity for r in records]),
        'total_records': len(records),
    }


def group_by_hour(records: List[SensorRecord]) -> Dict[str, dict]:
    """Group by calendar hour, keyed 'YYYY-MM-DD-HH'."""
    groups: Dict[str, dict] = OrderedDict()
    for record in sorted(records, key=lambda r: r.timestamp):
        moment = record.recorded_at
        key = f"{moment:%Y-%m-%d}-{moment.hour:02d}"
        group = groups.setdefault(key, {'date': moment.date().isoformat(), 'hour': moment.hour, 'records': []})
        group['records'].append(record)

    for group in groups.values():
        items = group['records']
        group['temperature_average'] = sum(r.temperature for r in items) / len(items)
        group['humidity_average'] = sum(r.humidity for r in items) / len(items)
    return groups


def group_by_day(records: List[SensorRecord]) -> List[dict]:
    """Per-day averages, extremes, record count and non-NORMAL count."""
    days: Dict[str, List[SensorRecord]] = OrderedDict()
    for record in sorted(records, key=lambda r: r.timestamp):
        days.setdefault(record.recorded_at.date().isoformat(), []).append(record)

    return [
        {
            'date': day,
            'temperature': _channel_stats([r.temperature for r in items]),
            'humidity': _channel_stats([r.humidity for r in items]),
            'records': len(items),
            'alerts': sum(1 for r in items if r.status != SensorStatus.NORMAL),
        }
        for day, items in days.items()
    ]


def detect_anomalies(records: List[SensorRecord], temperature_range: tuple,
                     humidity_range: tuple) -> List[SensorRecord]:
    """Records with either channel outside its (min, max) range."""
    return [
        r for r in records
        if not (temperature_range[0] <= r.temperature <= temperature_range[1])
        or not (humidity_range[0] <= r.humidity <= humidity_range[1])
    ]


def trend(values: List[float]) -> str:
    """'rising', 'falling' or 'stable' comparing the two halves of the series."""
    if not values or len(values) < 2:
        return 'stable'
    middle = len(values) // 2
    difference = average(values[middle:]) - average(values[:middle])
    if abs(difference) < TREND_THRESHOLD:
        return 'stable'
    return 'rising' if difference > 0 else 'falling'


def latest(records: List[SensorRecord], count: int = 10) -> List[SensorRecord]:
    return sorted(records, key=lambda r: r.timestamp, reverse=True)[:count]


def chart_series(records: List[SensorRecord]) -> dict:
    ordered = sorted(records, key=lambda r: r.timestamp)
    return {
        'labels': [f"{r.recorded_at:%H:%M}" for r in ordered],
        'temperature': [r.temperature for r in ordered],
        'humidity': [r.humidity for r in ordered],
        'status': [r.status.value for r in ordered],
    }


def daily_summary(records: List[SensorRecord], day: Optional[str] = None) -> Optional[dict]:
    """Summary for one ISO day, defaulting to the most recent day present."""
    groups = group_by_day(records)
    if not groups:
        return None
    if day is None:
        return groups[-1]
    for group in groups:
        if group['date'] == day:
            return group
    return None
