"""Irrigation calendar rules: validation and next-watering computation

Days of week are numbered 1..7 with 1 = Sunday.
"""

import re
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from .. import config
from ..storage.models import IrrigationCalendar

TIME_PATTERN = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)(:([0-5]\d))?$')

DAY_NAMES = {
    1: 'Sunday', 2: 'Monday', 3: 'Tuesday', 4: 'Wednesday',
    5: 'Thursday', 6: 'Friday', 7: 'Saturday',
}
SHORT_DAY_NAMES = {1: 'Sun', 2: 'Mon', 3: 'Tue', 4: 'Wed', 5: 'Thu', 6: 'Fri', 7: 'Sat'}


def day_number(moment: datetime) -> int:
    """Calendar day number (1 = Sunday) for a datetime."""
    return (moment.weekday() + 1) % 7 + 1


def validate_time_format(value) -> bool:
    """HH:MM or HH:MM:SS."""
    return isinstance(value, str) and bool(TIME_PATTERN.match(value))


def validate_duration(duration) -> Tuple[bool, str]:
    if duration < config.IRRIGATION_MIN_DURATION:
        return False, f"Duration must be at least {config.IRRIGATION_MIN_DURATION} minute"
    if duration > config.IRRIGATION_MAX_DURATION:
        return False, f"Duration cannot exceed {config.IRRIGATION_MAX_DURATION} minutes"
    return True, ""


def validate_calendar(data: dict) -> List[str]:
    """Return a list of validation errors; empty when the calendar is valid."""
    errors = []
    if not data.get('greenhouse_id'):
        errors.append("Greenhouse id is required")

    if not validate_time_format(data.get('watering_time')):
        errors.append("Watering time must use HH:MM or HH:MM:SS format")

    duration = data.get('duration_minutes')
    if not isinstance(duration, int) or isinstance(duration, bool):
        errors.append("Duration must be a whole number of minutes")
    else:
        ok, message = validate_duration(duration)
        if not ok:
            errors.append(message)

    days = data.get('days')
    if not isinstance(days, list) or not days:
        errors.append("At least one watering day is required")
    elif any(not isinstance(d, int) or d < 1 or d > 7 for d in days):
        errors.append("Days must be numbers from 1 (Sunday) to 7 (Saturday)")
    return errors


def _watering_clock(calendar: IrrigationCalendar) -> Tuple[int, int]:
    parts = calendar.watering_time.split(':')
    return int(parts[0]), int(parts[1])


def next_watering(calendar: IrrigationCalendar, now: Optional[datetime] = None) -> Optional[datetime]:
    """Next instant this calendar waters, or None if it never will."""
    if not calendar.active or not calendar.days:
        return None
    now = now or datetime.now()
    hour, minute = _watering_clock(calendar)
    today = day_number(now)

    if today in calendar.days:
        candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
        if candidate > now:
            return candidate

    for offset in range(1, 8):
        weekday = (today - 1 + offset) % 7 + 1
        if weekday in calendar.days:
            target = now + timedelta(days=offset)
            return target.replace(hour=hour, minute=minute, second=0, microsecond=0)
    return None


def should_water_today(calendar: IrrigationCalendar, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now()
    return calendar.active and day_number(now) in calendar.days


def day_name(number: int) -> str:
    return DAY_NAMES.get(number, 'Unknown')


def format_days(days: List[int]) -> str:
    if not days:
        return 'No days configured'
    return ', '.join(SHORT_DAY_NAMES[d] for d in sorted(set(days)) if d in SHORT_DAY_NAMES)
