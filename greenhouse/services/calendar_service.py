"""Calendar service - CRUD for irrigation calendars"""

import logging
from datetime import datetime
from typing import Callable, Optional

from ..domain import calendars as calendar_rules
from ..models.result import ErrorKind, OperationResult
from ..storage.local_db import LocalDatabase
from ..storage.models import (
    DEFAULT_CALENDAR_DURATION,
    DEFAULT_CALENDAR_NAME,
    DEFAULT_WATERING_TIME,
    IrrigationCalendar,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('greenhouse_id', 'name', 'watering_time', 'duration_minutes', 'days', 'active')


class CalendarService:
    def __init__(self, db: LocalDatabase, clock: Callable[[], datetime] = datetime.now):
        self.db = db
        self.clock = clock

    def _describe(self, calendar: IrrigationCalendar) -> dict:
        data = calendar.model_dump(mode="json")
        upcoming = calendar_rules.next_watering(calendar, self.clock())
        data['next_watering'] = upcoming.isoformat() if upcoming else None
        data['days_label'] = calendar_rules.format_days(calendar.days)
        return data

    def list_calendars(self, greenhouse_id: Optional[int] = None) -> OperationResult:
        calendars = self.db.get_calendars(greenhouse_id)
        return OperationResult.ok(f"{len(calendars)} calendars", [self._describe(c) for c in calendars])

    def get(self, calendar_id: int) -> OperationResult:
        calendar = self.db.get_calendar(calendar_id)
        if calendar is None:
            return OperationResult.fail(ErrorKind.NOT_FOUND, "Calendar not found")
        return OperationResult.ok("Calendar found", self._describe(calendar))

    def create(self, data: dict) -> OperationResult:
        fields = {
            'greenhouse_id': data.get('greenhouse_id'),
            'name': data.get('name') or DEFAULT_CALENDAR_NAME,
            'watering_time': data.get('watering_time') or DEFAULT_WATERING_TIME,
            'duration_minutes': data.get('duration_minutes') or DEFAULT_CALENDAR_DURATION,
            'days': data.get('days') or [],
        }
        errors = calendar_rules.validate_calendar(fields)
        if errors:
            return OperationResult.fail(ErrorKind.INVALID, "; ".join(errors))

        calendar = self.db.create_calendar(IrrigationCalendar(active=True, **fields))
        logger.info(f"Calendar {calendar.id} created for greenhouse {calendar.greenhouse_id}")
        return OperationResult.ok("Calendar created", self._describe(calendar))

    def update(self, calendar_id: int, data: dict) -> OperationResult:
        calendar = self.db.get_calendar(calendar_id)
        if calendar is None:
            return OperationResult.fail(ErrorKind.NOT_FOUND, "Calendar not found")

        changes = {k: v for k, v in data.items() if k in EDITABLE_FIELDS and v is not None}
        updated = calendar.model_copy(update=changes)
        errors = calendar_rules.validate_calendar(updated.model_dump())
        if errors:
            return OperationResult.fail(ErrorKind.INVALID, "; ".join(errors))

        self.db.update_calendar(updated)
        logger.info(f"Calendar {calendar_id} updated: {sorted(changes)}")
        return OperationResult.ok("Calendar updated", self._describe(updated))

    def delete(self, calendar_id: int) -> OperationResult:
        if not self.db.deactivate_calendar(calendar_id):
            return OperationResult.fail(ErrorKind.NOT_FOUND, "Calendar not found")
        logger.info(f"Calendar {calendar_id} deactivated")
        return OperationResult.ok("Calendar deleted")

    def due_today(self, greenhouse_id: Optional[int] = None) -> list:
        now = self.clock()
        return [c for c in self.db.get_calendars(greenhouse_id)
                if calendar_rules.should_water_today(c, now)]
