"""Notification service - stored notifications addressed to users"""

import logging
from typing import List, Optional

from .. import config
from ..domain import notifications as notification_rules
from ..models.result import ErrorKind, OperationResult
from ..models.sensor_data import SensorReading
from ..storage.local_db import LocalDatabase
from ..storage.models import IrrigationCalendar, Notification

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: LocalDatabase, default_recipients: Optional[List[int]] = None):
        self.db = db
        self.default_recipients = default_recipients or []

    def create(self, data: dict) -> OperationResult:
        errors = notification_rules.validate_notification(data)
        if errors:
            return OperationResult.fail(ErrorKind.INVALID, "; ".join(errors))
        notification = Notification(
            type=data['type'],
            title=data['title'],
            message=data['message'],
            priority=data.get('priority', 'MEDIUM'),
            recipients=data.get('recipients') or self.default_recipients,
        )
        stored = self._store(notification)
        return OperationResult.ok("Notification created", stored.model_dump(mode="json"))

    def _store(self, notification: Notification) -> Notification:
        if not notification.recipients:
            notification = notification.model_copy(update={'recipients': self.default_recipients})
        stored = self.db.create_notification(notification)
        logger.info(f"Notification {stored.id} created: [{stored.priority.value}] {stored.title}")
        return stored

    def for_user(self, user_id: int, limit: int = 50, unread_only: bool = False) -> OperationResult:
        items = self.db.get_notifications(user_id, limit=limit, unread_only=unread_only)
        return OperationResult.ok(f"{len(items)} notifications", {
            'items': [n.model_dump(mode="json") for n in items],
            'unread_count': len(notification_rules.unread(items)),
            'by_type': notification_rules.count_by_type(items),
        })

    def mark_read(self, notification_id: int, user_id: int) -> OperationResult:
        if not self.db.mark_notification_read(notification_id, user_id):
            return OperationResult.fail(ErrorKind.NOT_FOUND, "Notification not found")
        return OperationResult.ok("Notification marked as read")

    def check_environment(self, reading: SensorReading) -> List[Notification]:
        """Store an ALERT notification for each channel outside its comfort range."""
        created = []
        if notification_rules.is_out_of_range(reading.temperature, config.TEMP_MIN, config.TEMP_MAX):
            created.append(notification_rules.temperature_alert(
                reading.temperature, config.TEMP_MIN, config.TEMP_MAX))
        if notification_rules.is_out_of_range(reading.humidity, config.HUMIDITY_MIN, config.HUMIDITY_MAX):
            created.append(notification_rules.humidity_alert(
                reading.humidity, config.HUMIDITY_MIN, config.HUMIDITY_MAX))
        return [self._store(n) for n in created]

    def remind_watering(self, calendars: List[IrrigationCalendar]) -> List[Notification]:
        """Store a reminder for each calendar due today."""
        return [self._store(notification_rules.watering_reminder(c)) for c in calendars]
