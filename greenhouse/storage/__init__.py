# Storage module - Local SQLite operations
from .local_db import LocalDatabase
from .models import (
    IrrigationCalendar,
    Notification,
    NotificationPriority,
    NotificationType,
    SensorRecord,
)

__all__ = [
    'LocalDatabase', 'IrrigationCalendar', 'Notification',
    'NotificationPriority', 'NotificationType', 'SensorRecord',
]
