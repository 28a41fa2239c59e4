"""Alert models"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class AlertKind(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class AlertKey(str, Enum):
    """Dedupe keys for alerts that represent an ongoing condition"""
    TEMP_LOW = "temp_low"
    TEMP_HIGH = "temp_high"
    HUMIDITY_LOW = "humidity_low"
    HUMIDITY_HIGH = "humidity_high"
    HUMIDITY_CRITICAL = "humidity_critical"
    HUMIDITY_NORMALIZED = "humidity_normalized"
    WATERING_UPCOMING = "watering_upcoming"
    WATERING_IN_PROGRESS = "watering_in_progress"
    WATERING_COMPLETED = "watering_completed"
    WATERING_STOPPED = "watering_stopped"


HUMIDITY_KEYS = (AlertKey.HUMIDITY_LOW, AlertKey.HUMIDITY_HIGH, AlertKey.HUMIDITY_CRITICAL)

WATERING_KEYS = (
    AlertKey.WATERING_UPCOMING,
    AlertKey.WATERING_IN_PROGRESS,
    AlertKey.WATERING_COMPLETED,
    AlertKey.WATERING_STOPPED,
)

IMPORTANT_KINDS = (AlertKind.WARNING, AlertKind.ERROR)


@dataclass
class Alert:
    """Active alert shown on the dashboard"""
    id: str
    kind: AlertKind
    title: str
    description: str
    created_at: datetime
    read: bool = False
    important: bool = False
    key: Optional[AlertKey] = None

    def to_dict(self):
        return {
            'id': self.id,
            'kind': self.kind.value,
            'title': self.title,
            'description': self.description,
            'created_at': self.created_at.isoformat(),
            'read': self.read,
            'important': self.important,
            'key': self.key.value if self.key else None,
        }
