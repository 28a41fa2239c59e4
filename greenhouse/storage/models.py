"""
Pydantic models for persisted rows and HTTP request payloads.
Timestamps are stored as Unix milliseconds, as in the sqlite tables.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.sensor_data import SensorStatus

# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_CALENDAR_NAME = "Main calendar"
DEFAULT_WATERING_TIME = "08:00:00"
DEFAULT_CALENDAR_DURATION = 10
NOTIFICATION_TITLE_MAX = 200


def to_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def from_ms(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000)


# =============================================================================
# ENUMS
# =============================================================================

class NotificationType(str, Enum):
    IRRIGATION = "IRRIGATION"
    ALERT = "ALERT"
    SYSTEM = "SYSTEM"


class NotificationPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


# =============================================================================
# DATA MODELS
# =============================================================================

class SensorRecord(BaseModel):
    id: Optional[int] = None
    greenhouse_id: int = Field(alias="greenhouseId")
    temperature: float  # Celsius
    humidity: float  # Percent (0-100)
    timestamp: int  # Unix ms
    status: SensorStatus = SensorStatus.NORMAL

    class Config:
        populate_by_name = True

    @property
    def recorded_at(self) -> datetime:
        return from_ms(self.timestamp)


class IrrigationCalendar(BaseModel):
    id: Optional[int] = None
    greenhouse_id: int = Field(alias="greenhouseId")
    name: str = DEFAULT_CALENDAR_NAME
    watering_time: str = Field(default=DEFAULT_WATERING_TIME, alias="wateringTime")
    duration_minutes: int = Field(default=DEFAULT_CALENDAR_DURATION, alias="durationMinutes")
    days: List[int] = Field(default_factory=list)  # 1=Sunday .. 7=Saturday
    active: bool = True
    created_at: Optional[int] = Field(default=None, alias="createdAt")

    class Config:
        populate_by_name = True


class Notification(BaseModel):
    id: Optional[int] = None
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.MEDIUM
    created_at: Optional[int] = Field(default=None, alias="createdAt")
    sent_at: Optional[int] = Field(default=None, alias="sentAt")
    recipients: List[int] = Field(default_factory=list)
    read: bool = False  # Per-recipient view

    class Config:
        populate_by_name = True


# =============================================================================
# API PAYLOADS
# =============================================================================

class StartWateringRequest(BaseModel):
    duration: Optional[int] = None


class ScheduleWateringRequest(BaseModel):
    date: str
    time: str
    duration: Optional[int] = None


class IrrigationConfigPatch(BaseModel):
    frequency_days: Optional[int] = Field(default=None, alias="frequencyDays")
    duration_minutes: Optional[int] = Field(default=None, alias="durationMinutes")
    start_time: Optional[str] = Field(default=None, alias="startTime")
    enabled: Optional[bool] = None
    specific_date: Optional[str] = Field(default=None, alias="specificDate")

    class Config:
        populate_by_name = True


class CalendarPayload(BaseModel):
    greenhouse_id: Optional[int] = Field(default=None, alias="greenhouseId")
    name: Optional[str] = None
    watering_time: Optional[str] = Field(default=None, alias="wateringTime")
    duration_minutes: Optional[int] = Field(default=None, alias="durationMinutes")
    days: Optional[List[int]] = None
    active: Optional[bool] = None

    class Config:
        populate_by_name = True
