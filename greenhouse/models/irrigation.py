"""Irrigation models: recurring config, one-off scheduled waterings, state snapshot"""

import math
from dataclasses import dataclass, asdict, field, replace
from datetime import datetime
from enum import Enum
from typing import List, Optional


def round_half_up(value: float) -> int:
    """Whole-number display rounding: 2.5 -> 3, unlike round()."""
    return math.floor(value + 0.5)


class WateringStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class WateringMode(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


@dataclass
class IrrigationConfig:
    """Recurring watering configuration"""
    frequency_days: int = 7
    duration_minutes: int = 15
    start_time: str = "08:00"  # HH:MM, local time
    enabled: bool = True

    @property
    def start_hour(self) -> int:
        return int(self.start_time.split(":")[0])

    @property
    def start_minute(self) -> int:
        return int(self.start_time.split(":")[1])

    def copy(self) -> "IrrigationConfig":
        return replace(self)

    def to_dict(self):
        """Convert to dictionary"""
        return asdict(self)


@dataclass
class ScheduledWatering:
    """A one-off watering request at a specific instant"""
    id: str
    scheduled_at: datetime
    duration_minutes: int
    status: WateringStatus
    created_at: datetime

    def copy(self) -> "ScheduledWatering":
        return replace(self)

    def to_dict(self):
        return {
            'id': self.id,
            'scheduled_at': self.scheduled_at.isoformat(),
            'duration_minutes': self.duration_minutes,
            'status': self.status.value,
            'created_at': self.created_at.isoformat(),
        }


@dataclass
class IrrigationState:
    """Read-only snapshot of the scheduler"""
    last_watering_at: datetime
    next_scheduled_at: Optional[datetime]
    days_since_last: int
    days_remaining: Optional[int]
    in_progress: bool
    progress: float
    remaining_minutes: int
    config: IrrigationConfig
    scheduled_waterings: List[ScheduledWatering] = field(default_factory=list)

    def to_dict(self):
        return {
            'last_watering_at': self.last_watering_at.isoformat(),
            'next_scheduled_at': self.next_scheduled_at.isoformat() if self.next_scheduled_at else None,
            'days_since_last': self.days_since_last,
            'days_remaining': self.days_remaining,
            'in_progress': self.in_progress,
            'progress': round(self.progress, 1),
            'remaining_minutes': self.remaining_minutes,
            'config': self.config.to_dict(),
            'scheduled_waterings': [w.to_dict() for w in self.scheduled_waterings],
        }
