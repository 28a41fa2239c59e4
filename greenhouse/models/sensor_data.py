"""Sensor data models and schemas"""

from dataclasses import dataclass, asdict, replace
from datetime import datetime
from enum import Enum


class SensorStatus(str, Enum):
    """Environment status derived from a reading"""
    NORMAL = "NORMAL"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


@dataclass
class ChannelConfig:
    """Comfort range and walk parameters for one sensor channel"""
    minimum: float
    maximum: float
    optimum: float
    variation: float

    def in_range(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum

    def to_dict(self):
        """Convert to dictionary"""
        return asdict(self)


@dataclass
class SensorReading:
    """Sensor reading data"""
    temperature: float  # Celsius
    humidity: float  # Percentage
    timestamp: datetime
    status: SensorStatus = SensorStatus.NORMAL

    def copy(self) -> "SensorReading":
        return replace(self)

    def to_dict(self):
        """Convert to JSON-serializable dict"""
        return {
            'temperature': self.temperature,
            'humidity': self.humidity,
            'timestamp': self.timestamp.isoformat(),
            'status': self.status.value,
        }
