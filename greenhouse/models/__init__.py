"""Models package"""

from .sensor_data import SensorReading, SensorStatus, ChannelConfig
from .irrigation import (
    IrrigationConfig,
    IrrigationState,
    ScheduledWatering,
    WateringMode,
    WateringStatus,
)
from .alert import Alert, AlertKey, AlertKind
from .result import ErrorKind, OperationResult

__all__ = [
    'SensorReading', 'SensorStatus', 'ChannelConfig',
    'IrrigationConfig', 'IrrigationState', 'ScheduledWatering', 'WateringMode', 'WateringStatus',
    'Alert', 'AlertKey', 'AlertKind',
    'ErrorKind', 'OperationResult',
]
