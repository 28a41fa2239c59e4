"""Controllers package for the simulated sensors and irrigation"""

from .irrigation import IrrigationScheduler
from .sensors import SensorSimulator

__all__ = [
    'IrrigationScheduler',
    'SensorSimulator'
]
