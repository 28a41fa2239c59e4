"""Utility helpers"""

from .events import EventBus
from .timers import TimerGroup, TimerHandle

__all__ = ['EventBus', 'TimerGroup', 'TimerHandle']
