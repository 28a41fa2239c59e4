"""In-process event bus for irrigation events"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Type

from ..models.irrigation import ScheduledWatering, WateringMode

logger = logging.getLogger(__name__)


@dataclass
class WateringStarted:
    mode: WateringMode
    duration_minutes: int


@dataclass
class WateringCompleted:
    duration_minutes: int
    next_scheduled_at: Optional[datetime] = None


@dataclass
class WateringStopped:
    progress: float


@dataclass
class IrrigationConfigChanged:
    changes: List[str] = field(default_factory=list)


@dataclass
class WateringScheduled:
    entry: ScheduledWatering


class EventBus:
    """Synchronous publish/subscribe keyed by event class.

    Handlers run in subscription order on the caller's stack. A failing
    handler is logged and does not prevent the remaining handlers from
    running.
    """

    def __init__(self):
        self._handlers: Dict[Type, List[Callable]] = defaultdict(list)

    def subscribe(self, event_type: Type, handler: Callable):
        self._handlers[event_type].append(handler)
        logger.debug(f"Registered handler for {event_type.__name__}")

    def unsubscribe(self, event_type: Type, handler: Callable):
        if handler in self._handlers[event_type]:
            self._handlers[event_type].remove(handler)

    def publish(self, event):
        for handler in list(self._handlers[type(event)]):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error handling {type(event).__name__}: {e}", exc_info=True)
