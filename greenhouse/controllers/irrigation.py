"""Irrigation controller - watering state machine and schedules

States are IDLE and WATERING. A session starts manually or from the
automatic check, advances on a progress timer and finishes on its own at
100% or when stopped. Besides the recurring frequency-based schedule the
controller keeps a list of one-off scheduled waterings.
"""

import logging
import math
import re
import uuid
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Union

from .. import config
from ..models.irrigation import (
    IrrigationConfig,
    IrrigationState,
    ScheduledWatering,
    WateringMode,
    WateringStatus,
    round_half_up,
)
from ..models.result import ErrorKind, OperationResult
from ..utils.events import (
    EventBus,
    IrrigationConfigChanged,
    WateringCompleted,
    WateringScheduled,
    WateringStarted,
    WateringStopped,
)

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)$')
CONFIG_FIELDS = ('frequency_days', 'duration_minutes', 'start_time', 'enabled')


def parse_time(value: str) -> Optional[tuple]:
    """'HH:MM' -> (hour, minute), or None when malformed."""
    if not isinstance(value, str):
        return None
    match = TIME_PATTERN.match(value.strip())
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def parse_date(value: Union[str, date, None]) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), "%Y-%m-%d").date()
        except ValueError:
            return None
    return None


def validate_duration(duration) -> Optional[str]:
    """Return an error message for an invalid duration, else None."""
    if isinstance(duration, bool):
        return "Duration must be a whole number of minutes"
    try:
        duration = int(duration)
    except (TypeError, ValueError):
        return "Duration must be a whole number of minutes"
    if duration < config.IRRIGATION_MIN_DURATION:
        return f"Duration must be at least {config.IRRIGATION_MIN_DURATION} minute"
    if duration > config.IRRIGATION_MAX_DURATION:
        return f"Duration cannot exceed {config.IRRIGATION_MAX_DURATION} minutes"
    return None


class IrrigationScheduler:
    """Owns watering state: sessions, recurring schedule and one-off schedule"""

    def __init__(
        self,
        timers,
        events: EventBus,
        clock: Callable[[], datetime] = datetime.now,
        irrigation_config: Optional[IrrigationConfig] = None,
        progress_interval: float = config.PROGRESS_TICK_SECONDS,
        tolerance_minutes: int = config.SCHEDULE_TOLERANCE_MINUTES,
    ):
        self.timers = timers
        self.events = events
        self.clock = clock
        self.config = irrigation_config or IrrigationConfig(
            frequency_days=config.IRRIGATION_FREQUENCY_DAYS,
            duration_minutes=config.IRRIGATION_DURATION_MINUTES,
            start_time=config.IRRIGATION_START_TIME,
            enabled=config.IRRIGATION_ENABLED,
        )
        self.progress_interval = progress_interval
        self.tolerance = timedelta(minutes=tolerance_minutes)

        now = self.clock()
        self.last_watering_at: datetime = now - timedelta(days=5)
        self.next_scheduled_at: Optional[datetime] = None
        self.in_progress = False
        self.progress = 0.0
        self.remaining_minutes = 0.0
        self.duration_minutes = 0
        self.scheduled: List[ScheduledWatering] = []

        self._progress_timer = None
        logger.info("Irrigation scheduler initialized")

    # ===== SESSIONS =====

    def start_manual(self, duration: Optional[int] = None) -> OperationResult:
        """Start a watering session on user request."""
        return self._begin(WateringMode.MANUAL, duration)

    def start_automatic(self, duration: Optional[int] = None) -> OperationResult:
        """Start a session from the automatic check and roll the recurring schedule."""
        return self._begin(WateringMode.AUTOMATIC, duration)

    def _begin(self, mode: WateringMode, duration: Optional[int]) -> OperationResult:
        if self.in_progress:
            return OperationResult.fail(ErrorKind.CONFLICT, "Watering already in progress")

        if duration is None:
            duration = self.config.duration_minutes
        error = validate_duration(duration)
        if error:
            return OperationResult.fail(ErrorKind.INVALID, error)
        duration = int(duration)

        now = self.clock()
        self.in_progress = True
        self.last_watering_at = now
        self.progress = 0.0
        self.duration_minutes = duration
        self.remaining_minutes = float(duration)
        if mode == WateringMode.AUTOMATIC:
            self.next_scheduled_at = now + timedelta(days=self.config.frequency_days)

        self._progress_timer = self.timers.every(
            self.progress_interval, self._advance_progress, name="irrigation-progress"
        )
        logger.info(f"💧 {mode.value.capitalize()} watering started for {duration} minutes")
        self.events.publish(WateringStarted(mode=mode, duration_minutes=duration))
        return OperationResult.ok(
            f"{mode.value.capitalize()} watering started for {duration} minutes",
            {'duration_minutes': duration, 'mode': mode.value},
        )

    def _advance_progress(self):
        if not self.in_progress:
            return
        d = self.duration_minutes
        self.progress += (100.0 / d) * (self.progress_interval / 60.0)
        self.remaining_minutes = max(0.0, d - (self.progress / 100.0) * d)
        if self.progress >= 100:
            self._finalize()

    def _finalize(self):
        self._cancel_progress_timer()
        self.in_progress = False
        self.progress = 100.0
        self.remaining_minutes = 0.0

        now = self.clock()
        upcoming = self.next_scheduled_at if self.next_scheduled_at and self.next_scheduled_at > now else None
        logger.info(f"✅ Watering completed after {self.duration_minutes} minutes")
        self.events.publish(WateringCompleted(
            duration_minutes=self.duration_minutes,
            next_scheduled_at=upcoming,
        ))

    def stop(self) -> OperationResult:
        """Stop the running session immediately."""
        if not self.in_progress:
            return OperationResult.fail(ErrorKind.CONFLICT, "No watering in progress")

        reached = self.progress
        self._cancel_progress_timer()
        self.in_progress = False
        self.progress = 0.0
        self.remaining_minutes = 0.0

        logger.info(f"Watering stopped at {reached:.0f}%")
        self.events.publish(WateringStopped(progress=reached))
        return OperationResult.ok(
            f"Watering stopped at {reached:.0f}%",
            {'progress': round(reached, 1)},
        )

    def _cancel_progress_timer(self):
        if self._progress_timer is not None:
            self._progress_timer.cancel()
            self._progress_timer = None

    # ===== RECURRING SCHEDULE =====

    def _at_start_time(self, day: datetime) -> datetime:
        return day.replace(
            hour=self.config.start_hour,
            minute=self.config.start_minute,
            second=0,
            microsecond=0,
        )

    def _recurring_next(self) -> datetime:
        frequency = timedelta(days=self.config.frequency_days)
        candidate = self._at_start_time(self.last_watering_at + frequency)
        if candidate <= self.clock():
            candidate += frequency
        return candidate

    def configure(self, patch: dict) -> OperationResult:
        """Update recurring config fields present in `patch`."""
        patch = {k: v for k, v in (patch or {}).items() if v is not None}
        updated = self.config.copy()

        if 'frequency_days' in patch:
            try:
                frequency = int(patch['frequency_days'])
            except (TypeError, ValueError):
                return OperationResult.fail(ErrorKind.INVALID, "Frequency must be a whole number of days")
            if frequency < 1:
                return OperationResult.fail(ErrorKind.INVALID, "Frequency must be at least 1 day")
            updated.frequency_days = frequency

        if 'duration_minutes' in patch:
            error = validate_duration(patch['duration_minutes'])
            if error:
                return OperationResult.fail(ErrorKind.INVALID, error)
            updated.duration_minutes = int(patch['duration_minutes'])

        if 'start_time' in patch:
            parsed = parse_time(patch['start_time'])
            if parsed is None:
                return OperationResult.fail(ErrorKind.INVALID, "Start time must use HH:MM format")
            updated.start_time = f"{parsed[0]:02d}:{parsed[1]:02d}"

        if 'enabled' in patch:
            updated.enabled = bool(patch['enabled'])

        specific_date = None
        if 'specific_date' in patch:
            specific_date = parse_date(patch['specific_date'])
            if specific_date is None:
                return OperationResult.fail(ErrorKind.INVALID, "Date must use YYYY-MM-DD format")

        changes = [name for name in CONFIG_FIELDS if getattr(updated, name) != getattr(self.config, name)]
        self.config = updated

        if specific_date is not None:
            self.next_scheduled_at = self._at_start_time(
                datetime.combine(specific_date, datetime.min.time())
            )
            changes.append('specific_date')
        else:
            self.next_scheduled_at = self._recurring_next()

        logger.info(f"Irrigation config updated: {changes or 'no changes'}")
        if changes:
            self.events.publish(IrrigationConfigChanged(changes=changes))

        data = self.config.to_dict()
        data['next_scheduled_at'] = self.next_scheduled_at.isoformat()
        return OperationResult.ok("Configuration updated", data)

    # ===== ONE-OFF SCHEDULE =====

    def schedule_at(self, day, time: str, duration: Optional[int] = None) -> OperationResult:
        """Schedule a one-off watering at `day` `time`."""
        parsed_day = parse_date(day)
        if parsed_day is None:
            return OperationResult.fail(ErrorKind.INVALID, "Date must use YYYY-MM-DD format")
        parsed_time = parse_time(time)
        if parsed_time is None:
            return OperationResult.fail(ErrorKind.INVALID, "Time must use HH:MM format")
        if duration is None:
            duration = self.config.duration_minutes
        error = validate_duration(duration)
        if error:
            return OperationResult.fail(ErrorKind.INVALID, error)

        now = self.clock()
        at = datetime.combine(parsed_day, datetime.min.time()).replace(
            hour=parsed_time[0], minute=parsed_time[1]
        )
        if at <= now:
            return OperationResult.fail(ErrorKind.INVALID, "Date must be in the future")

        entry = ScheduledWatering(
            id=uuid.uuid1().hex,
            scheduled_at=at,
            duration_minutes=int(duration),
            status=WateringStatus.SCHEDULED,
            created_at=now,
        )
        self.scheduled.append(entry)
        self.scheduled.sort(key=lambda w: w.scheduled_at)

        if self.next_scheduled_at is None or at < self.next_scheduled_at:
            self.next_scheduled_at = at

        logger.info(f"Watering scheduled for {at.isoformat()} ({entry.duration_minutes} min)")
        self.events.publish(WateringScheduled(entry=entry.copy()))
        return OperationResult.ok("Watering scheduled", entry.to_dict())

    def scheduled_waterings(self) -> List[ScheduledWatering]:
        """Pending one-off waterings, earliest first.

        Entries still inside the automatic-check window are kept in the
        internal list so a due watering is not lost before it runs.
        """
        now = self.clock()
        cutoff = now - self.tolerance
        self.scheduled = [
            w for w in self.scheduled
            if w.status == WateringStatus.SCHEDULED and w.scheduled_at > cutoff
        ]
        return [w.copy() for w in self.scheduled if w.scheduled_at > now]

    def cancel_scheduled(self, watering_id: str) -> OperationResult:
        for entry in self.scheduled:
            if entry.id == watering_id:
                break
        else:
            return OperationResult.fail(ErrorKind.NOT_FOUND, "Scheduled watering not found")

        self.scheduled.remove(entry)
        entry.status = WateringStatus.CANCELLED

        pending = [w for w in self.scheduled if w.status == WateringStatus.SCHEDULED]
        self.next_scheduled_at = pending[0].scheduled_at if pending else self._recurring_next()

        logger.info(f"Scheduled watering {watering_id} cancelled")
        return OperationResult.ok("Scheduled watering cancelled", entry.to_dict())

    # ===== AUTOMATIC CHECK =====

    def check_automatic(self) -> bool:
        """Start a due watering, if any. Runs once per sensor tick.

        Returns True when a session was started.
        """
        if not self.config.enabled or self.in_progress:
            return False

        now = self.clock()
        for entry in self.scheduled:
            if entry.status == WateringStatus.SCHEDULED and now - self.tolerance < entry.scheduled_at <= now:
                entry.status = WateringStatus.COMPLETED
                logger.info(f"Running scheduled watering {entry.id}")
                return self.start_automatic(entry.duration_minutes).success

        # No computed next time counts as due; the start-hour window still gates it
        if self.next_scheduled_at is None or now >= self.next_scheduled_at:
            tolerance_minutes = self.tolerance.total_seconds() / 60
            if (now.hour == self.config.start_hour
                    and abs(now.minute - self.config.start_minute) <= tolerance_minutes):
                logger.info("Recurring watering is due")
                return self.start_automatic().success
        return False

    # ===== QUERIES =====

    def snapshot(self) -> IrrigationState:
        now = self.clock()
        upcoming = self.next_scheduled_at if self.next_scheduled_at and self.next_scheduled_at > now else None
        days_since = math.floor((now - self.last_watering_at).total_seconds() / 86400)
        days_remaining = None
        if upcoming is not None:
            days_remaining = math.ceil((upcoming - now).total_seconds() / 86400)
        return IrrigationState(
            last_watering_at=self.last_watering_at,
            next_scheduled_at=upcoming,
            days_since_last=days_since,
            days_remaining=days_remaining,
            in_progress=self.in_progress,
            progress=self.progress,
            remaining_minutes=round_half_up(self.remaining_minutes),
            config=self.config.copy(),
            scheduled_waterings=[w.copy() for w in self.scheduled],
        )
