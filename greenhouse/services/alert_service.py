"""Alert service - keyed, de-duplicated set of active alerts

Alerts come from two places: the per-tick reconciliation pass over the
current reading and irrigation snapshot, and irrigation events published
by the scheduler. Keyed alerts represent an ongoing condition and are
updated in place; unkeyed alerts are one-off notices.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from .. import config
from ..models.alert import Alert, AlertKey, AlertKind, HUMIDITY_KEYS, IMPORTANT_KINDS, WATERING_KEYS
from ..models.irrigation import IrrigationConfig, IrrigationState, WateringMode, round_half_up
from ..models.result import ErrorKind, OperationResult
from ..models.sensor_data import ChannelConfig, SensorReading
from ..utils.events import (
    EventBus,
    IrrigationConfigChanged,
    WateringCompleted,
    WateringScheduled,
    WateringStarted,
    WateringStopped,
)

logger = logging.getLogger(__name__)

# Humidity this far below the minimum escalates to an error-level alert
URGENT_HUMIDITY_DEFICIT = 5.0

CONFIG_FIELD_LABELS = {
    'frequency_days': 'frequency',
    'duration_minutes': 'duration',
    'start_time': 'start time',
    'enabled': 'enabled',
    'specific_date': 'date',
}


class AlertManager:
    """Maintains the active alert list, most recent first"""

    def __init__(
        self,
        timers,
        events: EventBus,
        temperature: ChannelConfig,
        humidity: ChannelConfig,
        clock: Callable[[], datetime] = datetime.now,
        automatic_check: Optional[Callable[[], object]] = None,
        on_alert: Optional[Callable[[Alert], None]] = None,
        retention_hours: int = config.ALERT_RETENTION_HOURS,
    ):
        self.timers = timers
        self.temperature = temperature
        self.humidity = humidity
        self.clock = clock
        self.automatic_check = automatic_check
        self.on_alert = on_alert
        self.retention = timedelta(hours=retention_hours)

        self._alerts: List[Alert] = []
        self._keyed: Dict[AlertKey, Alert] = {}

        events.subscribe(WateringStarted, self._on_watering_started)
        events.subscribe(WateringCompleted, self._on_watering_completed)
        events.subscribe(WateringStopped, self._on_watering_stopped)
        events.subscribe(IrrigationConfigChanged, self._on_config_changed)
        events.subscribe(WateringScheduled, self._on_watering_scheduled)

    # ===== MUTATIONS =====

    def _new_alert(self, kind: AlertKind, title: str, description: str,
                   important: bool, key: Optional[AlertKey] = None) -> Alert:
        alert = Alert(
            id=str(uuid.uuid4()),
            kind=kind,
            title=title,
            description=description,
            created_at=self.clock(),
            important=important,
            key=key,
        )
        self._alerts.insert(0, alert)
        logger.debug(f"Alert raised: [{kind.value}] {title}")
        if self.on_alert:
            self.on_alert(alert)
        return alert

    def add(self, kind: AlertKind, title: str, description: str, important: bool = False) -> Alert:
        """Prepend an unkeyed alert."""
        return self._new_alert(kind, title, description, important)

    def upsert(self, key: AlertKey, kind: AlertKind, title: str, description: str) -> Alert:
        """Create or refresh the alert for `key`; the read flag survives a refresh."""
        existing = self._keyed.get(key)
        if existing is not None:
            existing.kind = kind
            existing.title = title
            existing.description = description
            existing.created_at = self.clock()
            existing.important = kind in IMPORTANT_KINDS
            return existing
        alert = self._new_alert(kind, title, description, kind in IMPORTANT_KINDS, key)
        self._keyed[key] = alert
        return alert

    def remove(self, key: AlertKey) -> bool:
        alert = self._keyed.pop(key, None)
        if alert is None:
            return False
        self._alerts.remove(alert)
        return True

    def remove_later(self, key: AlertKey, seconds: float):
        """Drop whatever alert holds `key` after `seconds`."""
        return self.timers.call_later(seconds, lambda: self.remove(key), name=f"expire-{key.value}")

    def has(self, key: AlertKey) -> bool:
        return key in self._keyed

    def get(self, key: AlertKey) -> Optional[Alert]:
        return self._keyed.get(key)

    # ===== RECONCILIATION =====

    def reconcile(self, reading: SensorReading, state: IrrigationState, irrigation: IrrigationConfig):
        """One pass over the current reading and irrigation snapshot."""
        self._reconcile_temperature(reading.temperature)
        self._reconcile_humidity(reading.humidity, state, irrigation)
        self._reconcile_upcoming(state, irrigation)
        self._reconcile_progress(state)
        if self.automatic_check is not None:
            self.automatic_check()
        self.sweep()

    def _reconcile_temperature(self, temperature: float):
        t = self.temperature
        if temperature < t.minimum:
            self.upsert(AlertKey.TEMP_LOW, AlertKind.WARNING, "Low temperature",
                        f"Temperature at {temperature}°C, below the minimum of {t.minimum}°C")
            self.remove(AlertKey.TEMP_HIGH)
        elif temperature > t.maximum:
            self.upsert(AlertKey.TEMP_HIGH, AlertKind.WARNING, "High temperature",
                        f"Temperature at {temperature}°C, above the maximum of {t.maximum}°C")
            self.remove(AlertKey.TEMP_LOW)
        else:
            self.remove(AlertKey.TEMP_LOW)
            self.remove(AlertKey.TEMP_HIGH)

    def _reconcile_humidity(self, humidity: float, state: IrrigationState, irrigation: IrrigationConfig):
        h = self.humidity
        if humidity < h.minimum:
            if state.in_progress:
                self.upsert(AlertKey.HUMIDITY_LOW, AlertKind.INFO, "Humidity being corrected",
                            f"Humidity at {humidity}%. Watering in progress")
            else:
                self.upsert(AlertKey.HUMIDITY_LOW, AlertKind.WARNING, "Low humidity",
                            f"Humidity at {humidity}%, below the minimum of {h.minimum}%")
                if humidity < h.minimum - URGENT_HUMIDITY_DEFICIT:
                    self.upsert(AlertKey.HUMIDITY_CRITICAL, AlertKind.ERROR, "Urgent watering needed",
                                f"Humidity critically low at {humidity}%. Start watering now")
            self.remove(AlertKey.HUMIDITY_HIGH)
        elif humidity > h.maximum:
            self.upsert(AlertKey.HUMIDITY_HIGH, AlertKind.WARNING, "High humidity",
                        f"Humidity at {humidity}%, above the maximum of {h.maximum}%. Check ventilation")
            self.remove(AlertKey.HUMIDITY_LOW)
            self.remove(AlertKey.HUMIDITY_CRITICAL)
        else:
            # Watering alerts count too: a finished watering reports the recovery
            was_out_of_range = any(self.has(key) for key in HUMIDITY_KEYS + WATERING_KEYS)
            for key in HUMIDITY_KEYS:
                self.remove(key)
            if (was_out_of_range and irrigation.enabled
                    and not self.has(AlertKey.HUMIDITY_NORMALIZED)):
                self.upsert(AlertKey.HUMIDITY_NORMALIZED, AlertKind.SUCCESS, "Humidity normalized",
                            f"Humidity back in range at {humidity}%")
                self.remove_later(AlertKey.HUMIDITY_NORMALIZED, config.NORMALIZED_ALERT_SECONDS)

    def _reconcile_upcoming(self, state: IrrigationState, irrigation: IrrigationConfig):
        upcoming = state.next_scheduled_at
        if (upcoming is not None and state.days_remaining is not None and state.days_remaining <= 1
                and not state.in_progress and irrigation.enabled):
            when = "today" if upcoming.date() == self.clock().date() else "tomorrow"
            self.upsert(AlertKey.WATERING_UPCOMING, AlertKind.INFO, "Upcoming watering",
                        f"Watering scheduled for {when} at {upcoming:%H:%M}")
        else:
            self.remove(AlertKey.WATERING_UPCOMING)

    def _reconcile_progress(self, state: IrrigationState):
        if state.in_progress:
            minutes = state.remaining_minutes
            self.upsert(AlertKey.WATERING_IN_PROGRESS, AlertKind.INFO, "Watering in progress",
                        f"{round_half_up(state.progress)}% complete. Time remaining: "
                        f"{minutes} minute{'s' if minutes != 1 else ''}")
        else:
            self.remove(AlertKey.WATERING_IN_PROGRESS)

    def sweep(self) -> int:
        """Drop read, non-important alerts older than the retention window."""
        cutoff = self.clock() - self.retention
        kept = []
        removed = 0
        for alert in self._alerts:
            if alert.read and not alert.important and alert.created_at < cutoff:
                if alert.key is not None:
                    self._keyed.pop(alert.key, None)
                removed += 1
            else:
                kept.append(alert)
        self._alerts = kept
        if removed:
            logger.debug(f"Swept {removed} expired alerts")
        return removed

    # ===== EVENT REACTIONS =====

    def _on_watering_started(self, event: WateringStarted):
        if event.mode == WateringMode.AUTOMATIC:
            self.add(AlertKind.SUCCESS, "Automatic watering started",
                     f"Scheduled watering running for {event.duration_minutes} minutes", important=True)
        else:
            self.add(AlertKind.INFO, "Manual watering started",
                     f"Watering running for {event.duration_minutes} minutes", important=True)

    def _on_watering_completed(self, event: WateringCompleted):
        self.remove(AlertKey.WATERING_IN_PROGRESS)
        description = f"Watering of {event.duration_minutes} minutes finished"
        if event.next_scheduled_at is not None:
            description += f". Next watering: {event.next_scheduled_at:%Y-%m-%d %H:%M}"
        self.upsert(AlertKey.WATERING_COMPLETED, AlertKind.SUCCESS, "Watering completed", description)
        self.remove_later(AlertKey.WATERING_COMPLETED, config.COMPLETED_ALERT_SECONDS)

    def _on_watering_stopped(self, event: WateringStopped):
        self.remove(AlertKey.WATERING_IN_PROGRESS)
        self.upsert(AlertKey.WATERING_STOPPED, AlertKind.WARNING, "Watering stopped",
                    f"Watering stopped manually at {event.progress:.0f}%")
        self.remove_later(AlertKey.WATERING_STOPPED, config.STOPPED_ALERT_SECONDS)

    def _on_config_changed(self, event: IrrigationConfigChanged):
        labels = ", ".join(CONFIG_FIELD_LABELS.get(name, name) for name in event.changes)
        self.add(AlertKind.INFO, "Irrigation configuration updated", f"Changed: {labels}")

    def _on_watering_scheduled(self, event: WateringScheduled):
        entry = event.entry
        self.add(AlertKind.INFO, "Watering scheduled",
                 f"Watering on {entry.scheduled_at:%Y-%m-%d} at {entry.scheduled_at:%H:%M} "
                 f"for {entry.duration_minutes} minutes")

    # ===== QUERIES =====

    def alerts(self, limit: int = 10) -> dict:
        return {
            'items': [a.to_dict() for a in self._alerts[:max(0, limit)]],
            'unread_count': sum(1 for a in self._alerts if not a.read),
            'total': len(self._alerts),
        }

    def all(self) -> List[Alert]:
        return list(self._alerts)

    def _find(self, alert_id: str) -> Optional[Alert]:
        for alert in self._alerts:
            if alert.id == alert_id:
                return alert
        return None

    def mark_read(self, alert_id: str) -> OperationResult:
        alert = self._find(alert_id)
        if alert is None:
            return OperationResult.fail(ErrorKind.NOT_FOUND, "Alert not found")
        alert.read = True
        return OperationResult.ok("Alert marked as read", alert.to_dict())

    def mark_all_read(self) -> OperationResult:
        count = 0
        for alert in self._alerts:
            if not alert.read:
                alert.read = True
                count += 1
        return OperationResult.ok(f"{count} alerts marked as read", {'updated': count})

    def delete(self, alert_id: str) -> OperationResult:
        alert = self._find(alert_id)
        if alert is None:
            return OperationResult.fail(ErrorKind.NOT_FOUND, "Alert not found")
        self._alerts.remove(alert)
        if alert.key is not None and self._keyed.get(alert.key) is alert:
            del self._keyed[alert.key]
        return OperationResult.ok("Alert deleted")
