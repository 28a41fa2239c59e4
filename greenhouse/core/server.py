"""Core GreenhouseServer - owns and wires every component"""

import asyncio
import logging
import random
from datetime import datetime
from typing import Callable, List, Optional

from .. import config
from ..controllers.irrigation import IrrigationScheduler
from ..controllers.sensors import (
    SensorSimulator,
    default_humidity_config,
    default_temperature_config,
)
from ..models.irrigation import IrrigationConfig, IrrigationState, ScheduledWatering
from ..models.result import OperationResult
from ..models.sensor_data import SensorReading
from ..services.alert_service import AlertManager
from ..services.api_server import ApiServer
from ..services.calendar_service import CalendarService
from ..services.diagnostics import DiagnosticsService
from ..services.environment import EnvironmentClassifier
from ..services.firebase_service import FirebaseMirror
from ..services.notification_service import NotificationService
from ..services.record_service import RecordService
from ..services.report_service import ReportService
from ..storage.local_db import LocalDatabase
from ..utils.events import EventBus, WateringCompleted, WateringStarted, WateringStopped
from ..utils.timers import TimerGroup

logger = logging.getLogger(__name__)


class GreenhouseServer:
    """Single owning context for the reading, irrigation state and alerts.

    All core state is mutated from callbacks on one event loop: the sensor
    tick, the irrigation progress tick, one-shot alert expiries and API
    calls marshalled onto the loop.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        rng: Optional[random.Random] = None,
        timers=None,
        database: Optional[LocalDatabase] = None,
        firebase: Optional[FirebaseMirror] = None,
        sensor_interval: float = config.SENSOR_UPDATE_INTERVAL,
        record_interval: float = config.RECORD_INTERVAL_MINUTES * 60,
        auto_record: bool = config.AUTO_RECORD_ENABLED,
        api_port: Optional[int] = config.API_PORT,
    ):
        logger.info("Initializing greenhouse server...")
        self.clock = clock
        self.sensor_interval = sensor_interval
        self.record_interval = record_interval
        self.auto_record = auto_record

        self.diagnostics = DiagnosticsService()
        self.events = EventBus()
        self.timers = timers if timers is not None else TimerGroup()

        temperature = default_temperature_config()
        humidity = default_humidity_config()
        self.classifier = EnvironmentClassifier(temperature, humidity)
        self.sensors = SensorSimulator(self.classifier, clock=clock, rng=rng)
        self.irrigation = IrrigationScheduler(self.timers, self.events, clock=clock)
        self.alert_manager = AlertManager(
            self.timers,
            self.events,
            temperature,
            humidity,
            clock=clock,
            automatic_check=self.irrigation.check_automatic,
            on_alert=self.diagnostics.record_alert,
        )

        # Persistence-backed services
        self.database = database if database is not None else LocalDatabase()
        self.records = RecordService(self.database, clock=clock)
        self.calendars = CalendarService(self.database, clock=clock)
        self.notifications = NotificationService(self.database)
        self.reports = ReportService(self.database, clock=clock)

        self.firebase = firebase if firebase is not None else FirebaseMirror(diagnostics=self.diagnostics)
        self.api = ApiServer(self, port=api_port) if api_port else None

        self.events.subscribe(WateringStarted, self.diagnostics.record_watering)
        self.events.subscribe(WateringCompleted, self._schedule_refresh)
        self.events.subscribe(WateringStopped, self._schedule_refresh)

        self.running = False
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._tick_timer = None
        self._record_task: Optional[asyncio.Task] = None
        self._reminded_on = None
        logger.info("Greenhouse server initialized")

    # ===== LIFECYCLE =====

    def start(self):
        """Arm the timers and start the API. Must run inside the event loop."""
        if self.running:
            return
        self.loop = asyncio.get_running_loop()
        self.running = True

        if self.sensor_interval > self.irrigation.tolerance.total_seconds():
            logger.warning(
                f"⚠️  Sensor interval ({self.sensor_interval}s) exceeds the schedule tolerance "
                f"window; scheduled waterings may be missed"
            )

        self.firebase.connect()
        self._tick_timer = self.timers.every(self.sensor_interval, self.tick, name="sensor-tick")
        if self.auto_record:
            self._record_task = self.loop.create_task(self._auto_record_loop())
        if self.api is not None:
            self.api.start(self.loop)
        logger.info(f"✅ Greenhouse server started (tick every {self.sensor_interval}s)")

    async def run(self):
        """Start and keep running until stop() is called."""
        self.start()
        while self.running:
            await asyncio.sleep(1)

    def stop(self):
        """Disarm every timer and stop the API. Safe to call twice."""
        if not self.running:
            return
        logger.info("Stopping greenhouse server...")
        self.running = False
        # A session cannot outlive its progress timer
        if self.irrigation.in_progress:
            self.irrigation.stop()
        self.timers.cancel_all()
        self._tick_timer = None
        if self._record_task is not None:
            self._record_task.cancel()
            self._record_task = None
        if self.api is not None:
            self.api.stop()
        self.firebase.disconnect()
        self.diagnostics.log_summary()
        logger.info("Greenhouse server stopped")

    # ===== TICK =====

    def tick(self) -> SensorReading:
        """One sensor tick: advance the reading, reconcile alerts, mirror."""
        reading = self.sensors.tick()
        self.diagnostics.record_sensor_tick()
        self._reconcile(reading)
        self._mirror(reading)
        return reading

    def _reconcile(self, reading: SensorReading):
        self.alert_manager.reconcile(reading, self.irrigation.snapshot(), self.irrigation.config)

    def refresh_alerts(self):
        """Reconciliation pass over the current reading without advancing it."""
        self._reconcile(self.sensors.reading())

    def _schedule_refresh(self, event=None):
        self.timers.call_later(config.RECONCILE_DELAY_SECONDS, self.refresh_alerts, name="refresh-alerts")

    def _mirror(self, reading: SensorReading):
        if not self.firebase.connected or self.loop is None:
            return
        self.loop.run_in_executor(None, self.firebase.publish, reading, self.irrigation.snapshot())

    async def _auto_record_loop(self):
        """Persist the current reading periodically and flag out-of-range values."""
        logger.info(f"Starting auto-record loop (every {self.record_interval:.0f}s)...")
        loop = asyncio.get_event_loop()
        while self.running:
            try:
                reading = self.sensors.reading()
                result = await self.records.async_save_reading(reading)
                if result.success:
                    self.diagnostics.record_saved()
                    await loop.run_in_executor(None, self.notifications.check_environment, reading)
                await loop.run_in_executor(None, self.remind_due_calendars)
            except Exception as e:
                logger.error(f"Error in auto-record loop: {e}", exc_info=True)
                self.diagnostics.record_error()
            await asyncio.sleep(self.record_interval)

    def remind_due_calendars(self) -> list:
        """Store one reminder per calendar due today, at most once a day."""
        today = self.clock().date()
        if self._reminded_on == today:
            return []
        self._reminded_on = today
        reminders = self.notifications.remind_watering(self.calendars.due_today())
        if reminders:
            logger.info(f"Stored {len(reminders)} watering reminder(s) for {today}")
        return reminders

    # ===== QUERY SURFACE =====

    def current_reading(self) -> SensorReading:
        return self.sensors.reading()

    def alerts(self, limit: int = 10) -> dict:
        return self.alert_manager.alerts(limit)

    def irrigation_state(self) -> IrrigationState:
        return self.irrigation.snapshot()

    def irrigation_config(self) -> IrrigationConfig:
        return self.irrigation.config.copy()

    def update_irrigation_config(self, patch: dict) -> OperationResult:
        return self.irrigation.configure(patch)

    def scheduled_waterings(self) -> List[ScheduledWatering]:
        return self.irrigation.scheduled_waterings()

    def mark_alert_read(self, alert_id: str) -> OperationResult:
        return self.alert_manager.mark_read(alert_id)

    def mark_all_read(self) -> OperationResult:
        return self.alert_manager.mark_all_read()

    def delete_alert(self, alert_id: str) -> OperationResult:
        return self.alert_manager.delete(alert_id)

    def start_watering(self, duration: Optional[int] = None) -> OperationResult:
        return self.irrigation.start_manual(duration)

    def stop_watering(self) -> OperationResult:
        return self.irrigation.stop()

    def schedule_watering(self, day, time: str, duration: Optional[int] = None) -> OperationResult:
        return self.irrigation.schedule_at(day, time, duration)

    def cancel_scheduled(self, watering_id: str) -> OperationResult:
        return self.irrigation.cancel_scheduled(watering_id)

    def history(self, count: int = 24) -> List[SensorReading]:
        return self.sensors.history(count)

    def statistics(self) -> dict:
        """Today's statistics from stored records, or the live reading when none exist."""
        stats = self.records.statistics()
        if stats['total_records'] == 0:
            reading = self.sensors.reading()
            stats = {
                'temperature': {'average': reading.temperature, 'minimum': reading.temperature,
                                'maximum': reading.temperature},
                'humidity': {'average': reading.humidity, 'minimum': reading.humidity,
                             'maximum': reading.humidity},
                'total_records': 0,
            }
        return stats

    def dashboard_snapshot(self) -> dict:
        state = self.irrigation.snapshot()
        return {
            'reading': self.sensors.reading().to_dict(),
            'irrigation': {
                'in_progress': state.in_progress,
                'progress': round(state.progress, 1),
                'remaining_minutes': state.remaining_minutes,
                'last_watering_at': state.last_watering_at.isoformat(),
                'next_scheduled_at': state.next_scheduled_at.isoformat() if state.next_scheduled_at else None,
                'days_remaining': state.days_remaining,
            },
            'alerts': self.alert_manager.alerts(5),
        }
