"""Diagnostics service - track operational metrics"""

import logging
import socket
from datetime import datetime

logger = logging.getLogger(__name__)


class DiagnosticsService:
    """Lightweight metrics collection backing /api/health"""

    def __init__(self):
        """Initialize diagnostics tracker"""
        self.start_time = datetime.now()
        self.counters = {
            'sensor_ticks': 0,
            'alerts_raised': 0,
            'waterings_started': 0,
            'api_requests': 0,
            'records_saved': 0,
            'firebase_errors': 0,
            'total_errors': 0,
        }
        self.last_sensor_tick = None
        self.firebase_connected = False
        logger.info("Diagnostics service initialized")

    def record_sensor_tick(self):
        self.counters['sensor_ticks'] += 1
        self.last_sensor_tick = datetime.now()

    def record_alert(self, alert=None):
        """Record an alert being raised (usable as an on_alert callback)"""
        self.counters['alerts_raised'] += 1

    def record_watering(self, event=None):
        self.counters['waterings_started'] += 1

    def record_request(self):
        self.counters['api_requests'] += 1

    def record_saved(self):
        self.counters['records_saved'] += 1

    def record_error(self, error_type: str = 'general'):
        """Record an error

        Args:
            error_type: 'firebase' or 'general'
        """
        self.counters['total_errors'] += 1
        if error_type == 'firebase':
            self.counters['firebase_errors'] += 1

    def set_firebase_status(self, connected: bool):
        """Update Firebase connection status"""
        self.firebase_connected = connected

    def get_uptime_seconds(self) -> int:
        """Get uptime in seconds"""
        return int((datetime.now() - self.start_time).total_seconds())

    def get_uptime_formatted(self) -> str:
        """Get uptime as formatted string"""
        seconds = self.get_uptime_seconds()
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        return f"{hours}h {minutes}m"

    def get_error_rate(self) -> float:
        """Get error rate as percentage (of sensor ticks and API requests)"""
        total_ops = self.counters['sensor_ticks'] + self.counters['api_requests']
        if total_ops == 0:
            return 0.0
        return (self.counters['total_errors'] / total_ops) * 100

    def get_health_summary(self) -> dict:
        """Health status, key metrics and host info"""
        error_rate = self.get_error_rate()

        if self.counters['total_errors'] > 50 or error_rate > 5.0:
            status = "degraded"
        else:
            status = "healthy"

        try:
            hostname = socket.gethostname()
        except OSError:
            hostname = "unknown"

        return {
            'status': status,
            'uptime_seconds': self.get_uptime_seconds(),
            'uptime_formatted': self.get_uptime_formatted(),
            'firebase_connected': self.firebase_connected,
            'error_rate_percent': round(error_rate, 2),
            'last_sensor_tick': self.last_sensor_tick.isoformat() if self.last_sensor_tick else None,
            'timestamp': datetime.now().isoformat(),
            'hostname': hostname,
            **self.counters,
        }

    def log_summary(self):
        """Log current health summary to logger"""
        summary = self.get_health_summary()
        logger.info(
            f"Health Summary - Status: {summary['status']}, "
            f"Uptime: {summary['uptime_formatted']}, "
            f"Ticks: {summary['sensor_ticks']}, "
            f"Errors: {summary['total_errors']}, "
            f"Error Rate: {summary['error_rate_percent']}%"
        )
