"""Services package"""

from .environment import EnvironmentClassifier
from .alert_service import AlertManager
from .diagnostics import DiagnosticsService
from .firebase_service import FirebaseMirror
from .record_service import RecordService
from .calendar_service import CalendarService
from .notification_service import NotificationService
from .report_service import ReportService

__all__ = [
    'EnvironmentClassifier', 'AlertManager', 'DiagnosticsService', 'FirebaseMirror',
    'RecordService', 'CalendarService', 'NotificationService', 'ReportService',
]
