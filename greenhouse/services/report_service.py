"""Report service - daily trends and alert summaries over stored records"""

import logging
from datetime import datetime, timedelta
from typing import Callable

from .. import config
from ..domain import records as record_rules
from ..models.result import OperationResult
from ..models.sensor_data import SensorStatus
from ..storage.local_db import LocalDatabase
from ..storage.models import to_ms

logger = logging.getLogger(__name__)

PERIOD_DAYS = {
    'today': 1,
    'day': 1,
    'week': 7,
    '7days': 7,
    'month': 30,
    '30days': 30,
    '90days': 90,
    'year': 365,
    '1year': 365,
}
DEFAULT_PERIOD_DAYS = 7


def period_days(period: str) -> int:
    return PERIOD_DAYS.get((period or '').lower(), DEFAULT_PERIOD_DAYS)


class ReportService:
    def __init__(self, db: LocalDatabase, clock: Callable[[], datetime] = datetime.now):
        self.db = db
        self.clock = clock

    def _records_since(self, greenhouse_id: int, days: int, midnight: bool = True):
        start = self.clock() - timedelta(days=days)
        if midnight:
            start = start.replace(hour=0, minute=0, second=0, microsecond=0)
        return self.db.get_records(greenhouse_id, since=to_ms(start))

    def generate_report(self, greenhouse_id: int = config.GREENHOUSE_ID, period: str = 'week') -> OperationResult:
        """Daily groups plus overall per-channel statistics and trend."""
        days = period_days(period)
        records = self._records_since(greenhouse_id, days)
        daily = record_rules.group_by_day(records)
        overall = record_rules.calculate_statistics(records)

        trends = {}
        for channel in ('temperature', 'humidity'):
            stats = overall[channel]
            stats['trend'] = record_rules.trend([d[channel]['average'] for d in daily])
            trends[channel] = stats

        logger.info(f"Report generated for greenhouse {greenhouse_id}: {period} ({len(records)} records)")
        return OperationResult.ok("Report generated", {
            'period': period,
            'days': days,
            'daily': daily,
            'trends': trends,
            'total_records': len(records),
        })

    def alert_summary(self, greenhouse_id: int = config.GREENHOUSE_ID, days: int = 7) -> OperationResult:
        records = self._records_since(greenhouse_id, days, midnight=False)
        summary = {
            'total': len(records),
            'normal': sum(1 for r in records if r.status == SensorStatus.NORMAL),
            'warning': sum(1 for r in records if r.status == SensorStatus.WARNING),
            'critical': sum(1 for r in records if r.status == SensorStatus.CRITICAL),
        }
        return OperationResult.ok("Alert summary", summary)
