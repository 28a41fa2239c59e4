"""Record service - persists sensor readings and answers history queries"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from .. import config
from ..domain import records as record_rules
from ..models.result import ErrorKind, OperationResult
from ..models.sensor_data import SensorReading
from ..storage.local_db import LocalDatabase
from ..storage.models import SensorRecord, to_ms

logger = logging.getLogger(__name__)


class RecordService:
    """Historical sensor records for one greenhouse"""

    def __init__(
        self,
        db: LocalDatabase,
        greenhouse_id: int = config.GREENHOUSE_ID,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db = db
        self.greenhouse_id = greenhouse_id
        self.clock = clock

    def save_reading(self, reading: SensorReading) -> OperationResult:
        """Validate a reading and store it as a historical record."""
        errors = record_rules.validate_record({
            'temperature': reading.temperature,
            'humidity': reading.humidity,
            'greenhouse_id': self.greenhouse_id,
        })
        if errors:
            logger.warning(f"Reading rejected: {'; '.join(errors)}")
            return OperationResult.fail(ErrorKind.INVALID, "; ".join(errors))

        record = self.db.insert_record(SensorRecord(
            greenhouse_id=self.greenhouse_id,
            temperature=reading.temperature,
            humidity=reading.humidity,
            timestamp=to_ms(reading.timestamp),
            status=reading.status,
        ))
        logger.debug(f"Record {record.id} saved: {record.temperature}°C, {record.humidity}%")
        return OperationResult.ok("Record saved", record.model_dump(mode="json"))

    async def async_save_reading(self, reading: SensorReading) -> OperationResult:
        """Save reading (non-blocking async wrapper)"""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self.save_reading, reading)

    def records(self, limit: int = 50) -> List[SensorRecord]:
        """Most recent records, newest first."""
        return self.db.get_latest_records(self.greenhouse_id, limit)

    def records_between(self, since: datetime, until: Optional[datetime] = None) -> List[SensorRecord]:
        return self.db.get_records(
            self.greenhouse_id,
            since=to_ms(since),
            until=to_ms(until) if until else None,
        )

    def statistics(self, since: Optional[datetime] = None) -> dict:
        """Statistics since `since`, defaulting to the start of today."""
        if since is None:
            since = self.clock().replace(hour=0, minute=0, second=0, microsecond=0)
        return record_rules.calculate_statistics(self.records_between(since))

    def anomalies(self, since: datetime) -> List[SensorRecord]:
        return record_rules.detect_anomalies(
            self.records_between(since),
            (config.TEMP_MIN, config.TEMP_MAX),
            (config.HUMIDITY_MIN, config.HUMIDITY_MAX),
        )

    def cleanup(self, days: int = config.RECORD_RETENTION_DAYS) -> int:
        deleted = self.db.cleanup_old_records(days, now_ms=to_ms(self.clock()))
        if deleted:
            logger.info(f"Removed {deleted} records older than {days} days")
        return deleted
