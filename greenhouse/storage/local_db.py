"""
Local SQLite database for the greenhouse monitor.
Holds historical sensor records, irrigation calendars and notifications.
"""

import sqlite3
import time
from pathlib import Path
from typing import List, Optional
from contextlib import contextmanager

from .. import config
from ..models.sensor_data import SensorStatus
from .models import (
    IrrigationCalendar,
    Notification,
    NotificationPriority,
    NotificationType,
    SensorRecord,
)


def _now_ms() -> int:
    return int(time.time() * 1000)


class LocalDatabase:
    """SQLite database manager for local storage."""

    def __init__(self, db_path: str = config.DATABASE_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self):
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS sensor_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    greenhouse_id INTEGER NOT NULL,
                    temperature REAL NOT NULL,
                    humidity REAL NOT NULL,
                    timestamp INTEGER NOT NULL,
                    status TEXT NOT NULL
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_records_greenhouse_timestamp
                ON sensor_records(greenhouse_id, timestamp)
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS irrigation_calendars (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    greenhouse_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    watering_time TEXT NOT NULL,
                    duration_minutes INTEGER NOT NULL,
                    days TEXT NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1,
                    created_at INTEGER NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS notifications (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    type TEXT NOT NULL,
                    title TEXT NOT NULL,
                    message TEXT NOT NULL,
                    priority TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    sent_at INTEGER
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS notification_recipients (
                    notification_id INTEGER NOT NULL,
                    user_id INTEGER NOT NULL,
                    read INTEGER NOT NULL DEFAULT 0,
                    read_at INTEGER,
                    PRIMARY KEY (notification_id, user_id)
                )
            """)

    # =========================================================================
    # SENSOR RECORDS
    # =========================================================================

    @staticmethod
    def _row_to_record(row) -> SensorRecord:
        return SensorRecord(
            id=row['id'],
            greenhouseId=row['greenhouse_id'],
            temperature=row['temperature'],
            humidity=row['humidity'],
            timestamp=row['timestamp'],
            status=SensorStatus(row['status']),
        )

    def insert_record(self, record: SensorRecord) -> SensorRecord:
        """Insert a sensor record and return it with its id."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO sensor_records (greenhouse_id, temperature, humidity, timestamp, status)
                VALUES (?, ?, ?, ?, ?)
            """, (
                record.greenhouse_id,
                record.temperature,
                record.humidity,
                record.timestamp,
                record.status.value,
            ))
            return record.model_copy(update={'id': cursor.lastrowid})

    def get_records(
        self,
        greenhouse_id: int,
        since: Optional[int] = None,
        until: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[SensorRecord]:
        """Records for a greenhouse in a time range, oldest first."""
        query = "SELECT * FROM sensor_records WHERE greenhouse_id = ?"
        params: list = [greenhouse_id]
        if since is not None:
            query += " AND timestamp >= ?"
            params.append(since)
        if until is not None:
            query += " AND timestamp <= ?"
            params.append(until)
        query += " ORDER BY timestamp ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [self._row_to_record(row) for row in cursor.fetchall()]

    def get_latest_records(self, greenhouse_id: int, limit: int = 10) -> List[SensorRecord]:
        """Most recent records, newest first."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM sensor_records
                WHERE greenhouse_id = ?
                ORDER BY timestamp DESC
                LIMIT ?
            """, (greenhouse_id, limit))
            return [self._row_to_record(row) for row in cursor.fetchall()]

    def cleanup_old_records(self, days: int = 365, now_ms: Optional[int] = None) -> int:
        """Delete records older than specified days. Returns count deleted."""
        cutoff = (now_ms or _now_ms()) - (days * 24 * 60 * 60 * 1000)
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM sensor_records WHERE timestamp < ?", (cutoff,))
            return cursor.rowcount

    # =========================================================================
    # IRRIGATION CALENDARS
    # =========================================================================

    @staticmethod
    def _row_to_calendar(row) -> IrrigationCalendar:
        days = [int(d) for d in row['days'].split(',') if d]
        return IrrigationCalendar(
            id=row['id'],
            greenhouseId=row['greenhouse_id'],
            name=row['name'],
            wateringTime=row['watering_time'],
            durationMinutes=row['duration_minutes'],
            days=days,
            active=bool(row['active']),
            createdAt=row['created_at'],
        )

    def create_calendar(self, calendar: IrrigationCalendar) -> IrrigationCalendar:
        created_at = calendar.created_at or _now_ms()
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO irrigation_calendars
                (greenhouse_id, name, watering_time, duration_minutes, days, active, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                calendar.greenhouse_id,
                calendar.name,
                calendar.watering_time,
                calendar.duration_minutes,
                ','.join(str(d) for d in sorted(set(calendar.days))),
                1 if calendar.active else 0,
                created_at,
            ))
            return calendar.model_copy(update={'id': cursor.lastrowid, 'created_at': created_at})

    def get_calendar(self, calendar_id: int) -> Optional[IrrigationCalendar]:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM irrigation_calendars WHERE id = ?", (calendar_id,))
            row = cursor.fetchone()
            return self._row_to_calendar(row) if row else None

    def get_calendars(self, greenhouse_id: Optional[int] = None, active_only: bool = True) -> List[IrrigationCalendar]:
        query = "SELECT * FROM irrigation_calendars WHERE 1=1"
        params: list = []
        if greenhouse_id is not None:
            query += " AND greenhouse_id = ?"
            params.append(greenhouse_id)
        if active_only:
            query += " AND active = 1"
        query += " ORDER BY created_at DESC, id DESC"

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [self._row_to_calendar(row) for row in cursor.fetchall()]

    def update_calendar(self, calendar: IrrigationCalendar) -> bool:
        """Overwrite an existing calendar row. Returns False if it does not exist."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                UPDATE irrigation_calendars
                SET greenhouse_id = ?, name = ?, watering_time = ?, duration_minutes = ?,
                    days = ?, active = ?
                WHERE id = ?
            """, (
                calendar.greenhouse_id,
                calendar.name,
                calendar.watering_time,
                calendar.duration_minutes,
                ','.join(str(d) for d in sorted(set(calendar.days))),
                1 if calendar.active else 0,
                calendar.id,
            ))
            return cursor.rowcount > 0

    def deactivate_calendar(self, calendar_id: int) -> bool:
        """Soft delete."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("UPDATE irrigation_calendars SET active = 0 WHERE id = ?", (calendar_id,))
            return cursor.rowcount > 0

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    def create_notification(self, notification: Notification) -> Notification:
        created_at = notification.created_at or _now_ms()
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO notifications (type, title, message, priority, created_at, sent_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                notification.type.value,
                notification.title,
                notification.message,
                notification.priority.value,
                created_at,
                notification.sent_at,
            ))
            notification_id = cursor.lastrowid
            cursor.executemany("""
                INSERT OR IGNORE INTO notification_recipients (notification_id, user_id)
                VALUES (?, ?)
            """, [(notification_id, user_id) for user_id in notification.recipients])
            return notification.model_copy(update={'id': notification_id, 'created_at': created_at})

    def get_notifications(self, user_id: Optional[int] = None, limit: int = 50,
                          unread_only: bool = False) -> List[Notification]:
        """Notifications newest first. With a user, read flags are that user's."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            if user_id is None:
                cursor.execute("""
                    SELECT n.*, 0 AS read FROM notifications n
                    ORDER BY n.created_at DESC, n.id DESC
                    LIMIT ?
                """, (limit,))
            else:
                query = """
                    SELECT n.*, r.read AS read FROM notifications n
                    JOIN notification_recipients r ON r.notification_id = n.id
                    WHERE r.user_id = ?
                """
                if unread_only:
                    query += " AND r.read = 0"
                query += " ORDER BY n.created_at DESC, n.id DESC LIMIT ?"
                cursor.execute(query, (user_id, limit))
            rows = cursor.fetchall()

            result = []
            for row in rows:
                cursor.execute(
                    "SELECT user_id FROM notification_recipients WHERE notification_id = ?",
                    (row['id'],),
                )
                recipients = [r['user_id'] for r in cursor.fetchall()]
                result.append(Notification(
                    id=row['id'],
                    type=NotificationType(row['type']),
                    title=row['title'],
                    message=row['message'],
                    priority=NotificationPriority(row['priority']),
                    createdAt=row['created_at'],
                    sentAt=row['sent_at'],
                    recipients=recipients,
                    read=bool(row['read']),
                ))
            return result

    def mark_notification_read(self, notification_id: int, user_id: int) -> bool:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                UPDATE notification_recipients SET read = 1, read_at = ?
                WHERE notification_id = ? AND user_id = ?
            """, (_now_ms(), notification_id, user_id))
            return cursor.rowcount > 0
