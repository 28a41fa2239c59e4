"""Firebase service - mirrors the live reading to the Realtime Database"""

import logging
import os
from typing import Optional

import firebase_admin
from firebase_admin import credentials, db

from .. import config
from ..models.irrigation import IrrigationState
from ..models.sensor_data import SensorReading

logger = logging.getLogger(__name__)


class FirebaseMirror:
    """Optional RTDB mirror of the single device node.

    Disabled when the credentials file is missing; a failure to connect or
    write never interrupts the sensor tick.
    """

    def __init__(
        self,
        credentials_path: str = config.FIREBASE_CREDENTIALS_PATH,
        database_url: str = config.FIREBASE_DATABASE_URL,
        device_path: str = config.FIREBASE_DEVICE_PATH,
        diagnostics=None,
    ):
        self.credentials_path = credentials_path
        self.database_url = database_url
        self.device_path = device_path
        self.diagnostics = diagnostics
        self.connected = False
        self._ref = None

    def connect(self) -> bool:
        """Initialize Firebase if credentials are available"""
        if not os.path.exists(self.credentials_path):
            logger.info(f"ℹ️  Firebase credentials not found at {self.credentials_path}. RTDB mirror disabled")
            return False
        if not self.database_url:
            logger.info("ℹ️  FIREBASE_DATABASE_URL not set. RTDB mirror disabled")
            return False

        try:
            if not firebase_admin._apps:
                cred = credentials.Certificate(self.credentials_path)
                firebase_admin.initialize_app(cred, {'databaseURL': self.database_url})
            self._ref = db.reference(self.device_path)
            self.connected = True
            logger.info(f"✅ RTDB mirror connected: {self.database_url}/{self.device_path}")
        except Exception as e:
            logger.warning(f"⚠️  Could not initialize RTDB mirror: {e}")
            self.connected = False

        if self.diagnostics:
            self.diagnostics.set_firebase_status(self.connected)
        return self.connected

    def disconnect(self):
        if self.connected:
            self.connected = False
            self._ref = None
            if self.diagnostics:
                self.diagnostics.set_firebase_status(False)
            logger.info("Disconnected from Firebase")

    @staticmethod
    def build_payload(reading: SensorReading, state: Optional[IrrigationState]) -> dict:
        return {
            'temperature': reading.temperature,
            'humidity': reading.humidity,
            'status': reading.status.value,
            'timestamp': reading.timestamp.isoformat(),
            'irrigation': {
                'in_progress': bool(state and state.in_progress),
                'progress': round(state.progress, 1) if state else 0,
            },
        }

    def publish(self, reading: SensorReading, state: Optional[IrrigationState] = None) -> bool:
        """Overwrite the device node with the latest reading"""
        if not self.connected or self._ref is None:
            return False
        try:
            self._ref.set(self.build_payload(reading, state))
            return True
        except Exception as e:
            logger.error(f"RTDB set error: {e}")
            if self.diagnostics:
                self.diagnostics.record_error('firebase')
            return False
