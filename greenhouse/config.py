"""Configuration for the greenhouse monitor"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
_repo_root = Path(__file__).parent.parent.resolve()
_env_file = _repo_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

# Base directory
BASE_DIR = Path(__file__).parent.resolve()

GREENHOUSE_ID = int(os.getenv("GREENHOUSE_ID", "1"))

# Comfort ranges (orchid greenhouse defaults)
TEMP_MIN = float(os.getenv("TEMP_MIN", "18"))
TEMP_MAX = float(os.getenv("TEMP_MAX", "24"))
TEMP_OPTIMUM = float(os.getenv("TEMP_OPTIMUM", "21"))
TEMP_VARIATION = float(os.getenv("TEMP_VARIATION", "0.5"))

HUMIDITY_MIN = float(os.getenv("HUMIDITY_MIN", "75"))
HUMIDITY_MAX = float(os.getenv("HUMIDITY_MAX", "82"))
HUMIDITY_OPTIMUM = float(os.getenv("HUMIDITY_OPTIMUM", "80"))
HUMIDITY_VARIATION = float(os.getenv("HUMIDITY_VARIATION", "1.0"))

# Outer bands used by the environment classifier
TEMP_OUTER_MARGIN = 2.0
HUMIDITY_OUTER_MARGIN = 5.0

# Timers (seconds unless stated otherwise)
SENSOR_UPDATE_INTERVAL = float(os.getenv("SENSOR_UPDATE_INTERVAL", "5"))
PROGRESS_TICK_SECONDS = float(os.getenv("PROGRESS_TICK_SECONDS", "5"))
SCHEDULE_TOLERANCE_MINUTES = int(os.getenv("SCHEDULE_TOLERANCE_MINUTES", "5"))
RECONCILE_DELAY_SECONDS = 1.0

# Alert lifetimes
ALERT_RETENTION_HOURS = int(os.getenv("ALERT_RETENTION_HOURS", "24"))
COMPLETED_ALERT_SECONDS = 120
STOPPED_ALERT_SECONDS = 60
NORMALIZED_ALERT_SECONDS = 30

# Irrigation defaults
IRRIGATION_FREQUENCY_DAYS = int(os.getenv("IRRIGATION_FREQUENCY_DAYS", "7"))
IRRIGATION_DURATION_MINUTES = int(os.getenv("IRRIGATION_DURATION_MINUTES", "15"))
IRRIGATION_START_TIME = os.getenv("IRRIGATION_START_TIME", "08:00")
IRRIGATION_ENABLED = os.getenv("IRRIGATION_ENABLED", "true").lower() == "true"
IRRIGATION_MIN_DURATION = 1
IRRIGATION_MAX_DURATION = 120

# Historical records
AUTO_RECORD_ENABLED = os.getenv("AUTO_RECORD_ENABLED", "true").lower() == "true"
RECORD_INTERVAL_MINUTES = float(os.getenv("RECORD_INTERVAL_MINUTES", "60"))
RECORD_RETENTION_DAYS = int(os.getenv("RECORD_RETENTION_DAYS", "365"))
DATABASE_PATH = os.getenv("DATABASE_PATH", str(_repo_root / "data" / "greenhouse.db"))

# HTTP API
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "3000"))
API_REQUEST_TIMEOUT = float(os.getenv("API_REQUEST_TIMEOUT", "10"))

# Firebase Realtime Database mirror (optional)
_default_creds = str(_repo_root / "serviceAccountKey.json")
FIREBASE_CREDENTIALS_PATH = os.getenv("FIREBASE_CREDENTIALS_PATH", _default_creds)
FIREBASE_DATABASE_URL = os.getenv("FIREBASE_DATABASE_URL", "")
FIREBASE_DEVICE_PATH = os.getenv("FIREBASE_DEVICE_PATH", "device")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "logs/greenhouse.log")

# Debug Mode
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
