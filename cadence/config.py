"""Runtime configuration for the recurring task service."""
from datetime import date, datetime
import os

import pytz
from dotenv import load_dotenv

# Load environment variables from a local .env when present
load_dotenv()

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")

# Use the DATABASE_URL from environment variable, with fallback to SQLite for local dev
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./cadence.db")

# Timezone used to decide what "today" is for materialization and cleanup
APP_TIMEZONE = os.environ.get("APP_TIMEZONE", "UTC")

# Rolling horizon for the periodic refresh and for interactive/initial creation
REFRESH_HORIZON_DAYS = int(os.environ.get("REFRESH_HORIZON_DAYS", "7"))
INITIAL_HORIZON_DAYS = int(os.environ.get("INITIAL_HORIZON_DAYS", "30"))

# Retention windows for the two independent cleanup jobs
INSTANCE_RETENTION_DAYS = int(os.environ.get("INSTANCE_RETENTION_DAYS", "90"))
HISTORY_RETENTION_DAYS = int(os.environ.get("HISTORY_RETENTION_DAYS", "90"))

# How often the worker loop wakes up
REFRESH_INTERVAL_SECONDS = int(os.environ.get("REFRESH_INTERVAL_SECONDS", "86400"))


def local_now() -> datetime:
    """Current time in the configured application timezone."""
    return datetime.now(pytz.timezone(APP_TIMEZONE))


def local_today() -> date:
    """Today's calendar date in the configured application timezone."""
    return local_now().date()
