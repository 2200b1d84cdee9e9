import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_PATH = os.getenv("DATABASE_PATH", "medtrack.db")

DATABASE_URL = os.getenv("DATABASE_URL", "")
DATABASE_MAX_CONNECTIONS = int(os.getenv("DATABASE_MAX_CONNECTIONS", "5"))
SEED_DEMO_DATA = os.getenv("SEED_DEMO_DATA", "true").lower() in ("1", "true", "yes", "on")

# Analytics windows
CORRELATION_WINDOW_HOURS = int(os.getenv("CORRELATION_WINDOW_HOURS", "24"))
RECENT_EVENT_DAYS = int(os.getenv("RECENT_EVENT_DAYS", "7"))
WEEKLY_SUMMARY_WEEKS = int(os.getenv("WEEKLY_SUMMARY_WEEKS", "8"))
IMPACT_TREND_MAX_WEEKS = int(os.getenv("IMPACT_TREND_MAX_WEEKS", "12"))
