import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Redis Configuration
# REDIS_URL wins when set (managed Redis); otherwise the individual settings are used
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_SSL = os.getenv("REDIS_SSL", "false").lower() == "true"

# Public base URL used to build share links
APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")

ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173"
).split(",")

SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"

# Meetings live for a fixed window from creation; mutations never extend it
MEETING_TTL_SECONDS = int(os.getenv("MEETING_TTL_SECONDS", str(7 * 24 * 60 * 60)))
DEFAULT_START_HOUR = int(os.getenv("DEFAULT_START_HOUR", "9"))
DEFAULT_END_HOUR = int(os.getenv("DEFAULT_END_HOUR", "22"))

# Guest requests: 3 per minute per origin by default
GUEST_RATE_LIMIT_WINDOW_MS = int(os.getenv("GUEST_RATE_LIMIT_WINDOW_MS", "60000"))
GUEST_RATE_LIMIT_MAX_REQUESTS = int(os.getenv("GUEST_RATE_LIMIT_MAX_REQUESTS", "3"))

# Real-time fan-out
UPDATES_CHANNEL = os.getenv("UPDATES_CHANNEL", "meeting_updates")
RELAY_HOST = os.getenv("RELAY_HOST", "0.0.0.0")  # noqa: S104 - relay listens on all interfaces
RELAY_PORT = int(os.getenv("RELAY_PORT", "3001"))
RELAY_RECONNECT_DELAY_SECONDS = float(os.getenv("RELAY_RECONNECT_DELAY_SECONDS", "2"))
# A viewer that cannot take a message within this time is dropped
RELAY_SEND_TIMEOUT_SECONDS = float(os.getenv("RELAY_SEND_TIMEOUT_SECONDS", "5"))
RELAY_CORS_ORIGINS = os.getenv("RELAY_CORS_ORIGINS", "*").split(",")
