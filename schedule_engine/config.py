import os

# Environment (dev, staging, prod)
ENVIRONMENT = os.environ.get("ENVIRONMENT", "dev")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

PORT = int(os.environ.get("PORT", 8080))

# REST backend the client talks to
API_BASE_URL = os.environ.get("SCHEDULE_API_BASE_URL", "http://localhost:5000/api")

# Seconds; unset keeps the HTTP client's default timeout
_timeout = os.environ.get("SCHEDULE_API_TIMEOUT")
API_TIMEOUT = float(_timeout) if _timeout else None

# Window used by the "upcoming items" listing
UPCOMING_DAYS = int(os.environ.get("UPCOMING_DAYS", 30))
