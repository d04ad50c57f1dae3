import os
from dotenv import load_dotenv

# Load .env file
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # --- MongoDB Settings ---
    MONGO_URI = os.getenv("MONGO_URI")
    DB_NAME = os.getenv("DB_NAME", "capstone_hub") # Defaults to capstone_hub, can be overridden in .env

    # --- Environment ---
    ENV = os.getenv("ENV", "development") # "development", "production" or "testing"
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # --- Security Settings ---
    # In production, ALWAYS set this in .env. Never use the fallback.
    SECRET_KEY = os.getenv("SECRET_KEY")
    if ENV == "production" and not SECRET_KEY:
        raise ValueError("SECRET_KEY environment variable is mandatory in production!")
    elif not SECRET_KEY:
        SECRET_KEY = "dev_secret_key_change_in_prod"
    ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7 # 7 Days

    # --- Deadline Notifications ---
    DEADLINE_WINDOW_DAYS = int(os.getenv("DEADLINE_WINDOW_DAYS", "7"))
    NOTIFICATION_SUPPRESSION_HOURS = int(os.getenv("NOTIFICATION_SUPPRESSION_HOURS", "24"))

    # In-process scheduler (server local time)
    DEADLINE_SCHEDULER_ENABLED = _env_bool("DEADLINE_SCHEDULER_ENABLED", ENV != "testing")
    DEADLINE_CHECK_HOUR = int(os.getenv("DEADLINE_CHECK_HOUR", "8"))
    PASSED_CHECK_HOUR = int(os.getenv("PASSED_CHECK_HOUR", "9"))
    HOURLY_PASSED_CHECK = _env_bool("HOURLY_PASSED_CHECK", True)

    # --- Realtime ---
    REALTIME_ROOM_PREFIX = os.getenv("REALTIME_ROOM_PREFIX", "user-")

config = Config()
