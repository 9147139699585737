import os

from dotenv import load_dotenv

# Load .env file with explicit UTF-8 encoding
load_dotenv(encoding="utf-8")


def _split_csv(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


DATABASE_URL = os.getenv("DATABASE_URL") or "sqlite:///./behavior_points.db"

CORS_ORIGINS = _split_csv(
    os.getenv("CORS_ORIGINS"),
    [
        "http://localhost:3000",
        "https://localhost:3000",
        "http://127.0.0.1:3000",
        "https://127.0.0.1:3000",
    ],
)

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").upper()

NOTIFICATION_DISPATCH_BATCH_SIZE = int(os.getenv("NOTIFICATION_DISPATCH_BATCH_SIZE") or 50)
NOTIFICATION_WORKER_ID = os.getenv("NOTIFICATION_WORKER_ID") or os.getenv("HOSTNAME") or "worker"
NOTIFICATION_IDLE_SLEEP_SECONDS = int(os.getenv("NOTIFICATION_IDLE_SLEEP_SECONDS") or 5)
