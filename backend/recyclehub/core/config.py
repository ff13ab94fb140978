from datetime import timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
import os

load_dotenv()  # Loads variables from .env

DATABASE_URL = os.getenv("DATABASE_URL")
SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60))
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
ADMIN_NAME = os.getenv("ADMIN_NAME", "Administrator")
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173,http://localhost:8080,http://localhost:8081",
)
CORS_ORIGIN_REGEX = os.getenv("CORS_ORIGIN_REGEX", r"^exp://.*:8081$")
UPLOADS_DIR = os.getenv("UPLOADS_DIR")
PRICE_STALENESS_DAYS = int(os.getenv("PRICE_STALENESS_DAYS", 7))
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "Africa/Dar_es_Salaam")
ORDER_ID_PREFIX = os.getenv("ORDER_ID_PREFIX", "ORD")


def parse_cors_origins(value: str):
    if not value:
        return []
    if value.strip() == "*":
        return ["*"]
    return [origin.strip() for origin in value.split(",") if origin.strip()]


def resolve_timezone(name: str = APP_TIMEZONE):
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        # Windows may ship without the tz database.
        return timezone(timedelta(hours=3))


LOCAL_TZ = resolve_timezone()
