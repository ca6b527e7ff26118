"""Configuration for the appointment booking system.

Business defaults are centralized here - modify as needed without touching code.
Runtime settings come from the environment (a local .env file is honoured).
"""
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


DEFAULT_SERVICES = [
    {
        "id": "service-1",
        "name": "Initial Consultation",
        "description": "A comprehensive assessment of your needs and goals",
        "duration_minutes": 30,
        "price": 100.0,
    },
    {
        "id": "service-2",
        "name": "Strategy Session",
        "description": "Develop a strategic plan for your business",
        "duration_minutes": 60,
        "price": 200.0,
    },
    {
        "id": "service-3",
        "name": "Implementation Support",
        "description": "Hands-on guidance for executing your plan",
        "duration_minutes": 90,
        "price": 300.0,
    },
]

# day_of_week: 0 = Sunday ... 6 = Saturday
DEFAULT_BUSINESS_HOURS = [
    {"day_of_week": 0, "is_open": False, "open_time": "09:00", "close_time": "17:00"},
    {"day_of_week": 1, "is_open": True, "open_time": "09:00", "close_time": "18:00",
     "lunch_start": "12:00", "lunch_end": "13:00"},
    {"day_of_week": 2, "is_open": True, "open_time": "09:00", "close_time": "18:00",
     "lunch_start": "12:00", "lunch_end": "13:00"},
    {"day_of_week": 3, "is_open": True, "open_time": "09:00", "close_time": "18:00",
     "lunch_start": "12:00", "lunch_end": "13:00"},
    {"day_of_week": 4, "is_open": True, "open_time": "09:00", "close_time": "18:00",
     "lunch_start": "12:00", "lunch_end": "13:00"},
    {"day_of_week": 5, "is_open": True, "open_time": "09:00", "close_time": "18:00",
     "lunch_start": "12:00", "lunch_end": "13:00"},
    {"day_of_week": 6, "is_open": True, "open_time": "09:00", "close_time": "13:00"},
]

# Used when a special date is open but carries no explicit hours
SPECIAL_DATE_DEFAULT_OPEN = "09:00"
SPECIAL_DATE_DEFAULT_CLOSE = "17:00"

SLOT_INTERVAL_MINUTES = 30
AVAILABILITY_HORIZON_DAYS = 14

DEFAULT_REMINDER_HOURS = 24

# Storage keys
APPOINTMENTS_KEY = "appointments"
SERVICES_KEY = "services"
BUSINESS_HOURS_KEY = "business_hours"
SPECIAL_DATES_KEY = "special_dates"
USERS_KEY = "app_users"
AUTH_USER_KEY = "auth_user"
NOTIFICATION_PREFS_KEY_PREFIX = "notification_prefs_"
WHATSAPP_CONFIG_KEY = "whatsapp_api_config"

# API Configuration
API_PORT = 5000


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Runtime settings resolved from the environment."""
    storage_backend: str = Field(default="memory", pattern="^(memory|json|sql)$")
    storage_path: str = Field(default="data/store", description="Directory for the json backend")
    database_url: Optional[str] = Field(default=None, description="SQLAlchemy URL for the sql backend")
    log_level: str = "INFO"
    special_date_lunch: bool = Field(
        default=True,
        description="Carry lunch breaks of special dates into their hours"
    )
    exclude_past_slots: bool = Field(
        default=False,
        description="Mark slots earlier than now as unavailable"
    )
    prevent_double_booking: bool = Field(
        default=True,
        description="Re-check overlaps inside the ledger before persisting"
    )
    notification_delay_seconds: float = Field(default=0.0, ge=0)
    admin_email: str = "admin@example.com"
    admin_password: str = "admin123"
    api_port: int = API_PORT


def load_settings() -> Settings:
    """Build settings from environment variables."""
    return Settings(
        storage_backend=os.getenv("BOOKING_STORAGE_BACKEND", "memory"),
        storage_path=os.getenv("BOOKING_STORAGE_PATH", "data/store"),
        database_url=os.getenv("DATABASE_URL"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        special_date_lunch=_env_flag("BOOKING_SPECIAL_DATE_LUNCH", True),
        exclude_past_slots=_env_flag("BOOKING_EXCLUDE_PAST_SLOTS", False),
        prevent_double_booking=_env_flag("BOOKING_PREVENT_DOUBLE_BOOKING", True),
        notification_delay_seconds=float(os.getenv("BOOKING_NOTIFICATION_DELAY_SECONDS", "0")),
        admin_email=os.getenv("BOOKING_ADMIN_EMAIL", "admin@example.com"),
        admin_password=os.getenv("BOOKING_ADMIN_PASSWORD", "admin123"),
        api_port=int(os.getenv("BOOKING_API_PORT", str(API_PORT))),
    )
