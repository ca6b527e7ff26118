"""Domain models for the booking system.

Pydantic models are used for entities (persisted wholesale as JSON),
pure value objects (slots, day hours) and explicit patch types for
partial updates.
"""
import uuid
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Annotated, List, Literal, Optional, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

from booking import config


def _drop_time_of_day(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return datetime.fromisoformat(value).date()
    return value


# Calendar day for fields that are themselves named "date"; any time of day is ignored
CalendarDay = Annotated[date, BeforeValidator(_drop_time_of_day)]

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

ModelT = TypeVar("ModelT", bound=BaseModel)


def generate_id(prefix: str) -> str:
    """Generate a short unique identifier, e.g. ``apt-1f3a9c0b``."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def apply_patch(model: ModelT, patch: BaseModel) -> ModelT:
    """Return a re-validated copy of ``model`` with the fields set on ``patch``."""
    changes = patch.model_dump(exclude_unset=True)
    data = model.model_dump()
    data.update(changes)
    return type(model).model_validate(data)


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class Service(BaseModel):
    """A bookable service. Appointments keep a snapshot of it."""
    id: str = Field(default_factory=lambda: generate_id("srv"))
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    duration_minutes: int = Field(..., gt=0, le=480, description="Duration in minutes (1-480)")
    price: float = Field(..., ge=0)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "service-1",
                "name": "Initial Consultation",
                "description": "A comprehensive assessment of your needs and goals",
                "duration_minutes": 30,
                "price": 100.0
            }
        }
    )


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    duration_minutes: int = Field(..., gt=0, le=480)
    price: float = Field(..., ge=0)


class ServicePatch(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    duration_minutes: Optional[int] = Field(None, gt=0, le=480)
    price: Optional[float] = Field(None, ge=0)


class Client(BaseModel):
    """Client details captured at booking time (no deduplication)."""
    id: str = Field(default_factory=lambda: generate_id("cli"))
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., pattern=r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
    phone: Optional[str] = None

    @field_validator("phone", mode="before")
    @classmethod
    def blank_phone_is_none(cls, v):
        return _blank_to_none(v)


class AppointmentStatus(str, Enum):
    """
    Appointment lifecycle.

    scheduled -> cancelled (cancel), scheduled -> completed (manual only).
    """
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Appointment(BaseModel):
    id: str = Field(default_factory=lambda: generate_id("apt"))
    service: Service
    client: Client
    starts_at: datetime = Field(..., description="Local wall-clock start")
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: Optional[str] = None

    @property
    def duration_minutes(self) -> int:
        return self.service.duration_minutes

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.service.duration_minutes)

    @property
    def occupies_slot(self) -> bool:
        """Cancelled appointments free their time."""
        return self.status != AppointmentStatus.CANCELLED


class AppointmentCreate(BaseModel):
    service: Service
    client: Client
    starts_at: datetime
    notes: Optional[str] = None


class AppointmentPatch(BaseModel):
    service: Optional[Service] = None
    client: Optional[Client] = None
    starts_at: Optional[datetime] = None
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = None


class BusinessHours(BaseModel):
    """Weekly template for one weekday (0 = Sunday ... 6 = Saturday)."""
    day_of_week: int = Field(..., ge=0, le=6)
    is_open: bool
    open_time: str = Field(default="09:00", pattern=TIME_PATTERN)
    close_time: str = Field(default="17:00", pattern=TIME_PATTERN)
    lunch_start: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    lunch_end: Optional[str] = Field(default=None, pattern=TIME_PATTERN)

    @field_validator("lunch_start", "lunch_end", mode="before")
    @classmethod
    def blank_lunch_is_none(cls, v):
        return _blank_to_none(v)

    @model_validator(mode="after")
    def check_windows(self):
        _check_windows(self.open_time, self.close_time, self.lunch_start, self.lunch_end)
        return self


class SpecialDate(BaseModel):
    """Override for one calendar day (holiday, custom hours)."""
    id: str = Field(default_factory=lambda: generate_id("sd"))
    date: CalendarDay
    is_open: bool
    open_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    close_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    lunch_start: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    lunch_end: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    description: str = ""

    @field_validator("open_time", "close_time", "lunch_start", "lunch_end", mode="before")
    @classmethod
    def blank_time_is_none(cls, v):
        return _blank_to_none(v)

    @model_validator(mode="after")
    def check_windows(self):
        _check_windows(self.open_time, self.close_time, self.lunch_start, self.lunch_end)
        return self


class SpecialDateCreate(BaseModel):
    date: CalendarDay
    is_open: bool
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    lunch_start: Optional[str] = None
    lunch_end: Optional[str] = None
    description: str = ""


class SpecialDatePatch(BaseModel):
    date: Optional[CalendarDay] = None
    is_open: Optional[bool] = None
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    lunch_start: Optional[str] = None
    lunch_end: Optional[str] = None
    description: Optional[str] = None


def _check_windows(open_time, close_time, lunch_start, lunch_end):
    # HH:MM strings are zero padded, so they compare chronologically
    if open_time and close_time and open_time >= close_time:
        raise ValueError("close_time must be after open_time")
    if (lunch_start is None) != (lunch_end is None):
        raise ValueError("lunch_start and lunch_end must be set together")
    if lunch_start and lunch_end and lunch_start >= lunch_end:
        raise ValueError("lunch_end must be after lunch_start")


class DayHours(BaseModel):
    """Resolved opening window for one calendar day."""
    open_time: str
    close_time: str
    lunch_start: Optional[str] = None
    lunch_end: Optional[str] = None


class TimeSlot(BaseModel):
    time: str
    available: bool


class DateWithSlots(BaseModel):
    date: CalendarDay
    slots: List[TimeSlot]


class User(BaseModel):
    id: str = Field(default_factory=lambda: f"user-{uuid.uuid4().hex[:12]}")
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password_hash: str
    role: Literal["admin", "client"] = "client"

    def public(self) -> "PublicUser":
        return PublicUser(id=self.id, name=self.name, email=self.email, role=self.role)


class PublicUser(BaseModel):
    """User without credentials, safe to persist as the session user."""
    id: str
    name: str
    email: str
    role: Literal["admin", "client"]


class UserPatch(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[Literal["admin", "client"]] = None


class NotificationPreferences(BaseModel):
    email: bool = True
    whatsapp: bool = False
    reminder_hours: int = Field(default=config.DEFAULT_REMINDER_HOURS, ge=1, le=24 * 14)


class WhatsAppConfig(BaseModel):
    api_key: str = Field(..., min_length=1)
    sender_id: str = Field(..., min_length=1)
    base_url: str = Field(..., min_length=1)
