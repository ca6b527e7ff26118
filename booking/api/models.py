"""Pydantic models for API request validation."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from booking.models import TIME_PATTERN, CalendarDay


class ClientPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3)
    phone: Optional[str] = None


class BookAppointmentRequest(BaseModel):
    """Body of POST /appointments."""
    service_id: str = Field(..., min_length=1)
    date: CalendarDay
    start_time: str = Field(..., pattern=TIME_PATTERN, description="24h HH:MM")
    client: ClientPayload
    notes: Optional[str] = Field(None, max_length=1000)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "service_id": "service-1",
                "date": "2025-01-15",
                "start_time": "10:00",
                "client": {
                    "name": "John Doe",
                    "email": "john@example.com",
                    "phone": "555-1234567"
                }
            }
        }
    )

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, datetime.strptime(self.start_time, "%H:%M").time())


class RescheduleRequest(BaseModel):
    """Body of PUT /appointments/<id>/reschedule."""
    date: CalendarDay
    start_time: str = Field(..., pattern=TIME_PATTERN)

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, datetime.strptime(self.start_time, "%H:%M").time())
