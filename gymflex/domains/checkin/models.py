"""Check-in domain entities."""
import enum
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from gymflex.core.clock import ensure_utc


class BookingStatus(str, enum.Enum):
    """Booking lifecycle status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    CHECKED_IN = "checked_in"
    COMPLETED = "completed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class ValidationStatus(str, enum.Enum):
    """Outcome of a QR scan on the gym owner's device."""

    VALID = "valid"
    EXPIRED = "expired"
    INVALID = "invalid"
    WRONG_GYM = "wrongGym"
    NOT_STARTED = "notStarted"
    ALREADY_CHECKED_IN = "alreadyCheckedIn"
    CANCELLED = "cancelled"


class Booking(BaseModel):
    """A gym session booking as kept by the booking store."""

    id: str
    user_id: str
    gym_id: str
    gym_name: str | None = None

    start_time: datetime
    end_time: datetime
    duration: int = Field(ge=0)  # minutes

    price_per_hour: Decimal = Decimal("0")
    total_price: Decimal = Decimal("0")
    currency: str = "EUR"

    status: BookingStatus = BookingStatus.CONFIRMED
    checkin_code: str | None = None
    checkin_time: datetime | None = None
    cancelled_at: datetime | None = None

    @field_validator("start_time", "end_time", "checkin_time", "cancelled_at")
    @classmethod
    def convert_to_utc(cls, v: datetime | None) -> datetime | None:
        """Store all instants in UTC, treating naive values as UTC."""
        if v is None:
            return None
        return ensure_utc(v)

    @property
    def formatted_duration(self) -> str:
        hours, minutes = divmod(self.duration, 60)
        if hours and minutes:
            return f"{hours}h {minutes}m"
        if hours:
            return f"{hours}h"
        return f"{minutes}m"
