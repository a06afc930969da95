"""Test configuration and fixtures for the GymFlex check-in core."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any
from unittest.mock import patch

import pytest

from gymflex.domains.checkin.booking_source import LocalBookingStore
from gymflex.domains.checkin.models import Booking, BookingStatus

# Fixed scan instant used across tests
NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)

GYM_A = "gym_1"


class FrozenClock:
    """Injectable clock that returns a settable instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def make_booking() -> Callable[..., Booking]:
    """Factory for bookings, by default started 5 minutes ago for 60 minutes at gym A."""

    def _make(**overrides: Any) -> Booking:
        start = overrides.pop("start_time", NOW - timedelta(minutes=5))
        duration = overrides.pop("duration", 60)
        fields = {
            "id": "booking_GF-ABC123",
            "user_id": "user_demo_001",
            "gym_id": GYM_A,
            "gym_name": "FitRoma Center",
            "start_time": start,
            "end_time": start + timedelta(minutes=duration),
            "duration": duration,
            "price_per_hour": Decimal("12.50"),
            "total_price": Decimal("12.50"),
            "currency": "EUR",
            "status": BookingStatus.CONFIRMED,
            "checkin_code": "CHK-7Q2XKD",
        }
        fields.update(overrides)
        return Booking(**fields)

    return _make


@pytest.fixture
def booking(make_booking) -> Booking:
    return make_booking()


@pytest.fixture
def local_store(booking: Booking) -> LocalBookingStore:
    return LocalBookingStore([booking])


@pytest.fixture
def mock_capture_message():
    """Keep error tracking out of tests and let them assert on reports."""
    with patch("gymflex.domains.checkin.validator.capture_message") as mocked:
        yield mocked
