"""Booking status sources consulted while validating a scan.

Two implementations share the BookingSource protocol:
- LocalBookingStore: in-memory bookings, optionally saved as a flat JSON list
  (offline scanners, demos and tests)
- HttpBookingSource: the live booking service
"""
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from gymflex.config.settings import settings
from gymflex.core.observability import capture_exception
from gymflex.domains.checkin.exceptions import BookingLookupError, BookingStoreError, CheckInError
from gymflex.domains.checkin.models import Booking, BookingStatus

logger = structlog.get_logger(__name__)

_bookings_adapter = TypeAdapter(list[Booking])


class BookingSource(Protocol):
    """Read-only lookup of a booking's current status."""

    async def get_status(self, booking_id: str) -> BookingStatus | None:
        """Return the booking's status, or None if the booking is unknown."""
        ...


class LocalBookingStore:
    """Booking store kept in memory, with optional JSON file persistence."""

    def __init__(self, bookings: Iterable[Booking] = (), path: str | Path | None = None):
        self.path = Path(path) if path else None
        self._bookings: dict[str, Booking] = {b.id: b for b in bookings}

    # Persistence

    @classmethod
    def load(cls, path: str | Path) -> "LocalBookingStore":
        """Load bookings from a JSON file. A missing file gives an empty store."""
        path = Path(path)
        if not path.exists():
            logger.info("booking_store_empty", path=str(path))
            return cls(path=path)

        try:
            bookings = _bookings_adapter.validate_json(path.read_bytes())
        except ValidationError as e:
            raise BookingStoreError(f"Corrupt booking file {path}: {e.error_count()} errors") from e

        logger.info("booking_store_loaded", path=str(path), count=len(bookings))
        return cls(bookings, path=path)

    def save(self) -> None:
        if self.path is None:
            raise BookingStoreError("Booking store has no file path")
        self.path.write_bytes(_bookings_adapter.dump_json(self.all_bookings(), indent=2))

    # Queries

    def get(self, booking_id: str) -> Booking | None:
        return self._bookings.get(booking_id)

    def all_bookings(self) -> list[Booking]:
        """All bookings, most recent first."""
        return sorted(self._bookings.values(), key=lambda b: b.start_time, reverse=True)

    def upcoming_bookings(self, now: datetime) -> list[Booking]:
        """Bookings that have not ended yet, including sessions in progress."""
        upcoming = [
            b for b in self._bookings.values()
            if b.status != BookingStatus.CANCELLED and b.end_time > now
        ]
        return sorted(upcoming, key=lambda b: b.start_time)

    def next_upcoming_booking(self, now: datetime) -> Booking | None:
        upcoming = self.upcoming_bookings(now)
        return upcoming[0] if upcoming else None

    async def get_status(self, booking_id: str) -> BookingStatus | None:
        booking = self._bookings.get(booking_id)
        return booking.status if booking else None

    # Mutations

    def upsert(self, booking: Booking) -> None:
        action = "updated" if booking.id in self._bookings else "inserted"
        self._bookings[booking.id] = booking
        logger.debug("booking_upserted", booking_id=booking.id, action=action, status=booking.status.value)

    def mark_checked_in(self, booking_id: str, checked_in_at: datetime) -> Booking | None:
        """Record an admission after a scan was allowed."""
        booking = self._bookings.get(booking_id)
        if booking is None:
            return None

        updated = booking.model_copy(
            update={"status": BookingStatus.CHECKED_IN, "checkin_time": checked_in_at}
        )
        self._bookings[booking_id] = updated
        logger.info("booking_checked_in", booking_id=booking_id)
        return updated

    def cancel(self, booking_id: str, cancelled_at: datetime) -> Booking | None:
        booking = self._bookings.get(booking_id)
        if booking is None:
            return None

        updated = booking.model_copy(
            update={"status": BookingStatus.CANCELLED, "cancelled_at": cancelled_at}
        )
        self._bookings[booking_id] = updated
        logger.info("booking_cancelled", booking_id=booking_id)
        return updated

    def __len__(self) -> int:
        return len(self._bookings)


class HttpBookingSource:
    """Booking status lookups against the live booking service.

    GET {base_url}/bookings/{booking_id} answers {"status": "..."}. A 404 means
    the booking is unknown; any other failure raises BookingLookupError so the
    caller can tell an outage apart from a scan outcome.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
    ):
        base_url = base_url or settings.BOOKING_API_URL
        if not base_url:
            raise CheckInError("Booking service URL is not configured")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.BOOKING_API_TIMEOUT_SECONDS
        self.headers = headers or {}
        self._client = client

    async def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, headers=self.headers, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(url, headers=self.headers)

    async def get_status(self, booking_id: str) -> BookingStatus | None:
        try:
            return await self._fetch_status(booking_id)
        except BookingLookupError as e:
            capture_exception(e, extra={"booking_id": booking_id}, tags={"booking_api": self.base_url})
            raise

    async def _fetch_status(self, booking_id: str) -> BookingStatus | None:
        url = f"{self.base_url}/bookings/{quote(booking_id, safe='')}"

        try:
            response = await self._get(url)
        except httpx.HTTPError as e:
            logger.error("booking_lookup_failed", booking_id=booking_id, error=str(e), type=type(e).__name__)
            raise BookingLookupError(f"Booking service unreachable: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.error("booking_lookup_failed", booking_id=booking_id, status_code=response.status_code)
            raise BookingLookupError(f"Booking service returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise BookingLookupError("Booking service returned invalid JSON") from e

        raw_status = data.get("status") if isinstance(data, dict) else None
        try:
            return BookingStatus(raw_status)
        except ValueError:
            # Unknown statuses fall through to the timing checks
            logger.warning("booking_status_unknown", booking_id=booking_id, status=raw_status)
            return None


def get_booking_source() -> BookingSource:
    """Live source when a booking service is configured, local file otherwise."""
    if settings.booking_api_enabled:
        return HttpBookingSource()
    return LocalBookingStore.load(settings.BOOKING_STORE_PATH)
