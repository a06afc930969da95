"""Check-in token payloads, wire bodies and scan results."""
import json
from datetime import datetime, timedelta, timezone, tzinfo

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gymflex.core.clock import ensure_utc, truncate_to_millis
from gymflex.domains.checkin.models import ValidationStatus

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ISO_MILLIS_PATTERN = r"^[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2}\.[0-9]{3}Z$"
ISO_MILLIS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_iso_millis(dt: datetime) -> str:
    """Format an instant as ISO-8601 UTC with milliseconds, e.g. 2025-01-01T09:00:00.000Z."""
    return ensure_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso_millis(value: str) -> datetime:
    return datetime.strptime(value, ISO_MILLIS_FORMAT).replace(tzinfo=timezone.utc)


def to_epoch_seconds(dt: datetime) -> int | float:
    millis = (ensure_utc(dt) - EPOCH) // timedelta(milliseconds=1)
    if millis % 1000 == 0:
        return millis // 1000
    return millis / 1000


def from_epoch_seconds(value: int | float) -> datetime:
    return EPOCH + timedelta(milliseconds=round(value * 1000))


def canonical_json(data: dict) -> bytes:
    """Serialize with sorted keys and no whitespace so equal data gives equal bytes."""
    return json.dumps(data, sort_keys=True, separators=(",", ":")).encode("ascii")


# Decoded payload

class CheckInPayload(BaseModel):
    """Structured contents of a check-in QR token."""

    version: str
    booking_id: str
    gym_id: str
    user_id: str
    reference_code: str
    session_start: datetime
    session_end: datetime
    amount_cents: int | None = None
    currency: str
    issued_at: datetime
    checksum: str

    model_config = ConfigDict(frozen=True)

    @field_validator("session_start", "session_end", "issued_at")
    @classmethod
    def normalize_instant(cls, v: datetime) -> datetime:
        """Tokens carry UTC instants with millisecond precision."""
        return truncate_to_millis(ensure_utc(v))

    @model_validator(mode="after")
    def check_session_window(self) -> "CheckInPayload":
        window = self.session_end - self.session_start
        if window < timedelta(0):
            raise ValueError("session_end must not be before session_start")
        if window % timedelta(minutes=1):
            raise ValueError("session window must be a whole number of minutes")
        return self

    @property
    def duration_minutes(self) -> int:
        return (self.session_end - self.session_start) // timedelta(minutes=1)

    def is_expired(self, now: datetime) -> bool:
        return now > self.session_end

    def is_not_started(self, now: datetime) -> bool:
        return now < self.session_start

    def remaining_minutes(self, now: datetime) -> int:
        """Whole minutes left in the session, 0 once it has ended."""
        if self.is_expired(now):
            return 0
        return max(0, (self.session_end - now) // timedelta(minutes=1))


# Wire bodies

class TokenBody(BaseModel):
    """JSON body embedded (base64) in the gymflex://checkin URI."""

    v: str
    booking_id: str
    gym_id: str
    user_id: str
    checkin_code: str
    start_at: str = Field(pattern=ISO_MILLIS_PATTERN)
    duration_min: int = Field(ge=0)
    amount_cents: int | None = None
    currency: str
    issued_at: str = Field(pattern=ISO_MILLIS_PATTERN)
    checksum: str

    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)

    @classmethod
    def from_payload(cls, payload: CheckInPayload) -> "TokenBody":
        return cls(
            v=payload.version,
            booking_id=payload.booking_id,
            gym_id=payload.gym_id,
            user_id=payload.user_id,
            checkin_code=payload.reference_code,
            start_at=format_iso_millis(payload.session_start),
            duration_min=payload.duration_minutes,
            amount_cents=payload.amount_cents,
            currency=payload.currency,
            issued_at=format_iso_millis(payload.issued_at),
            checksum=payload.checksum,
        )

    def to_payload(self) -> CheckInPayload:
        start = parse_iso_millis(self.start_at)
        return CheckInPayload(
            version=self.v,
            booking_id=self.booking_id,
            gym_id=self.gym_id,
            user_id=self.user_id,
            reference_code=self.checkin_code,
            session_start=start,
            session_end=start + timedelta(minutes=self.duration_min),
            amount_cents=self.amount_cents,
            currency=self.currency,
            issued_at=parse_iso_millis(self.issued_at),
            checksum=self.checksum,
        )

    def canonical_bytes(self, include_checksum: bool = True) -> bytes:
        exclude = None if include_checksum else {"checksum"}
        return canonical_json(self.model_dump(exclude=exclude))


class CompactTokenBody(BaseModel):
    """Shorter JSON encoding used on the owner scanning path.

    Timestamps are epoch seconds; fractional values carry milliseconds.
    """

    v: str
    bid: str
    gid: str
    uid: str
    ref: str
    start: int | float
    dur: int = Field(ge=0)
    amt: int | None = None
    cur: str
    iat: int | float
    cs: str

    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)

    @classmethod
    def from_payload(cls, payload: CheckInPayload) -> "CompactTokenBody":
        return cls(
            v=payload.version,
            bid=payload.booking_id,
            gid=payload.gym_id,
            uid=payload.user_id,
            ref=payload.reference_code,
            start=to_epoch_seconds(payload.session_start),
            dur=payload.duration_minutes,
            amt=payload.amount_cents,
            cur=payload.currency,
            iat=to_epoch_seconds(payload.issued_at),
            cs=payload.checksum,
        )

    def to_payload(self) -> CheckInPayload:
        start = from_epoch_seconds(self.start)
        return CheckInPayload(
            version=self.v,
            booking_id=self.bid,
            gym_id=self.gid,
            user_id=self.uid,
            reference_code=self.ref,
            session_start=start,
            session_end=start + timedelta(minutes=self.dur),
            amount_cents=self.amt,
            currency=self.cur,
            issued_at=from_epoch_seconds(self.iat),
            checksum=self.cs,
        )

    def canonical_bytes(self) -> bytes:
        return canonical_json(self.model_dump())


# Scan result

STATUS_COLORS = {
    ValidationStatus.VALID: "green",
    ValidationStatus.ALREADY_CHECKED_IN: "blue",
    ValidationStatus.EXPIRED: "orange",
    ValidationStatus.NOT_STARTED: "orange",
    ValidationStatus.INVALID: "red",
    ValidationStatus.WRONG_GYM: "red",
    ValidationStatus.CANCELLED: "red",
}


def _echo(payload: CheckInPayload) -> dict:
    """Booking details shown to the owner for every trusted payload."""
    return {
        "booking_id": payload.booking_id,
        "gym_id": payload.gym_id,
        "user_id": payload.user_id,
        "reference_code": payload.reference_code,
        "session_start": payload.session_start,
        "session_end": payload.session_end,
    }


class ValidationResult(BaseModel):
    """Decision returned to the owner's scanner.

    Build instances through the class-method factories: each one fills
    exactly the fields its status is allowed to carry.
    """

    status: ValidationStatus
    booking_id: str | None = None
    gym_id: str | None = None
    user_id: str | None = None
    reference_code: str | None = None
    remaining_minutes: int | None = None
    message: str
    session_start: datetime | None = None
    session_end: datetime | None = None
    expected_gym_id: str | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_allowed(self) -> bool:
        """Whether the user may enter."""
        return self.status in (ValidationStatus.VALID, ValidationStatus.ALREADY_CHECKED_IN)

    @property
    def status_color(self) -> str:
        return STATUS_COLORS[self.status]

    @classmethod
    def valid(cls, payload: CheckInPayload, remaining_minutes: int) -> "ValidationResult":
        return cls(
            status=ValidationStatus.VALID,
            remaining_minutes=remaining_minutes,
            message=f"✅ Valid check-in. {remaining_minutes} minutes remaining.",
            **_echo(payload),
        )

    @classmethod
    def expired(cls, payload: CheckInPayload) -> "ValidationResult":
        return cls(
            status=ValidationStatus.EXPIRED,
            remaining_minutes=0,
            message="⏰ Session has expired.",
            **_echo(payload),
        )

    @classmethod
    def not_started(
        cls, payload: CheckInPayload, display_tz: tzinfo = timezone.utc
    ) -> "ValidationResult":
        starts_at = payload.session_start.astimezone(display_tz).strftime("%H:%M")
        return cls(
            status=ValidationStatus.NOT_STARTED,
            message=f"⏳ Session starts at {starts_at}.",
            **_echo(payload),
        )

    @classmethod
    def wrong_gym(cls, payload: CheckInPayload, expected_gym_id: str) -> "ValidationResult":
        return cls(
            status=ValidationStatus.WRONG_GYM,
            expected_gym_id=expected_gym_id,
            message="🏢 This booking is for a different gym.",
            **_echo(payload),
        )

    @classmethod
    def invalid(cls, reason: str) -> "ValidationResult":
        return cls(
            status=ValidationStatus.INVALID,
            message=f"❌ Invalid QR code: {reason}",
        )

    @classmethod
    def already_checked_in(
        cls, payload: CheckInPayload, remaining_minutes: int
    ) -> "ValidationResult":
        return cls(
            status=ValidationStatus.ALREADY_CHECKED_IN,
            remaining_minutes=remaining_minutes,
            message="ℹ️ User is already checked in.",
            **_echo(payload),
        )

    @classmethod
    def cancelled(cls, payload: CheckInPayload) -> "ValidationResult":
        return cls(
            status=ValidationStatus.CANCELLED,
            message="🚫 This booking was cancelled.",
            **_echo(payload),
        )
