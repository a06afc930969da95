"""Check-in QR token encoding and decoding.

A token is a URI the scanner can recognise before decoding anything:

    gymflex://checkin?payload=<base64 of canonical JSON>

The owner scanning path also accepts the same fields as a raw JSON blob, in
either the long key set or the compact one (see CompactTokenBody).

The checksum is SHA-256 over the canonical JSON body, truncated to 16 hex
characters. It catches corrupted, truncated or mistyped tokens. It is not a
signature: anyone who knows the format can mint a token with a matching
checksum. Authenticated tokens would need a keyed MAC instead.
"""
import base64
import hashlib
import hmac
import re
import secrets
import string
from datetime import datetime, timedelta
from decimal import ROUND_DOWN, Decimal
from urllib.parse import unquote, urlsplit

import structlog
from pydantic_core import from_json

from gymflex.config.settings import settings
from gymflex.core.clock import Clock, utc_now
from gymflex.domains.checkin.models import Booking
from gymflex.domains.checkin.schemas import CheckInPayload, CompactTokenBody, TokenBody

logger = structlog.get_logger(__name__)

CHECKSUM_LENGTH = 16
UNKNOWN_CHECKIN_CODE = "CHK-UNKNOWN"
CHECKIN_CODE_ALPHABET = string.ascii_uppercase + string.digits
CHECKIN_CODE_PATTERN = re.compile(r"CHK-[A-Z0-9]{6}", re.IGNORECASE)


# Check-in codes

def make_checkin_code() -> str:
    """Generate a manual-entry code such as CHK-7Q2XKD."""
    suffix = "".join(secrets.choice(CHECKIN_CODE_ALPHABET) for _ in range(6))
    return f"CHK-{suffix}"


def is_valid_checkin_code(code: str) -> bool:
    """Check the CHK-XXXXXX format (case-insensitive)."""
    return CHECKIN_CODE_PATTERN.fullmatch(code) is not None


# Checksum

def compute_checksum(payload: CheckInPayload) -> str:
    """Checksum over every payload field except the stored checksum."""
    body = TokenBody.from_payload(payload).canonical_bytes(include_checksum=False)
    return hashlib.sha256(body).hexdigest()[:CHECKSUM_LENGTH]


def verify_checksum(payload: CheckInPayload) -> bool:
    expected = compute_checksum(payload)
    return hmac.compare_digest(expected.encode("utf-8"), payload.checksum.encode("utf-8"))


def is_supported_version(payload: CheckInPayload) -> bool:
    return payload.version == settings.CHECKIN_PAYLOAD_VERSION


# Encoding

def build_payload(booking: Booking, *, now: datetime) -> CheckInPayload:
    """Create the check-in payload for a booking, issued at `now`."""
    amount_cents = int(
        (Decimal(booking.total_price) * 100).to_integral_value(rounding=ROUND_DOWN)
    )

    draft = CheckInPayload(
        version=settings.CHECKIN_PAYLOAD_VERSION,
        booking_id=booking.id,
        gym_id=booking.gym_id,
        user_id=booking.user_id,
        reference_code=booking.checkin_code or UNKNOWN_CHECKIN_CODE,
        session_start=booking.start_time,
        session_end=booking.start_time + timedelta(minutes=booking.duration),
        amount_cents=amount_cents,
        currency=booking.currency,
        issued_at=now,
        checksum="",
    )
    return draft.model_copy(update={"checksum": compute_checksum(draft)})


def encode_payload(payload: CheckInPayload) -> str:
    """Serialize a payload into the gymflex://checkin URI."""
    body = TokenBody.from_payload(payload).canonical_bytes()
    encoded = base64.b64encode(body).decode("ascii")
    return f"{settings.CHECKIN_URL_SCHEME}://{settings.CHECKIN_URL_HOST}?payload={encoded}"


def encode_compact(payload: CheckInPayload) -> str:
    """Serialize a payload as compact-key JSON."""
    return CompactTokenBody.from_payload(payload).canonical_bytes().decode("ascii")


def encode(booking: Booking, *, clock: Clock = utc_now) -> tuple[CheckInPayload, str]:
    """Build a booking's payload and its QR token string.

    Args:
        booking: The booking to encode
        clock: Supplies the issue time

    Returns:
        Tuple of (payload, token)
    """
    payload = build_payload(booking, now=clock())
    token = encode_payload(payload)
    logger.debug("qr_payload_encoded", booking_id=booking.id, gym_id=booking.gym_id, length=len(token))
    return payload, token


# Decoding

def _query_param(query: str, name: str) -> str | None:
    # parse_qs would turn "+" from the base64 alphabet into spaces
    for pair in query.split("&"):
        key, _, value = pair.partition("=")
        if unquote(key) == name:
            return unquote(value)
    return None


def _decode_envelope(token: str) -> CheckInPayload | None:
    parts = urlsplit(token)
    if (
        parts.scheme != settings.CHECKIN_URL_SCHEME
        or parts.netloc != settings.CHECKIN_URL_HOST
        or parts.path not in ("", "/")
    ):
        logger.debug("qr_decode_rejected", reason="not a check-in URI")
        return None

    encoded = _query_param(parts.query, "payload")
    if not encoded:
        logger.debug("qr_decode_rejected", reason="missing payload parameter")
        return None

    raw = base64.b64decode(encoded, validate=True)
    if base64.b64encode(raw).decode("ascii") != encoded:
        logger.debug("qr_decode_rejected", reason="non-canonical base64")
        return None

    body = TokenBody.model_validate_json(raw)
    if body.canonical_bytes() != raw:
        logger.debug("qr_decode_rejected", reason="non-canonical body")
        return None

    return body.to_payload()


def _decode_json_blob(token: str) -> CheckInPayload | None:
    # pydantic-core caps nesting depth and raises ValueError past it
    data = from_json(token)
    if not isinstance(data, dict):
        logger.debug("qr_decode_rejected", reason="JSON is not an object")
        return None

    model = CompactTokenBody if "cs" in data else TokenBody
    return model.model_validate(data).to_payload()


def decode(token: str) -> CheckInPayload | None:
    """Parse a scanned string into a payload.

    The checksum is not verified here; see verify_checksum.

    Returns:
        The payload, or None when the input is not a well-formed check-in token
    """
    if not isinstance(token, str):
        return None

    token = token.strip()
    try:
        if token.startswith("{"):
            payload = _decode_json_blob(token)
        else:
            payload = _decode_envelope(token)
    except (ValueError, TypeError, OverflowError) as e:
        # binascii.Error, pydantic-core JSON errors and ValidationError are ValueErrors
        logger.debug("qr_decode_rejected", reason=type(e).__name__)
        return None

    if payload is not None and not is_supported_version(payload):
        logger.debug("qr_decode_rejected", reason="unsupported version", version=payload.version)
        return None

    return payload
