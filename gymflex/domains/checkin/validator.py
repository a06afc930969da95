"""QR check-in validation for the gym owner's scanner.

Checks run in a fixed order and the first failing one decides the result:

1. the token decodes into a payload
2. the payload checksum matches
3. the payload belongs to the scanning gym
4. the booking is not cancelled or already checked in
5. the session has started
6. the session has not ended

Boundaries are strict: a scan exactly at session start or session end is
valid. Validation never mutates booking state; the caller records the
check-in when the result is allowed.
"""
import asyncio
from datetime import tzinfo

import structlog

from gymflex.config.settings import settings
from gymflex.core.clock import Clock, ensure_utc, get_timezone, utc_now
from gymflex.core.observability import capture_message
from gymflex.domains.checkin.booking_source import BookingSource
from gymflex.domains.checkin.codec import decode, is_supported_version, verify_checksum
from gymflex.domains.checkin.models import BookingStatus
from gymflex.domains.checkin.schemas import CheckInPayload, ValidationResult

logger = structlog.get_logger(__name__)

DECODE_FAILED_REASON = "Could not decode QR code"
CHECKSUM_FAILED_REASON = "Checksum verification failed"


class CheckInValidator:
    """Decides whether a scanned QR code admits its holder."""

    def __init__(
        self,
        booking_source: BookingSource | None = None,
        clock: Clock = utc_now,
        display_tz: tzinfo | None = None,
    ):
        # Without a booking source the scanner works fully offline
        self.booking_source = booking_source
        self.clock = clock
        self.display_tz = display_tz or get_timezone(settings.CHECKIN_DISPLAY_TIMEZONE)

    async def validate(
        self,
        token: str | CheckInPayload,
        validator_gym_id: str,
    ) -> ValidationResult:
        """Validate a scanned token (or an already decoded payload).

        Args:
            token: Scanned QR content or a decoded payload
            validator_gym_id: The gym operating the scanner

        Returns:
            The validation result

        Raises:
            BookingLookupError: If the booking source cannot be reached
        """
        if isinstance(token, CheckInPayload):
            # Same version gate decode() applies to scanned strings
            payload = token if is_supported_version(token) else None
        else:
            payload = decode(token)

        if payload is None:
            logger.info("qr_decode_failed", validator_gym_id=validator_gym_id)
            return ValidationResult.invalid(DECODE_FAILED_REASON)

        if not verify_checksum(payload):
            self._report_checksum_mismatch(payload, validator_gym_id)
            return ValidationResult.invalid(CHECKSUM_FAILED_REASON)

        if payload.gym_id != validator_gym_id:
            result = ValidationResult.wrong_gym(payload, expected_gym_id=validator_gym_id)
            return self._log_result(result)

        booking_status = await self._lookup_status(payload.booking_id)
        now = ensure_utc(self.clock())

        if booking_status == BookingStatus.CANCELLED:
            return self._log_result(ValidationResult.cancelled(payload))

        if booking_status == BookingStatus.CHECKED_IN:
            result = ValidationResult.already_checked_in(
                payload, remaining_minutes=payload.remaining_minutes(now)
            )
            return self._log_result(result)

        if payload.is_not_started(now):
            return self._log_result(ValidationResult.not_started(payload, self.display_tz))

        if payload.is_expired(now):
            return self._log_result(ValidationResult.expired(payload))

        result = ValidationResult.valid(payload, remaining_minutes=payload.remaining_minutes(now))
        return self._log_result(result)

    def validate_sync(self, token: str | CheckInPayload, validator_gym_id: str) -> ValidationResult:
        """Run validate() for callers without an event loop."""
        return asyncio.run(self.validate(token, validator_gym_id))

    async def _lookup_status(self, booking_id: str) -> BookingStatus | None:
        if self.booking_source is None:
            return None
        return await self.booking_source.get_status(booking_id)

    def _report_checksum_mismatch(self, payload: CheckInPayload, validator_gym_id: str) -> None:
        # Unlike decode failures (usually a foreign QR code), a bad checksum on a
        # well-formed payload points at an edited or corrupted token
        logger.warning(
            "qr_checksum_mismatch",
            booking_id=payload.booking_id,
            gym_id=payload.gym_id,
            validator_gym_id=validator_gym_id,
        )
        capture_message(
            "QR checksum mismatch - possible tampering",
            level="warning",
            extra={"booking_id": payload.booking_id, "gym_id": payload.gym_id},
            tags={"validator_gym_id": validator_gym_id},
        )

    def _log_result(self, result: ValidationResult) -> ValidationResult:
        logger.info(
            "qr_validated",
            status=result.status.value,
            booking_id=result.booking_id,
            gym_id=result.gym_id,
            allowed=result.is_allowed,
        )
        return result


async def validate_check_in(
    token: str | CheckInPayload,
    validator_gym_id: str,
    booking_source: BookingSource | None = None,
    *,
    clock: Clock = utc_now,
) -> ValidationResult:
    """Validate a scan with a one-off validator."""
    validator = CheckInValidator(booking_source, clock=clock)
    return await validator.validate(token, validator_gym_id)
