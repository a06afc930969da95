"""
Observability module for the GymFlex check-in core.

Provides error tracking using GlitchTip (open-source, Sentry-compatible).
Scanner devices report suspicious tokens here so they can be reviewed later.
"""

import sentry_sdk
import structlog

from gymflex.config.settings import settings

logger = structlog.get_logger(__name__)


def init_observability() -> bool:
    """Initialize GlitchTip/Sentry observability.

    Returns:
        True if error tracking was enabled, False when no DSN is configured
    """
    if not settings.GLITCHTIP_DSN:
        logger.info("observability_disabled", reason="no DSN configured")
        return False

    traces_sample_rate = settings.GLITCHTIP_TRACES_SAMPLE_RATE
    if settings.is_development:
        traces_sample_rate = 1.0

    sentry_sdk.init(
        dsn=settings.GLITCHTIP_DSN,
        environment=settings.APP_ENV,
        release=f"gymflex-checkin@{settings.APP_VERSION}",
        traces_sample_rate=traces_sample_rate,
        send_default_pii=False,
        before_send=_before_send,
    )

    logger.info("observability_initialized", environment=settings.APP_ENV)
    return True


def _before_send(event: dict, hint: dict) -> dict | None:
    """Filter events before sending to GlitchTip."""
    # Booking service outages are transient and reported by the service itself
    if "exc_info" in hint:
        exc_type, exc_value, _ = hint["exc_info"]
        exc_message = str(exc_value).lower()

        if any(
            msg in exc_message
            for msg in ["connection refused", "connection reset", "timed out"]
        ):
            return None

    return event


def capture_exception(
    exception: Exception,
    extra: dict | None = None,
    tags: dict[str, str] | None = None,
) -> str | None:
    """Capture an exception with optional context."""
    with sentry_sdk.new_scope() as scope:
        if extra:
            for key, value in extra.items():
                scope.set_extra(key, value)
        if tags:
            for key, value in tags.items():
                scope.set_tag(key, value)

        return sentry_sdk.capture_exception(exception)


def capture_message(
    message: str,
    level: str = "info",
    extra: dict | None = None,
    tags: dict[str, str] | None = None,
) -> str | None:
    """Capture a message event."""
    with sentry_sdk.new_scope() as scope:
        if extra:
            for key, value in extra.items():
                scope.set_extra(key, value)
        if tags:
            for key, value in tags.items():
                scope.set_tag(key, value)

        return sentry_sdk.capture_message(message, level=level)
