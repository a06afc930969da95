"""Tests for error tracking helpers."""
from unittest.mock import patch

from gymflex.config.settings import settings
from gymflex.core.observability import (
    _before_send,
    capture_exception,
    capture_message,
    init_observability,
)
from gymflex.domains.checkin.exceptions import BookingLookupError


class TestInitObservability:
    """Tests for init_observability."""

    def test_disabled_without_dsn(self, monkeypatch):
        """No DSN means no error tracking."""
        monkeypatch.setattr(settings, "GLITCHTIP_DSN", "")

        with patch("gymflex.core.observability.sentry_sdk.init") as mock_init:
            assert init_observability() is False

        mock_init.assert_not_called()

    def test_enabled_with_dsn(self, monkeypatch):
        """A DSN should initialize the SDK with the event filter."""
        monkeypatch.setattr(settings, "GLITCHTIP_DSN", "https://key@glitchtip.example.com/1")
        monkeypatch.setattr(settings, "APP_ENV", "production")

        with patch("gymflex.core.observability.sentry_sdk.init") as mock_init:
            assert init_observability() is True

        kwargs = mock_init.call_args.kwargs
        assert kwargs["environment"] == "production"
        assert kwargs["send_default_pii"] is False
        assert kwargs["before_send"] is _before_send


class TestBeforeSend:
    """Tests for the event filter."""

    def test_drops_transient_network_errors(self):
        error = ConnectionError("Connection refused")

        assert _before_send({}, {"exc_info": (type(error), error, None)}) is None

    def test_keeps_other_errors(self):
        error = ValueError("Checksum verification failed")
        event = {"level": "error"}

        assert _before_send(event, {"exc_info": (type(error), error, None)}) is event

    def test_keeps_messages(self):
        event = {"message": "QR checksum mismatch - possible tampering"}

        assert _before_send(event, {}) is event


class TestCaptureMessage:
    """Tests for capture_message."""

    def test_sets_context_on_scope(self):
        """Extras and tags should be attached to the event scope."""
        with patch("gymflex.core.observability.sentry_sdk") as mock_sdk:
            scope = mock_sdk.new_scope.return_value.__enter__.return_value

            capture_message(
                "QR checksum mismatch - possible tampering",
                level="warning",
                extra={"booking_id": "booking_1"},
                tags={"validator_gym_id": "gym_1"},
            )

        scope.set_extra.assert_called_once_with("booking_id", "booking_1")
        scope.set_tag.assert_called_once_with("validator_gym_id", "gym_1")
        mock_sdk.capture_message.assert_called_once_with(
            "QR checksum mismatch - possible tampering", level="warning"
        )


class TestCaptureException:
    """Tests for capture_exception."""

    def test_sets_context_on_scope(self):
        """The exception is sent with its extras and tags."""
        error = BookingLookupError("Booking service returned HTTP 503")

        with patch("gymflex.core.observability.sentry_sdk") as mock_sdk:
            scope = mock_sdk.new_scope.return_value.__enter__.return_value

            capture_exception(error, extra={"booking_id": "booking_1"}, tags={"booking_api": "https://api"})

        scope.set_extra.assert_called_once_with("booking_id", "booking_1")
        scope.set_tag.assert_called_once_with("booking_api", "https://api")
        mock_sdk.capture_exception.assert_called_once_with(error)
