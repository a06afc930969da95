"""Tests for QR code rendering."""
import base64

from gymflex.core.qrcode import (
    generate_checkin_qr_code,
    generate_qr_code_base64,
    generate_qr_code_png,
)
from gymflex.domains.checkin.codec import encode

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def _width(png: bytes) -> int:
    return int.from_bytes(png[16:20], "big")


class TestGenerateQrCodePng:
    """Tests for generate_qr_code_png."""

    def test_returns_png_bytes(self):
        """Should render a PNG image."""
        png = generate_qr_code_png("gymflex://checkin?payload=e30=")

        assert png.startswith(PNG_MAGIC)

    def test_box_size_changes_image(self):
        """Image width scales with the box size."""
        small = generate_qr_code_png("CHK-7Q2XKD", box_size=2)
        large = generate_qr_code_png("CHK-7Q2XKD", box_size=20)

        # IHDR width follows the 8-byte signature and chunk header
        assert _width(large) == 10 * _width(small)


class TestGenerateQrCodeBase64:
    """Tests for generate_qr_code_base64."""

    def test_returns_data_url(self):
        """Should wrap the PNG in a data URL."""
        url = generate_qr_code_base64("CHK-7Q2XKD")

        assert url.startswith("data:image/png;base64,")
        assert base64.b64decode(url.split(",", 1)[1]).startswith(PNG_MAGIC)

    def test_oversized_data_returns_none(self):
        """Data beyond QR capacity should fail softly."""
        assert generate_qr_code_base64("x" * 5000) is None

    def test_invalid_color_returns_none(self):
        assert generate_qr_code_base64("CHK-7Q2XKD", fill_color="not-a-color") is None


class TestGenerateCheckinQrCode:
    """Tests for the booking detail QR code."""

    def test_checkin_token_fits(self, booking, clock):
        """A full check-in token should render at high error correction."""
        _, token = encode(booking, clock=clock)

        url = generate_checkin_qr_code(token)

        assert url is not None
        assert url.startswith("data:image/png;base64,")
