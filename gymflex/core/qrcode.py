"""QR Code generation utilities."""
import base64
import io

import qrcode
import structlog
from qrcode.constants import ERROR_CORRECT_H
from qrcode.exceptions import DataOverflowError

from gymflex.config.settings import settings

logger = structlog.get_logger(__name__)


def generate_qr_code_png(
    data: str,
    box_size: int = 10,
    border: int = 2,
    fill_color: str = "#000000",
    back_color: str = "#FFFFFF",
) -> bytes:
    """Render data as a PNG QR code.

    High error correction is used so a partially scratched or glared
    phone screen still scans at the front desk.

    Args:
        data: The data to encode in the QR code
        box_size: Size of each box in the QR code
        border: Border size around the QR code
        fill_color: Color of the QR code pattern
        back_color: Background color

    Returns:
        PNG image bytes
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_H,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color=fill_color, back_color=back_color)

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def generate_qr_code_base64(data: str, **options) -> str | None:
    """Generate a QR code and return it as a base64 data URL.

    Returns:
        Base64 data URL string (data:image/png;base64,...) or None if generation fails
    """
    try:
        png = generate_qr_code_png(data, **options)
    except (DataOverflowError, ValueError, OSError) as e:
        logger.error("qr_generation_failed", error=str(e), length=len(data))
        return None

    base64_data = base64.b64encode(png).decode("utf-8")
    return f"data:image/png;base64,{base64_data}"


def generate_checkin_qr_code(token: str) -> str | None:
    """Generate the QR code shown on the booking detail screen.

    Args:
        token: A check-in token produced by the payload codec

    Returns:
        Base64 data URL string or None if generation fails
    """
    return generate_qr_code_base64(
        token,
        box_size=settings.QR_BOX_SIZE,
        border=settings.QR_BORDER,
        fill_color=settings.QR_FILL_COLOR,
        back_color=settings.QR_BACK_COLOR,
    )
