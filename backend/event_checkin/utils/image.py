import io
import logging

import qrcode
from qrcode.image.pil import PilImage

logger = logging.getLogger(__name__)

def generate_qr_png(data: str, box_size: int = 8, border: int = 2) -> bytes:
    """Render data as a QR code PNG"""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
        image_factory=PilImage,
    )
    qr.add_data(data)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white")

    output = io.BytesIO()
    image.save(output, format="PNG")
    png = output.getvalue()
    logger.debug(f"Rendered QR code version {qr.version} ({len(png)} bytes)")
    return png
