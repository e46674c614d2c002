"""
Login token rendering.

Turns the raw login token emitted by the client into a PNG data URL that a
browser can display for scanning.
"""

import base64
import io

import qrcode
from qrcode.constants import ERROR_CORRECT_M


def encode_login_token(token: str) -> str:
    """
    Render a login token as a ``data:image/png;base64,...`` QR code.

    Raises:
        ValueError: If the token is empty.
    """
    if not token:
        raise ValueError("Login token is empty")

    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=6, border=4)
    qr.add_data(token)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"
