import io

import qrcode
from qrcode.constants import ERROR_CORRECT_M


def make_qr_bytes(url: str, box_size: int = 8, border: int = 2) -> bytes:
    """PNG of a share link with the code baked into the query string."""
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=box_size, border=border)
    qr.add_data(url)
    qr.make(fit=True)
    buf = io.BytesIO()
    qr.make_image().save(buf, format='PNG')
    return buf.getvalue()
