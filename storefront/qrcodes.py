import logging
from base64 import b64encode
from dataclasses import dataclass
from io import BytesIO

import qrcode
from qrcode.constants import ERROR_CORRECT_H

from storefront import config
from storefront.cache import InMemoryTTLCache, TTLCache
from storefront.payments import build_upi_link

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpiQrCode:
    qr_code_data_url: str
    upi_link: str


def render_qr_data_url(payload: str) -> str:
    """Encode ``payload`` as a PNG QR code and return it as a base64 data URL."""
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_H, box_size=8, border=2)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffered = BytesIO()
    img.save(buffered, format="PNG")
    b64 = b64encode(buffered.getvalue()).decode("utf-8")
    return f"data:image/png;base64,{b64}"


class QrCodeGenerator:
    def __init__(self, cache: TTLCache, upi_id: str = None, business_name: str = None):
        self.cache = cache
        self.upi_id = upi_id or config.UPI_ID
        self.business_name = business_name or config.BUSINESS_NAME

    @staticmethod
    def cache_key(order_id: str, total) -> str:
        return f"{order_id}_{total}"

    def generate(self, order_id: str, order_number: str, total):
        """Return ``(UpiQrCode, cached)`` for the given order total."""
        key = self.cache_key(order_id, total)
        hit = self.cache.get(key)
        if hit is not None:
            logger.info("QR code served from cache for order %s", order_id)
            return hit, True

        upi_link = build_upi_link(total, order_number, self.upi_id, self.business_name)
        result = UpiQrCode(qr_code_data_url=render_qr_data_url(upi_link), upi_link=upi_link)
        self.cache.set(key, result)

        logger.info("QR code generated for order %s (#%s, amount %s)", order_id, order_number, total)
        return result, False


_generator = QrCodeGenerator(InMemoryTTLCache(config.QR_CACHE_TTL_SECONDS))


def get_qr_generator() -> QrCodeGenerator:
    return _generator
