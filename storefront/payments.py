"""UPI helpers: payee ids, deep links and customer-submitted transaction ids."""
import re
from urllib.parse import quote

from storefront import config

UPI_ID_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+@[a-zA-Z0-9]+$")
TRANSACTION_ID_PATTERN = re.compile(r"^[A-Z0-9]{12,16}$")

# Same escaping rules as JavaScript's encodeURIComponent
_URI_COMPONENT_SAFE = "-_.!~*'()"


def normalize_transaction_id(transaction_id: str) -> str:
    return transaction_id.strip().upper()


def is_valid_transaction_id(transaction_id) -> bool:
    if not transaction_id or not isinstance(transaction_id, str):
        return False
    return bool(TRANSACTION_ID_PATTERN.match(normalize_transaction_id(transaction_id)))


def is_valid_upi_id(upi_id) -> bool:
    if not upi_id or not isinstance(upi_id, str):
        return False
    return bool(UPI_ID_PATTERN.match(upi_id))


def payment_note(order_number: str) -> str:
    return f"Payment for Order #{order_number}"


def build_upi_link(amount, order_number: str, upi_id: str = None, business_name: str = None) -> str:
    """Build a ``upi://pay`` deep link for ``amount`` rupees against one order.

    Raises ValueError for a malformed payee id or a non-positive amount.
    """
    upi_id = upi_id or config.UPI_ID
    business_name = business_name or config.BUSINESS_NAME

    if not is_valid_upi_id(upi_id):
        raise ValueError("Invalid UPI ID format")
    if amount <= 0:
        raise ValueError("Amount must be greater than 0")

    return (
        f"upi://pay?pa={quote(upi_id, safe=_URI_COMPONENT_SAFE)}"
        f"&pn={quote(business_name, safe=_URI_COMPONENT_SAFE)}"
        f"&am={amount:.2f}"
        f"&tn={quote(payment_note(order_number), safe=_URI_COMPONENT_SAFE)}"
        f"&cu=INR"
    )
