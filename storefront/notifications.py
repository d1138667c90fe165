import hashlib
import hmac
import logging
from html import escape

import resend

from storefront import config

logger = logging.getLogger(__name__)

ACTIONS = ("approve", "reject")


def generate_order_token(order_id: str, action: str) -> str:
    """HMAC-SHA256 over ``"<order_id>:<action>"``, hex encoded."""
    if action not in ACTIONS:
        raise ValueError(f"Unknown order action: {action}")
    message = f"{order_id}:{action}".encode("utf-8")
    return hmac.new(config.ACTION_LINK_SECRET.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_order_token(order_id: str, action: str, token: str) -> bool:
    # An unset secret would make every link forgeable
    if not config.ACTION_LINK_SECRET or not token or action not in ACTIONS:
        return False
    expected = generate_order_token(order_id, action)
    return hmac.compare_digest(expected, token)


def action_urls(order_id: str):
    approve = generate_order_token(order_id, "approve")
    reject = generate_order_token(order_id, "reject")
    return (
        f"{config.APP_URL}/api/orders/{order_id}/confirm?token={approve}",
        f"{config.APP_URL}/api/orders/{order_id}/reject?token={reject}",
    )


def build_verification_email_html(order, approve_url: str, reject_url: str) -> str:
    customer = order.user
    address = order.address
    items_html = "".join(
        f'<li style="padding:4px 0;color:#374151;">{escape(item.name)} &times; {item.quantity}</li>'
        for item in order.items
    )
    transaction = (
        f'<p style="margin:8px 0 0;color:#374151;">UPI transaction ID: <strong>{escape(order.payment_id)}</strong></p>'
        if order.payment_id
        else ""
    )
    address_html = (
        f"{escape(address.name or '')}<br>{escape(address.street or '')}, {escape(address.city or '')}<br>"
        f"{escape(address.state or '')} &ndash; {escape(address.pincode or '')}"
        if address is not None
        else ""
    )
    return f"""\
<div style="font-family:Georgia,serif;max-width:600px;margin:0 auto;background:#FFF8F0;padding:32px;border-radius:12px;">
  <h2 style="color:#8B4513;margin-top:0;">New Payment to Verify</h2>
  <div style="background:white;border-radius:8px;padding:20px;margin-bottom:20px;border-left:4px solid #8B4513;">
    <p style="margin:0;font-size:22px;font-weight:bold;color:#1F2937;">#{escape(order.order_number)}</p>
    <p style="margin:8px 0 0;font-size:28px;font-weight:bold;color:#8B4513;">&#8377;{order.total}</p>
    {transaction}
  </div>
  <div style="background:white;border-radius:8px;padding:20px;margin-bottom:20px;">
    <p style="margin:0;font-weight:bold;color:#1F2937;">{escape((customer.name if customer else None) or "Customer")}</p>
    <p style="margin:4px 0 0;color:#6B7280;font-size:14px;">{escape((customer.email if customer else None) or "")}</p>
  </div>
  <div style="background:white;border-radius:8px;padding:20px;margin-bottom:20px;">
    <ul style="margin:0;padding-left:20px;">{items_html}</ul>
  </div>
  <div style="background:white;border-radius:8px;padding:20px;margin-bottom:20px;">
    <p style="margin:0;color:#374151;line-height:1.6;">{address_html}</p>
  </div>
  <div style="background:#FEF3C7;border-radius:8px;padding:16px;margin-bottom:24px;border:1px solid #F59E0B;">
    <p style="margin:0;color:#92400E;font-weight:bold;">Check your UPI app ({escape(config.UPI_ID)}) for a payment of &#8377;{order.total}</p>
    <p style="margin:8px 0 0;color:#92400E;font-size:14px;">If you see the payment, click Confirm. If not, click Reject.</p>
  </div>
  <table width="100%" cellpadding="0" cellspacing="0">
    <tr>
      <td style="padding-right:8px;">
        <a href="{escape(approve_url)}" style="display:block;background:#16A34A;color:white;text-align:center;padding:16px;border-radius:32px;text-decoration:none;font-weight:bold;">Confirm Order</a>
      </td>
      <td style="padding-left:8px;">
        <a href="{escape(reject_url)}" style="display:block;background:white;color:#DC2626;text-align:center;padding:14px;border-radius:32px;text-decoration:none;font-weight:bold;border:2px solid #DC2626;">Reject</a>
      </td>
    </tr>
  </table>
</div>"""


def send_payment_verification_email(order) -> bool:
    """Email the operator a verification request with signed approve/reject links.

    Returns False (and logs) instead of raising, so a mail outage never
    blocks the customer's request.
    """
    api_key = (config.RESEND_API_KEY or "").strip()
    if not api_key:
        logger.warning("Resend API key is not configured; skipping verification email for order %s", order.id)
        return False

    approve_url, reject_url = action_urls(order.id)
    payload = {
        "from": config.FROM_EMAIL,
        "to": [config.ADMIN_EMAIL],
        "subject": f"New Payment - Order #{order.order_number} (₹{order.total})",
        "html": build_verification_email_html(order, approve_url, reject_url),
    }

    previous_api_key = getattr(resend, "api_key", None)
    resend.api_key = api_key
    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        logger.error("Failed to send payment verification email for order %s: %s", order.id, exc)
        return False
    finally:
        resend.api_key = previous_api_key

    if not isinstance(response, dict) or not response.get("id"):
        logger.error("Resend rejected verification email for order %s: %s", order.id, response)
        return False

    logger.info("Verification email sent for order %s (#%s)", order.id, order.order_number)
    return True
