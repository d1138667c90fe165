from html import escape

from fastapi.responses import HTMLResponse

from storefront import config

GREEN = "#16A34A"
RED = "#DC2626"
AMBER = "#D97706"
GREY = "#6B7280"

_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>{title}</title>
  <style>
    body {{ font-family: Georgia, serif; background: #FFF8F0; display: flex; align-items: center; justify-content: center; min-height: 100vh; margin: 0; }}
    .card {{ background: white; border-radius: 16px; padding: 48px; max-width: 480px; text-align: center; box-shadow: 0 4px 24px rgba(0,0,0,0.08); }}
    h1 {{ color: {color}; margin-top: 0; }}
    p {{ color: #6B7280; line-height: 1.6; }}
    a {{ color: #8B4513; font-weight: bold; }}
  </style>
</head>
<body>
  <div class="card">{body}</div>
</body>
</html>"""


def status_page(title: str, body: str, color: str, status_code: int = 200) -> HTMLResponse:
    """Render a standalone status card. ``body`` is trusted HTML; escape inputs before passing them."""
    return HTMLResponse(
        _TEMPLATE.format(title=escape(title), body=body, color=color),
        status_code=status_code,
    )


def admin_link() -> str:
    return f'<p><a href="{escape(config.APP_URL)}/admin/orders">View all pending orders &rarr;</a></p>'


def invalid_link(action_label: str) -> HTMLResponse:
    return status_page(
        "Unauthorized",
        f"<h1>Invalid Link</h1><p>This {action_label} link is invalid or has expired.</p>",
        RED,
        status_code=403,
    )


def order_not_found() -> HTMLResponse:
    return status_page(
        "Not Found",
        "<h1>Order Not Found</h1><p>This order could not be found.</p>",
        RED,
        status_code=404,
    )


def already_done(title: str, order_number: str, verb: str, color: str) -> HTMLResponse:
    return status_page(
        title,
        f"<h1>{escape(title)}</h1><p>Order #{escape(order_number)} was already {verb}.</p>{admin_link()}",
        color,
    )


def wrong_state(title: str, order_number: str, payment_status: str) -> HTMLResponse:
    return status_page(
        title,
        f"<h1>{escape(title)}</h1><p>Order #{escape(order_number)} is not in a verifiable state "
        f"(status: {escape(payment_status)}).</p>",
        AMBER,
        status_code=409,
    )


def confirmed(order_number: str, total) -> HTMLResponse:
    return status_page(
        "Order Confirmed",
        f"<h1>Order Confirmed!</h1>"
        f"<p>Order <strong>#{escape(order_number)}</strong> (&#8377;{total}) has been confirmed.<br>"
        f"The customer will see their order as confirmed.</p>{admin_link()}",
        GREEN,
    )


def rejected(order_number: str, total) -> HTMLResponse:
    return status_page(
        "Order Rejected",
        f"<h1>Payment Rejected</h1>"
        f"<p>Order <strong>#{escape(order_number)}</strong> (&#8377;{total}) has been rejected.<br>"
        f"The customer can resubmit their transaction ID or contact you directly.</p>{admin_link()}",
        RED,
    )


def unavailable() -> HTMLResponse:
    return status_page(
        "Something went wrong",
        "<h1>Something went wrong</h1><p>The order could not be updated. Please try the link again.</p>",
        RED,
        status_code=500,
    )
