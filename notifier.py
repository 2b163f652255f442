"""
Telegram order notifications

Fire-and-forget: one attempt, no retries. Missing credentials skip the
message; transport errors are logged and dropped.
"""
import logging
import os
from typing import Any, Dict

import requests
from pymongo.database import Database

from orders import expand_orders, find_order

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"
PAYMENT_LABELS = {"cod": "Cash on Delivery", "qr": "Pay via QR Code"}


def _money(value: Any) -> str:
    try:
        return f"{float(value or 0):.2f}"
    except (TypeError, ValueError):
        return "0.00"


def format_order_message(order: Dict[str, Any]) -> str:
    """Markdown summary of an expanded order (see `orders.expand_orders`)."""
    lines = []
    for line in order.get("products") or []:
        product = line.get("product") or {}
        quantity = line.get("quantity") or 0
        try:
            line_total = float(product.get("price") or 0) * quantity
        except (TypeError, ValueError):
            line_total = 0
        lines.append(f"- {product.get('name') or 'Unknown Product'} (Qty: {quantity}) - ₹{_money(line_total)}")

    location = order.get("location") or {}
    maps = location.get("mapsLink") or order.get("mapLink")
    maps_text = f"[View on Google Maps]({maps})" if maps else ""

    return "\n".join([
        "🛒 *NEW ORDER RECEIVED*",
        f"*Order ID:* `{order.get('id')}`",
        f"*Customer:* {order.get('customer_name') or 'N/A'}",
        f"*Phone:* `{order.get('phone') or 'N/A'}`",
        f"*Total Amount:* ₹{_money(order.get('total'))}",
        f"*Payment Method:* {PAYMENT_LABELS.get(order.get('paymentMethod'), 'N/A')}",
        f"*Address:* {order.get('address') or 'N/A'}",
        f"*Location:* {location.get('city') or 'N/A'} {maps_text}".rstrip(),
        "",
        "*Items:*",
        "\n".join(lines) or "No items listed",
    ])


def send_order_notification(order: Dict[str, Any]) -> bool:
    bot_token = os.getenv("TELEGRAM_BOT_TOKEN")
    chat_id = os.getenv("TELEGRAM_CHAT_ID")
    if not bot_token or not chat_id:
        logger.warning("Telegram bot credentials not configured. Skipping notification.")
        return False

    timeout = float(os.getenv("TELEGRAM_TIMEOUT", "5"))
    response = requests.post(
        TELEGRAM_API_URL.format(token=bot_token),
        json={"chat_id": chat_id, "text": format_order_message(order), "parse_mode": "Markdown"},
        timeout=timeout,
    )
    response.raise_for_status()
    logger.info("Telegram notification sent for order %s", order.get("id"))
    return True


def notify_new_order(db: Database, order_id: str) -> None:
    """Background task run after an order is created."""
    try:
        order = expand_orders(db, [find_order(db, order_id)])[0]
        send_order_notification(order)
    except Exception as exc:
        logger.exception("Failed to send Telegram notification for order %s: %s", order_id, exc)
