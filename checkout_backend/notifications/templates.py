"""
Rendu local des emails (Jinja2): la substitution est faite avant l'appel à l'API d'envoi.
"""
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from checkout_backend.config import STORE_NAME
from checkout_backend.settlement.orders import OrderRecord

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

CURRENCY_SYMBOLS = {"gbp": "£", "eur": "€", "usd": "$"}
ZERO_DECIMAL_CURRENCIES = {"jpy", "krw", "vnd", "clp", "isk"}

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)

# module checkout_backend.notifications.templates
def format_amount(amount: Optional[int], currency: Optional[str]) -> str:
    """3500, "gbp" -> "£35.00". Les devises sans décimales ne sont pas divisées."""
    cur = (currency or "").lower()
    value = int(amount or 0)
    if cur in ZERO_DECIMAL_CURRENCIES:
        text = f"{value}"
    else:
        text = f"{value / 100:.2f}"
    symbol = CURRENCY_SYMBOLS.get(cur)
    return f"{symbol}{text}" if symbol else f"{text} {cur.upper()}".strip()

def order_context(order: OrderRecord) -> Dict[str, Any]:
    placed = datetime.fromtimestamp((order.recorded_at or 0) / 1000, tz=timezone.utc)
    return {
        "store_name": STORE_NAME,
        "order_id": order.session_id,
        "order_date": placed.strftime("%d %b %Y"),
        "rows": [
            {
                "description": li.get("description") or "Item",
                "quantity": li.get("quantity") or 0,
                "amount": format_amount(li.get("amount_total"), order.currency),
            }
            for li in order.line_items
        ],
        "total": format_amount(order.amount_total, order.currency),
    }

def render_order_confirmation(order: OrderRecord) -> str:
    return _env.get_template("order_confirmation.html").render(**order_context(order))
