"""
Email de confirmation de commande, planifié après la réponse du webhook.
Un échec est journalisé et envoyé au dead-letter: il ne remonte jamais.
"""
import logging
from typing import Optional

from checkout_backend.config import STORE_NAME
from checkout_backend.settlement.dead_letter import DeadLetterLog
from checkout_backend.settlement.orders import OrderRecord
from .email_client import EmailClient
from .templates import render_order_confirmation

logger = logging.getLogger(__name__)

# module checkout_backend.notifications.service
async def send_order_confirmation(
    order: OrderRecord,
    dead_letters: DeadLetterLog,
    client: Optional[EmailClient] = None,
) -> bool:
    """Retourne True si l'email est parti, False si ignoré ou en échec."""
    client = client or EmailClient.from_config()
    if not order.customer_email:
        logger.info("notifications.email skipped session=%s reason=no_email", order.session_id)
        return False
    if not client.configured:
        logger.info("notifications.email skipped session=%s reason=not_configured", order.session_id)
        return False
    try:
        html = render_order_confirmation(order)
        await client.send(order.customer_email, f"{STORE_NAME} order confirmed", html)
        return True
    except Exception as e:
        logger.exception("notifications.email failed session=%s", order.session_id)
        dead_letters.record(stage="email", error=e, session_id=order.session_id)
        return False
