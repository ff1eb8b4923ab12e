"""
Cas d'usage 'payments': orchestre catalogue, stock, metadata et Stripe.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException

from checkout_backend import config
from checkout_backend.catalog.resolver import build_line_items
from checkout_backend.infra import stores
from . import stripe_client
from . import metadata as meta

logger = logging.getLogger(__name__)

# module checkout_backend.payments.service
def create_checkout_session(cart: Any, customer_email: Optional[str] = None) -> Dict[str, Any]:
    """
    Résout le panier puis crée la session Stripe hébergée.
    - Panier vide / clé inconnue / rupture: CartError (4xx) avant tout appel Stripe.
    - Le panier résolu est embarqué dans metadata pour la réconciliation.
    - Échec Stripe: 502.
    Retour: {"sessionId": ..., "url": ..., "redirectUrl": ...} ("url" pour le storefront existant)
    """
    items = build_line_items(cart, stores.get_catalog(), stores.get_stock_store())
    try:
        session = stripe_client.create_session(
            line_items=[it.to_stripe() for it in items],
            success_url=config.CHECKOUT_SUCCESS_URL,
            cancel_url=config.CHECKOUT_CANCEL_URL,
            metadata=meta.make_metadata(items),
            customer_email=customer_email,
            allowed_countries=config.SHIPPING_COUNTRIES,
            allow_promotion_codes=config.ALLOW_PROMOTION_CODES,
        )
    except Exception:
        logger.exception("payments.checkout stripe session creation failed lines=%s", len(items))
        raise HTTPException(status_code=502, detail="Failed to create session")
    logger.info("payments.checkout session=%s lines=%s", session.get("id"), len(items))
    url = session.get("url")
    return {"sessionId": session.get("id"), "url": url, "redirectUrl": url}

def _summary_line(li: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "description": li.get("description"),
        "quantity": li.get("quantity"),
        "amount_total": li.get("amount_total"),
    }

def get_order_summary(session_id: str) -> Dict[str, Any]:
    """
    Résumé de commande pour la page de remerciement.
    - Commande déjà enregistrée (webhook reçu): lue depuis l'order store.
    - Sinon: session Stripe avec line_items étendus.
    - Introuvable ou erreur Stripe: 404.
    """
    order = stores.get_order_store().get(session_id)
    if order is not None:
        return {
            "id": order.session_id,
            "status": order.payment_status,
            "email": order.customer_email,
            "amount_total": order.amount_total,
            "currency": order.currency,
            "shipping": order.shipping,
            "line_items": [_summary_line(li) for li in order.line_items],
        }
    try:
        session = stripe_client.get_session(session_id, expand_line_items=True)
    except Exception:
        logger.info("payments.order_summary not found session=%s", session_id)
        raise HTTPException(status_code=404, detail="Order not found")
    details = session.get("customer_details") or {}
    line_items: List[Dict[str, Any]] = (session.get("line_items") or {}).get("data") or []
    return {
        "id": session.get("id"),
        "status": session.get("payment_status"),
        "email": details.get("email") or session.get("customer_email"),
        "amount_total": session.get("amount_total"),
        "currency": session.get("currency"),
        "shipping": session.get("shipping_details") or (session.get("collected_information") or {}).get("shipping_details"),
        "line_items": [_summary_line(li) for li in line_items],
    }
