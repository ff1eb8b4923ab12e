"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
"""
import json
import stripe
from typing import Any, Dict, List, Optional

from checkout_backend import config

# module checkout_backend.payments.stripe_client
def require_stripe() -> stripe:
    """
    Prépare et retourne le module stripe prêt à l’emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY si disponible.
    - En absence de clé, les appels Stripe échoueront côté SDK (ex: No API key provided).
    """
    if config.STRIPE_SECRET_KEY:
        stripe.api_key = config.STRIPE_SECRET_KEY
    if config.STRIPE_API_VERSION:
        stripe.api_version = config.STRIPE_API_VERSION
    return stripe

def as_dict(obj: Any) -> Dict[str, Any]:
    """Convertit un objet Stripe (ou un dict) en dict Python simple."""
    if obj is None:
        return {}
    for attr in ("to_dict_recursive", "to_dict"):
        fn = getattr(obj, attr, None)
        if callable(fn):
            return fn()
    return dict(obj)

def create_session(
    *,
    line_items: List[Dict[str, Any]],
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, str],
    customer_email: Optional[str] = None,
    allowed_countries: Optional[List[str]] = None,
    allow_promotion_codes: bool = False,
    mode: str = "payment",
) -> Dict[str, Any]:
    """
    Crée une session Stripe Checkout.
    - line_items: lignes Stripe (price/quantity ou price_data)
    - allowed_countries: pays de livraison acceptés (shipping_address_collection)
    - metadata: ex {"cart": "[[\"vein-001\",2]]"}
    Retour: dict session (ex: {"id": "cs_test_...", "url": "https://..."})
    """
    require_stripe()
    params: Dict[str, Any] = {
        "line_items": line_items,
        "mode": mode,
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": metadata,
        "payment_method_types": ["card"],
        "allow_promotion_codes": allow_promotion_codes,
    }
    if customer_email:
        params["customer_email"] = customer_email
    if allowed_countries:
        params["shipping_address_collection"] = {"allowed_countries": allowed_countries}
    session = stripe.checkout.Session.create(**params)
    return as_dict(session)

def get_session(session_id: str, expand_line_items: bool = False) -> Dict[str, Any]:
    """
    Récupère une session Stripe Checkout par son identifiant.
    Retour: dict session incluant "id", "payment_status", "metadata", etc.
    """
    require_stripe()
    if expand_line_items:
        session = stripe.checkout.Session.retrieve(session_id, expand=["line_items"])
    else:
        session = stripe.checkout.Session.retrieve(session_id)
    return as_dict(session)

def list_line_items(session_id: str, limit: int = 100) -> List[Dict[str, Any]]:
    """Lignes détaillées (description, quantités, montants) d'une session terminée."""
    require_stripe()
    res = stripe.checkout.Session.list_line_items(session_id, limit=limit)
    return list(as_dict(res).get("data") or [])

def list_prices_by_lookup_keys(lookup_keys: List[str]) -> List[Dict[str, Any]]:
    """Prices actifs correspondant aux lookup_keys (max 10 par appel côté Stripe), produit étendu."""
    require_stripe()
    res = stripe.Price.list(lookup_keys=lookup_keys, active=True, expand=["data.product"], limit=100)
    return list(as_dict(res).get("data") or [])

def construct_event(payload: bytes, sig_header: Optional[str], secret: str) -> Dict[str, Any]:
    """
    Vérifie la signature Stripe du body brut puis le décode.
    - Lève stripe.SignatureVerificationError si signature absente/invalide ou secret vide.
    - Lève ValueError si le body n'est pas un objet JSON.
    """
    if not secret:
        raise stripe.SignatureVerificationError("Webhook secret non configuré", sig_header, payload)
    stripe.WebhookSignature.verify_header(
        payload.decode("utf-8") if isinstance(payload, bytes) else payload,
        sig_header or "",
        secret,
        stripe.Webhook.DEFAULT_TOLERANCE,
    )
    event = json.loads(payload)
    if not isinstance(event, dict):
        raise ValueError("Événement webhook: objet JSON attendu")
    return event
