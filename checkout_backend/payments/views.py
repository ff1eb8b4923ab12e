import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import AliasChoices, BaseModel, EmailStr, Field
from starlette.concurrency import run_in_threadpool

from checkout_backend.utils.rate_limit import optional_rate_limit
from checkout_backend.payments import service as payments_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Checkout API"])

class CheckoutRequest(BaseModel):
    # Panier non fiable: validé par le résolveur (EMPTY_CART, UNRESOLVED_ITEM, OUT_OF_STOCK)
    cart: Any = None
    customer_email: Optional[EmailStr] = Field(
        default=None,
        validation_alias=AliasChoices("customer_email", "customerEmail"),
    )

# module checkout_backend.payments.views
@router.post("/checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_checkout_session(payload: CheckoutRequest):
    """
    Crée une session Checkout Stripe pour le panier du storefront.
    - Entrée JSON: { "cart": [ { "identifier": "vein-001", "quantity": 2 }, ... ], "customer_email": "..." }
      ("productId" est accepté à la place de "identifier")
    - Étapes:
      1) Résoudre le panier au prix du catalogue (tout ou rien)
      2) Créer la session Stripe (metadata = panier résolu) et renvoyer {sessionId, url, redirectUrl}
    - Erreurs: 400 EMPTY_CART / UNRESOLVED_ITEM:<clé>, 409 OUT_OF_STOCK:<clé>, 502 si Stripe échoue
    """
    try:
        return await run_in_threadpool(
            payments_service.create_checkout_session,
            payload.cart,
            str(payload.customer_email) if payload.customer_email else None,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Erreur create_checkout_session")
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/order-summary/{session_id}")
async def order_summary(session_id: str):
    """
    Résumé de commande pour la page de remerciement (statut, total, devise, lignes).
    - 404 si la session est inconnue.
    """
    return await run_in_threadpool(payments_service.get_order_summary, session_id)
