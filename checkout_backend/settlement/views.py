import logging

import stripe
from fastapi import APIRouter, BackgroundTasks, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from checkout_backend import config
from checkout_backend.infra import stores
from checkout_backend.notifications.service import send_order_confirmation

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

# module checkout_backend.settlement.views
@router.post("/stripe", include_in_schema=False)
async def stripe_webhook(request: Request, background_tasks: BackgroundTasks):
    """
    Webhook Stripe.
    - Signature: body brut + Stripe-Signature + STRIPE_WEBHOOK_SECRET, vérifiés avant toute lecture.
      Signature invalide: 400, aucun effet de bord.
    - Événement vérifié: toujours {"received": true}, même si un effet de bord échoue
      (échecs journalisés + dead-letter), pour stopper les relivraisons Stripe.
    - Email de confirmation envoyé après la réponse (BackgroundTasks).
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    reconciler = stores.get_reconciler()
    try:
        event = reconciler.verify(payload, signature, config.STRIPE_WEBHOOK_SECRET)
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.warning("settlement.webhook signature verification failed: %s", e)
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        result = await run_in_threadpool(reconciler.handle_event, event)
    except Exception as e:
        event_id, event_type = (event.get("id"), event.get("type")) if isinstance(event, dict) else (None, None)
        logger.exception("Erreur stripe_webhook type=%s", event_type)
        stores.get_dead_letters().record(stage="handler", error=e, event_id=event_id, event_type=event_type)
        return {"received": True}

    if result.order is not None:
        background_tasks.add_task(send_order_confirmation, result.order, stores.get_dead_letters())
    logger.info(
        "settlement.webhook type=%s handled=%s duplicate=%s rejected=%s",
        result.event_type, result.handled, result.duplicate, result.rejected,
    )
    return {"received": True}
