"""
Réconciliation des événements de paiement Stripe.
- Vérifie la signature avant toute lecture du contenu.
- Un handler par type d'événement; types inconnus acquittés et ignorés.
- checkout.session.completed: lignes détaillées -> stock -> commande, au plus une fois par session.
Les échecs en aval sont journalisés et envoyés au dead-letter, jamais propagés:
Stripe doit recevoir un 2xx sinon il relivre indéfiniment.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from checkout_backend.catalog.stock import StockStore
from checkout_backend.payments import stripe_client
from checkout_backend.payments.metadata import extract_cart_from_event
from .dead_letter import DeadLetterLog
from .orders import OrderRecord, OrderStore
from .states import EVENT_STATES, IllegalTransition, SessionState, SessionTracker, Transition

logger = logging.getLogger(__name__)

LOCK_STRIPES = 64

@dataclass(frozen=True)
class ReconcileResult:
    event_type: Optional[str]
    handled: bool = False
    duplicate: bool = False
    rejected: bool = False
    order: Optional[OrderRecord] = None
    transition: Optional[Transition] = None

# module checkout_backend.settlement.reconciler
class SettlementReconciler:
    def __init__(
        self,
        *,
        order_store: OrderStore,
        stock_store: StockStore,
        tracker: SessionTracker,
        dead_letters: DeadLetterLog,
        fetch_line_items: Optional[Callable[[str], List[Dict[str, Any]]]] = None,
    ):
        self.order_store = order_store
        self.stock_store = stock_store
        self.tracker = tracker
        self.dead_letters = dead_letters
        self._fetch_line_items = fetch_line_items or (lambda sid: stripe_client.list_line_items(sid))
        # Verrous par session (striés): décrément + enregistrement atomiques pour une même session
        self._locks = [threading.Lock() for _ in range(LOCK_STRIPES)]
        # Sessions dont le stock est déjà décrémenté mais la commande pas encore enregistrée
        self._stock_applied: Set[str] = set()
        self._handlers: Dict[str, Callable[[Dict[str, Any]], ReconcileResult]] = {
            "checkout.session.completed": self._on_session_completed,
            "charge.succeeded": self._on_charge_event,
            "charge.failed": self._on_charge_event,
            "charge.refunded": self._on_charge_event,
        }

    @staticmethod
    def verify(payload: bytes, signature: Optional[str], secret: str) -> Dict[str, Any]:
        """Authenticité du webhook; lève si la signature est invalide (rien n'est interprété avant)."""
        return stripe_client.construct_event(payload, signature, secret)

    def _session_lock(self, session_id: str) -> threading.Lock:
        return self._locks[hash(session_id) % LOCK_STRIPES]

    def handle_event(self, event: Dict[str, Any]) -> ReconcileResult:
        event_type = (event or {}).get("type")
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info("settlement.webhook ignored type=%s id=%s", event_type, (event or {}).get("id"))
            return ReconcileResult(event_type=event_type)
        return handler(event)

    def _dead_letter(self, stage: str, error: Any, event: Dict[str, Any], session_id: Optional[str], **extra) -> None:
        self.dead_letters.record(
            stage=stage,
            error=error,
            session_id=session_id,
            event_id=event.get("id"),
            event_type=event.get("type"),
            extra=extra or None,
        )

    def _transition(self, event: Dict[str, Any], ref: str, target: SessionState) -> Optional[Transition]:
        try:
            return self.tracker.apply(ref, target)
        except IllegalTransition as e:
            logger.warning("settlement.transition rejected ref=%s %s -> %s", e.ref, e.current.value, e.target.value)
            self._dead_letter("transition", e, event, ref, current=e.current.value, target=e.target.value)
            return None

    def _on_session_completed(self, event: Dict[str, Any]) -> ReconcileResult:
        event_type = event.get("type")
        session = ((event.get("data") or {}).get("object")) or {}
        session_id = str(session.get("id") or "")
        if not session_id:
            self._dead_letter("payload", "session.id manquant", event, None)
            return ReconcileResult(event_type=event_type, handled=True, rejected=True)

        self.tracker.link(session.get("payment_intent"), session_id)
        transition = self._transition(event, session_id, SessionState.COMPLETED)
        if transition is None:
            return ReconcileResult(event_type=event_type, handled=True, rejected=True)
        if self.order_store.exists(session_id):
            logger.info("settlement.webhook duplicate session=%s redelivery=%s", session_id, transition.redelivery)
            return ReconcileResult(event_type=event_type, handled=True, duplicate=True, transition=transition)

        # 1) lignes détaillées: un échec n'interrompt pas la réconciliation
        try:
            line_items = self._fetch_line_items(session_id)
        except Exception as e:
            logger.exception("settlement.line_items failed session=%s", session_id)
            self._dead_letter("line_items", e, event, session_id)
            line_items = []

        with self._session_lock(session_id):
            if self.order_store.exists(session_id):
                logger.info("settlement.webhook duplicate session=%s", session_id)
                return ReconcileResult(event_type=event_type, handled=True, duplicate=True, transition=transition)

            # 2) stock, au mieux: clés non suivies ignorées, une seule fois par session
            if session_id in self._stock_applied:
                logger.info("settlement.stock already applied session=%s, retry order only", session_id)
            else:
                self._decrement_stock(event, session_id)
                self._stock_applied.add(session_id)

            # 3) enregistrement de la commande
            record = OrderRecord.from_session(session, line_items)
            try:
                created = self.order_store.add(record)
            except Exception as e:
                logger.exception("settlement.order persist failed session=%s", session_id)
                self._dead_letter("order", e, event, session_id, order=record.to_dict())
                return ReconcileResult(event_type=event_type, handled=True, transition=transition)
            self._stock_applied.discard(session_id)

        if not created:
            return ReconcileResult(event_type=event_type, handled=True, duplicate=True, transition=transition)
        logger.info("settlement.order saved session=%s lines=%s", session_id, len(line_items))
        return ReconcileResult(event_type=event_type, handled=True, order=record, transition=transition)

    def _decrement_stock(self, event: Dict[str, Any], session_id: str) -> None:
        for key, qty in extract_cart_from_event(event):
            try:
                remaining = self.stock_store.compare_and_decrement(key, qty)
            except Exception as e:
                logger.exception("settlement.stock decrement failed session=%s key=%s", session_id, key)
                self._dead_letter("stock", e, event, session_id, key=key, quantity=qty)
                continue
            if remaining is None:
                logger.debug("settlement.stock untracked key=%s", key)
            else:
                logger.info("settlement.stock key=%s qty=%s remaining=%s", key, qty, remaining)

    def _on_charge_event(self, event: Dict[str, Any]) -> ReconcileResult:
        """charge.succeeded / charge.failed / charge.refunded: trace d'audit uniquement."""
        event_type = event.get("type")
        charge = ((event.get("data") or {}).get("object")) or {}
        ref = str(charge.get("payment_intent") or charge.get("id") or "")
        if not ref:
            self._dead_letter("payload", "charge sans payment_intent ni id", event, None)
            return ReconcileResult(event_type=event_type, handled=True, rejected=True)
        transition = self._transition(event, ref, EVENT_STATES[event_type])
        if transition is None:
            return ReconcileResult(event_type=event_type, handled=True, rejected=True)
        if transition.redelivery:
            logger.info("settlement.audit redelivery type=%s ref=%s state=%s", event_type, transition.ref, transition.current.value)
            return ReconcileResult(event_type=event_type, handled=True, duplicate=True, transition=transition)
        logger.info(
            "settlement.audit type=%s ref=%s %s -> %s amount=%s",
            event_type, transition.ref, transition.previous.value, transition.current.value, charge.get("amount"),
        )
        return ReconcileResult(event_type=event_type, handled=True, transition=transition)
