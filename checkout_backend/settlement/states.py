"""
Cycle de vie d'une session de paiement, vu depuis les webhooks.
Les états et transitions sont explicites: une transition absente de la table est refusée.
"""
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

# module checkout_backend.settlement.states
class SessionState(str, Enum):
    INITIATED = "initiated"
    CHARGE_FAILED = "charge_failed"
    CHARGE_SUCCEEDED = "charge_succeeded"
    COMPLETED = "completed"
    REFUNDED = "refunded"

# (état courant, état annoncé par l'événement) -> nouvel état
TRANSITIONS: Dict[Tuple[SessionState, SessionState], SessionState] = {
    (SessionState.INITIATED, SessionState.CHARGE_FAILED): SessionState.CHARGE_FAILED,
    (SessionState.INITIATED, SessionState.CHARGE_SUCCEEDED): SessionState.CHARGE_SUCCEEDED,
    (SessionState.INITIATED, SessionState.COMPLETED): SessionState.COMPLETED,
    (SessionState.CHARGE_FAILED, SessionState.CHARGE_SUCCEEDED): SessionState.CHARGE_SUCCEEDED,
    (SessionState.CHARGE_FAILED, SessionState.COMPLETED): SessionState.COMPLETED,
    (SessionState.CHARGE_SUCCEEDED, SessionState.COMPLETED): SessionState.COMPLETED,
    # charge.succeeded peut arriver après checkout.session.completed
    (SessionState.COMPLETED, SessionState.CHARGE_SUCCEEDED): SessionState.COMPLETED,
    (SessionState.COMPLETED, SessionState.REFUNDED): SessionState.REFUNDED,
}

EVENT_STATES: Dict[str, SessionState] = {
    "checkout.session.completed": SessionState.COMPLETED,
    "charge.succeeded": SessionState.CHARGE_SUCCEEDED,
    "charge.failed": SessionState.CHARGE_FAILED,
    "charge.refunded": SessionState.REFUNDED,
}

class IllegalTransition(Exception):
    def __init__(self, ref: str, current: SessionState, target: SessionState):
        self.ref = ref
        self.current = current
        self.target = target
        super().__init__(f"Transition refusée {current.value} -> {target.value} (ref={ref})")

@dataclass(frozen=True)
class Transition:
    ref: str
    previous: SessionState
    current: SessionState
    target: SessionState

    @property
    def redelivery(self) -> bool:
        """Même état annoncé que l'état déjà atteint (événement relivré)."""
        return self.previous == self.target

def next_state(current: SessionState, target: SessionState) -> Optional[SessionState]:
    """Nouvel état, ou None si la transition est interdite. Une re-livraison du même état est acceptée."""
    if current == target:
        return current
    return TRANSITIONS.get((current, target))

class SessionTracker:
    """
    Etat courant par référence de paiement.
    - Les événements checkout.session.* sont indexés par id de session.
    - Les événements charge.* sont indexés par payment_intent, rattaché à la
      session via link() dès que la session complétée le révèle.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._states: Dict[str, SessionState] = {}
        self._links: Dict[str, str] = {}

    def _resolve(self, ref: str) -> str:
        return self._links.get(ref, ref)

    def state(self, ref: str) -> SessionState:
        with self._lock:
            return self._states.get(self._resolve(ref), SessionState.INITIATED)

    def link(self, payment_intent: Optional[str], session_id: str) -> None:
        """Rattache un payment_intent à sa session (reprend l'état déjà observé côté charge)."""
        if not payment_intent or payment_intent == session_id:
            return
        with self._lock:
            self._links[payment_intent] = session_id
            pi_state = self._states.pop(payment_intent, None)
            if pi_state is not None and session_id not in self._states:
                self._states[session_id] = pi_state

    def apply(self, ref: str, target: SessionState) -> Transition:
        """Applique la transition ou lève IllegalTransition (aucun changement d'état)."""
        with self._lock:
            key = self._resolve(ref)
            current = self._states.get(key, SessionState.INITIATED)
            new = next_state(current, target)
            if new is None:
                raise IllegalTransition(key, current, target)
            self._states[key] = new
            return Transition(ref=key, previous=current, current=new, target=target)

    def restore_completed(self, sessions: Iterable[Tuple[str, Optional[str]]]) -> int:
        """
        Reconstruit l'état COMPLETED des sessions déjà enregistrées (démarrage).
        - sessions: couples (session_id, payment_intent)
        """
        count = 0
        with self._lock:
            for session_id, payment_intent in sessions:
                if not session_id:
                    continue
                if payment_intent and payment_intent != session_id:
                    self._links[payment_intent] = session_id
                self._states.setdefault(session_id, SessionState.COMPLETED)
                count += 1
        return count
