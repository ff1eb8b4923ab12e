"""
Enregistrements de commande (immuables) et stores indexés par session_id.
- InMemoryOrderStore: dict protégé par verrou.
- JsonlOrderStore: même index en mémoire, reconstruit au démarrage depuis un
  fichier JSON lines en ajout seul (le fichier sert d'export/migration).
add() renvoie False si la session est déjà enregistrée: c'est la garantie d'idempotence.
"""
import json
import logging
import threading
import time
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

# module checkout_backend.settlement.orders
@dataclass(frozen=True)
class OrderRecord:
    session_id: str
    payment_intent: Optional[str] = None
    payment_status: Optional[str] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    customer_email: Optional[str] = None
    shipping: Optional[Dict[str, Any]] = None
    line_items: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    recorded_at: int = 0

    @classmethod
    def from_session(cls, session: Dict[str, Any], line_items: List[Dict[str, Any]]) -> "OrderRecord":
        """Construit l'enregistrement depuis l'objet session de l'événement et ses lignes détaillées."""
        details = session.get("customer_details") or {}
        shipping = session.get("shipping_details") or (session.get("collected_information") or {}).get("shipping_details")
        return cls(
            session_id=str(session.get("id") or ""),
            payment_intent=session.get("payment_intent"),
            payment_status=session.get("payment_status"),
            amount_total=session.get("amount_total"),
            currency=session.get("currency"),
            customer_email=details.get("email") or session.get("customer_email"),
            shipping=shipping,
            line_items=[
                {
                    "description": li.get("description"),
                    "quantity": li.get("quantity"),
                    "amount_subtotal": li.get("amount_subtotal"),
                    "amount_total": li.get("amount_total"),
                }
                for li in line_items
            ],
            metadata=dict(session.get("metadata") or {}),
            recorded_at=int(time.time() * 1000),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderRecord":
        return cls(**{k: data[k] for k in cls.__dataclass_fields__ if data.get(k) is not None})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

class OrderStore(Protocol):
    def add(self, record: OrderRecord) -> bool: ...
    def get(self, session_id: str) -> Optional[OrderRecord]: ...
    def exists(self, session_id: str) -> bool: ...
    def all(self) -> List[OrderRecord]: ...

class InMemoryOrderStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._orders: Dict[str, OrderRecord] = {}

    def add(self, record: OrderRecord) -> bool:
        with self._lock:
            if record.session_id in self._orders:
                return False
            self._orders[record.session_id] = record
            return True

    def get(self, session_id: str) -> Optional[OrderRecord]:
        with self._lock:
            return self._orders.get(session_id)

    def exists(self, session_id: str) -> bool:
        return self.get(session_id) is not None

    def all(self) -> List[OrderRecord]:
        with self._lock:
            return list(self._orders.values())

class JsonlOrderStore(InMemoryOrderStore):
    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        with open(self.path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except ValueError:
                    logger.warning("settlement.orders ligne illisible path=%s line=%s", self.path, lineno)
                    continue
                # Ancien format (id au lieu de session_id, created au lieu de recorded_at)
                data.setdefault("session_id", data.get("id"))
                data.setdefault("recorded_at", data.get("created") or 0)
                if not data.get("session_id"):
                    continue
                # Première occurrence gagnante: un doublon historique ne remplace rien
                self._orders.setdefault(data["session_id"], OrderRecord.from_dict(data))
        logger.info("settlement.orders loaded path=%s orders=%s", self.path, len(self._orders))

    def add(self, record: OrderRecord) -> bool:
        with self._lock:
            if record.session_id in self._orders:
                return False
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record.to_dict()) + "\n")
            self._orders[record.session_id] = record
            return True
