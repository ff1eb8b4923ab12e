"""
Compteurs de stock derrière une interface explicite (get / compare_and_decrement).
Le réconciliateur ne modifie jamais une structure partagée directement.
"""
import logging
import threading
from typing import Dict, Iterable, Mapping, Optional, Protocol

import redis

from .models import CatalogEntry

logger = logging.getLogger(__name__)

# module checkout_backend.catalog.stock
class StockStore(Protocol):
    def get(self, key: str) -> Optional[int]: ...
    def compare_and_decrement(self, key: str, quantity: int) -> Optional[int]: ...
    def seed(self, key: str, stock: int) -> None: ...
    def snapshot(self) -> Dict[str, int]: ...

def seed_from_catalog(store: StockStore, entries: Iterable[CatalogEntry]) -> None:
    """Initialise les compteurs pour les entrées dont le stock est suivi (sans écraser l'existant)."""
    for entry in entries:
        if entry.available_stock is not None:
            store.seed(entry.canonical_key, entry.available_stock)

class InMemoryStockStore:
    def __init__(self, initial: Optional[Mapping[str, int]] = None):
        self._lock = threading.Lock()
        self._stock: Dict[str, int] = dict(initial or {})

    def get(self, key: str) -> Optional[int]:
        with self._lock:
            return self._stock.get(key)

    def compare_and_decrement(self, key: str, quantity: int) -> Optional[int]:
        """
        Lit et décrémente atomiquement, sans descendre sous 0.
        Retourne le stock restant, ou None si la clé n'est pas suivie.
        """
        with self._lock:
            current = self._stock.get(key)
            if current is None:
                return None
            remaining = max(0, current - max(0, int(quantity)))
            self._stock[key] = remaining
            return remaining

    def seed(self, key: str, stock: int) -> None:
        with self._lock:
            self._stock.setdefault(key, int(stock))

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._stock)

class RedisStockStore:
    """
    Stock partagé entre processus: une clé Redis par entrée (prefix "stock:").
    La décrémentation utilise WATCH/MULTI (transaction optimiste, rejouée sur conflit).
    """

    def __init__(self, client: redis.Redis, prefix: str = "stock:"):
        self._redis = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> "RedisStockStore":
        return cls(redis.from_url(url, encoding="utf-8", decode_responses=True))

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Optional[int]:
        raw = self._redis.get(self._key(key))
        return int(raw) if raw is not None else None

    def compare_and_decrement(self, key: str, quantity: int) -> Optional[int]:
        rkey = self._key(key)
        with self._redis.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(rkey)
                    raw = pipe.get(rkey)
                    if raw is None:
                        pipe.unwatch()
                        return None
                    remaining = max(0, int(raw) - max(0, int(quantity)))
                    pipe.multi()
                    pipe.set(rkey, remaining)
                    pipe.execute()
                    return remaining
                except redis.WatchError:
                    logger.debug("stock.redis conflict key=%s, retry", key)
                    continue

    def seed(self, key: str, stock: int) -> None:
        self._redis.setnx(self._key(key), int(stock))

    def snapshot(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for rkey in self._redis.scan_iter(match=f"{self._prefix}*"):
            raw = self._redis.get(rkey)
            if raw is not None:
                out[rkey[len(self._prefix):]] = int(raw)
        return out
