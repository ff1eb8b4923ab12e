"""
Instances partagées du processus (catalogue, stock, commandes, suivi de session, dead-letter),
construites paresseusement depuis la configuration.
"""
import logging
from typing import Optional

from checkout_backend import config
from checkout_backend.catalog.repository import StaticCatalog, StripePriceCatalog
from checkout_backend.catalog.stock import InMemoryStockStore, RedisStockStore, StockStore, seed_from_catalog
from checkout_backend.settlement.dead_letter import DeadLetterLog
from checkout_backend.settlement.orders import JsonlOrderStore, OrderStore
from checkout_backend.settlement.reconciler import SettlementReconciler
from checkout_backend.settlement.states import SessionTracker

logger = logging.getLogger(__name__)

_catalog = None
_stock_store: Optional[StockStore] = None
_order_store: Optional[OrderStore] = None
_tracker: Optional[SessionTracker] = None
_dead_letters: Optional[DeadLetterLog] = None
_reconciler: Optional[SettlementReconciler] = None

def get_catalog():
    global _catalog
    if _catalog is None:
        if config.CATALOG_SOURCE == "stripe":
            # Les alias restent locaux même quand les prix viennent de Stripe
            aliases = StaticCatalog.from_json(config.CATALOG_PATH).aliases if config.CATALOG_PATH.exists() else None
            _catalog = StripePriceCatalog(aliases)
        else:
            _catalog = StaticCatalog.from_json(config.CATALOG_PATH)
    return _catalog

def get_stock_store() -> StockStore:
    global _stock_store
    if _stock_store is None:
        if config.STOCK_REDIS_URL:
            store: StockStore = RedisStockStore.from_url(config.STOCK_REDIS_URL)
        else:
            store = InMemoryStockStore()
        catalog = get_catalog()
        if isinstance(catalog, StaticCatalog):
            seed_from_catalog(store, catalog.entries())
        _stock_store = store
    return _stock_store

def get_order_store() -> OrderStore:
    global _order_store
    if _order_store is None:
        _order_store = JsonlOrderStore(config.ORDERS_PATH)
    return _order_store

def get_tracker() -> SessionTracker:
    global _tracker
    if _tracker is None:
        tracker = SessionTracker()
        restored = tracker.restore_completed((o.session_id, o.payment_intent) for o in get_order_store().all())
        logger.info("infra.stores tracker restored sessions=%s", restored)
        _tracker = tracker
    return _tracker

def get_dead_letters() -> DeadLetterLog:
    global _dead_letters
    if _dead_letters is None:
        _dead_letters = DeadLetterLog(config.DEAD_LETTER_PATH)
    return _dead_letters

def get_reconciler() -> SettlementReconciler:
    global _reconciler
    if _reconciler is None:
        _reconciler = SettlementReconciler(
            order_store=get_order_store(),
            stock_store=get_stock_store(),
            tracker=get_tracker(),
            dead_letters=get_dead_letters(),
        )
    return _reconciler

def configure(
    *,
    catalog=None,
    stock_store: Optional[StockStore] = None,
    order_store: Optional[OrderStore] = None,
    dead_letters: Optional[DeadLetterLog] = None,
) -> None:
    """Remplace les instances (tests, scripts); le réconciliateur est reconstruit au prochain accès."""
    global _catalog, _stock_store, _order_store, _tracker, _dead_letters, _reconciler
    _catalog = catalog
    _stock_store = stock_store
    _order_store = order_store
    _dead_letters = dead_letters
    _tracker = None
    _reconciler = None
