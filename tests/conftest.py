import hashlib
import hmac
import json
import os
import time
from typing import Any, Callable, Dict, Generator, List

import pytest
from fastapi.testclient import TestClient

# Lifespan sans Redis pour le rate limiting
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

from checkout_backend import config
from checkout_backend.app import app as fastapi_app
from checkout_backend.catalog.repository import StaticCatalog
from checkout_backend.catalog.stock import InMemoryStockStore, seed_from_catalog
from checkout_backend.infra import stores
from checkout_backend.settlement.dead_letter import DeadLetterLog
from checkout_backend.settlement.orders import InMemoryOrderStore

WEBHOOK_SECRET = "whsec_test_secret"

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

@pytest.fixture()
def catalog() -> StaticCatalog:
    return StaticCatalog.from_json(config.CATALOG_PATH)

@pytest.fixture()
def stock_store(catalog) -> InMemoryStockStore:
    store = InMemoryStockStore()
    seed_from_catalog(store, catalog.entries())
    return store

@pytest.fixture()
def order_store() -> InMemoryOrderStore:
    return InMemoryOrderStore()

@pytest.fixture()
def dead_letters() -> DeadLetterLog:
    return DeadLetterLog()

# Instances isolées par test (pas de fichier orders.jsonl, pas de Redis)
@pytest.fixture(autouse=True)
def _isolated_stores(catalog, stock_store, order_store, dead_letters):
    stores.configure(catalog=catalog, stock_store=stock_store, order_store=order_store, dead_letters=dead_letters)
    yield
    stores.configure()

# Mocks Stripe: aucun appel réseau, appels enregistrés pour les assertions
@pytest.fixture(autouse=True)
def stripe_calls(monkeypatch) -> Dict[str, List[Any]]:
    calls: Dict[str, List[Any]] = {"create_session": [], "list_line_items": [], "get_session": []}

    def _fake_create_session(**kwargs):
        calls["create_session"].append(kwargs)
        return {"id": "cs_test_123", "url": "https://checkout.stripe.test/c/pay/cs_test_123"}

    def _fake_list_line_items(session_id, limit=100):
        calls["list_line_items"].append(session_id)
        return [{"description": "VEIN_001 Tee", "quantity": 1, "amount_subtotal": 3500, "amount_total": 3500}]

    def _fake_get_session(session_id, expand_line_items=False):
        calls["get_session"].append(session_id)
        raise LookupError(f"No such checkout.session: {session_id}")

    monkeypatch.setattr("checkout_backend.payments.stripe_client.create_session", _fake_create_session)
    monkeypatch.setattr("checkout_backend.payments.stripe_client.list_line_items", _fake_list_line_items)
    monkeypatch.setattr("checkout_backend.payments.stripe_client.get_session", _fake_get_session)
    return calls

@pytest.fixture()
def webhook_secret(monkeypatch) -> str:
    monkeypatch.setattr("checkout_backend.config.STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    return WEBHOOK_SECRET

@pytest.fixture()
def sign_payload() -> Callable[[str, str], str]:
    """En-tête Stripe-Signature valide: t=<ts>,v1=HMAC-SHA256(secret, "<ts>.<payload>")."""
    def _sign(payload: str, secret: str = WEBHOOK_SECRET) -> str:
        ts = int(time.time())
        sig = hmac.new(secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
        return f"t={ts},v1={sig}"
    return _sign

@pytest.fixture()
def completed_event() -> Callable[..., Dict[str, Any]]:
    def _make(session_id: str = "cs_test_123", cart: str = '[["vein-001",1]]', **session_fields) -> Dict[str, Any]:
        session = {
            "id": session_id,
            "object": "checkout.session",
            "payment_status": "paid",
            "payment_intent": f"pi_{session_id}",
            "amount_total": 3500,
            "currency": "gbp",
            "customer_details": {"email": "buyer@example.com"},
            "metadata": {"cart": cart},
        }
        session.update(session_fields)
        return {"id": f"evt_{session_id}", "type": "checkout.session.completed", "data": {"object": session}}
    return _make

@pytest.fixture()
def to_json() -> Callable[[Dict[str, Any]], str]:
    return lambda event: json.dumps(event, separators=(",", ":"))
