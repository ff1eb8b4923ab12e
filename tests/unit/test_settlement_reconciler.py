import threading

import pytest

from checkout_backend.catalog.stock import InMemoryStockStore
from checkout_backend.infra import stores
from checkout_backend.settlement.dead_letter import DeadLetterLog
from checkout_backend.settlement.orders import InMemoryOrderStore, OrderRecord
from checkout_backend.settlement.reconciler import SettlementReconciler
from checkout_backend.settlement.states import SessionState, SessionTracker

LINE_ITEMS = [{"description": "VEIN_001 Tee", "quantity": 1, "amount_subtotal": 3500, "amount_total": 3500}]

@pytest.fixture()
def reconciler():
    return SettlementReconciler(
        order_store=InMemoryOrderStore(),
        stock_store=InMemoryStockStore({"vein-001": 10, "skinlock_ss_black_m": 1}),
        tracker=SessionTracker(),
        dead_letters=DeadLetterLog(),
        fetch_line_items=lambda sid: LINE_ITEMS,
    )

def _charge(event_type, pi="pi_cs_test_123", amount=3500):
    return {"id": f"evt_{event_type}", "type": event_type, "data": {"object": {"id": "ch_1", "payment_intent": pi, "amount": amount}}}

def test_completed_event_decrements_stock_and_records_one_order(reconciler, completed_event):
    # Act
    result = reconciler.handle_event(completed_event())

    # Assert
    assert result.handled and not result.duplicate
    assert reconciler.stock_store.get("vein-001") == 9
    orders = reconciler.order_store.all()
    assert len(orders) == 1
    assert orders[0].line_items == LINE_ITEMS
    assert result.order == orders[0]
    assert result.transition.current == SessionState.COMPLETED

def test_duplicate_delivery_has_no_side_effects(reconciler, completed_event):
    event = completed_event()
    reconciler.handle_event(event)
    again = reconciler.handle_event(event)

    assert again.duplicate
    assert again.order is None
    assert reconciler.stock_store.get("vein-001") == 9
    assert len(reconciler.order_store.all()) == 1

def test_concurrent_duplicate_deliveries_record_once(reconciler, completed_event):
    event = completed_event(cart='[["vein-001",2]]')
    results = []

    def deliver():
        results.append(reconciler.handle_event(event))

    threads = [threading.Thread(target=deliver) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(1 for r in results if r.order is not None) == 1
    assert reconciler.stock_store.get("vein-001") == 8
    assert len(reconciler.order_store.all()) == 1

def test_stock_never_goes_negative_and_unknown_keys_are_skipped(reconciler, completed_event):
    reconciler.handle_event(completed_event(cart='[["skinlock_ss_black_m",3],["gone-sku",1],["host_001",2]]'))
    assert reconciler.stock_store.get("skinlock_ss_black_m") == 0
    assert reconciler.stock_store.get("gone-sku") is None
    assert len(reconciler.order_store.all()) == 1

def test_line_items_failure_is_dead_lettered_and_processing_continues(completed_event):
    def _fail(sid):
        raise RuntimeError("stripe unavailable")

    rec = SettlementReconciler(
        order_store=InMemoryOrderStore(),
        stock_store=InMemoryStockStore({"vein-001": 10}),
        tracker=SessionTracker(),
        dead_letters=DeadLetterLog(),
        fetch_line_items=_fail,
    )

    result = rec.handle_event(completed_event())

    assert result.order is not None
    assert result.order.line_items == []
    assert rec.stock_store.get("vein-001") == 9
    assert [e["stage"] for e in rec.dead_letters.entries()] == ["line_items"]

def test_order_store_failure_is_dead_lettered(reconciler, completed_event, monkeypatch):
    def _broken_add(record):
        raise OSError("disk full")

    monkeypatch.setattr(reconciler.order_store, "add", _broken_add)
    result = reconciler.handle_event(completed_event())

    assert result.handled and result.order is None
    assert reconciler.dead_letters.entries()[0]["stage"] == "order"

def test_default_fetcher_uses_stripe_line_items(stripe_calls, completed_event):
    rec = SettlementReconciler(
        order_store=InMemoryOrderStore(),
        stock_store=InMemoryStockStore(),
        tracker=SessionTracker(),
        dead_letters=DeadLetterLog(),
    )
    rec.handle_event(completed_event("cs_abc"))
    assert stripe_calls["list_line_items"] == ["cs_abc"]

def test_unknown_event_types_are_ignored(reconciler):
    result = reconciler.handle_event({"id": "evt_x", "type": "customer.created", "data": {"object": {}}})
    assert not result.handled
    assert reconciler.order_store.all() == []

def test_refund_before_success_is_rejected_and_dead_lettered(reconciler):
    result = reconciler.handle_event(_charge("charge.refunded", pi="pi_unknown"))
    assert result.rejected
    assert reconciler.tracker.state("pi_unknown") == SessionState.INITIATED
    assert reconciler.dead_letters.entries()[0]["stage"] == "transition"

def test_charge_lifecycle_is_audited_against_session(reconciler, completed_event):
    reconciler.handle_event(_charge("charge.succeeded"))
    reconciler.handle_event(completed_event())
    refund = reconciler.handle_event(_charge("charge.refunded"))

    assert refund.handled and not refund.rejected
    assert refund.transition.ref == "cs_test_123"
    assert reconciler.tracker.state("cs_test_123") == SessionState.REFUNDED
    assert reconciler.dead_letters.entries() == []

def test_completed_after_refund_is_rejected_without_side_effects(reconciler, completed_event):
    reconciler.handle_event(completed_event())
    reconciler.handle_event(_charge("charge.refunded"))
    reconciler.order_store = InMemoryOrderStore()

    result = reconciler.handle_event(completed_event())

    assert result.rejected
    assert reconciler.order_store.all() == []
    assert reconciler.stock_store.get("vein-001") == 9

def test_completed_event_without_session_id_is_rejected(reconciler):
    result = reconciler.handle_event({"id": "evt_1", "type": "checkout.session.completed", "data": {"object": {}}})
    assert result.rejected
    assert reconciler.dead_letters.entries()[0]["stage"] == "payload"

def test_order_store_failure_then_redelivery_decrements_stock_once(reconciler, completed_event, monkeypatch):
    # Arrange: le premier enregistrement échoue, le suivant passe
    real_add = reconciler.order_store.add
    calls = []

    def _flaky_add(record):
        calls.append(record.session_id)
        if len(calls) == 1:
            raise OSError("disk full")
        return real_add(record)

    monkeypatch.setattr(reconciler.order_store, "add", _flaky_add)
    event = completed_event()

    # Act
    first = reconciler.handle_event(event)
    second = reconciler.handle_event(event)

    # Assert
    assert first.order is None
    assert second.order is not None
    assert reconciler.stock_store.get("vein-001") == 9
    assert len(reconciler.order_store.all()) == 1
    assert [e["stage"] for e in reconciler.dead_letters.entries()] == ["order"]

def test_charge_redelivery_is_flagged_duplicate(reconciler):
    first = reconciler.handle_event(_charge("charge.succeeded"))
    again = reconciler.handle_event(_charge("charge.succeeded"))
    assert not first.duplicate
    assert again.duplicate and again.transition.redelivery

def test_late_charge_succeeded_after_completion_is_not_a_redelivery(reconciler, completed_event):
    reconciler.handle_event(completed_event())
    late = reconciler.handle_event(_charge("charge.succeeded"))
    assert not late.duplicate
    assert late.transition.current == SessionState.COMPLETED

def test_refund_after_restart_is_accepted_for_recorded_order(completed_event):
    orders = InMemoryOrderStore()
    before = SettlementReconciler(
        order_store=orders,
        stock_store=InMemoryStockStore({"vein-001": 10}),
        tracker=SessionTracker(),
        dead_letters=DeadLetterLog(),
        fetch_line_items=lambda sid: LINE_ITEMS,
    )
    before.handle_event(completed_event())

    # Nouveau processus: suivi reconstruit depuis le store de commandes
    tracker = SessionTracker()
    tracker.restore_completed((o.session_id, o.payment_intent) for o in orders.all())
    after = SettlementReconciler(
        order_store=orders,
        stock_store=before.stock_store,
        tracker=tracker,
        dead_letters=DeadLetterLog(),
        fetch_line_items=lambda sid: LINE_ITEMS,
    )

    refund = after.handle_event(_charge("charge.refunded"))

    assert not refund.rejected
    assert tracker.state("cs_test_123") == SessionState.REFUNDED
    assert after.dead_letters.entries() == []

def test_shared_tracker_is_rebuilt_from_recorded_orders(order_store):
    order_store.add(OrderRecord(session_id="cs_old", payment_intent="pi_old"))
    assert stores.get_tracker().state("pi_old") == SessionState.COMPLETED
