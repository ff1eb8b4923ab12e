import pytest

from checkout_backend.settlement.states import IllegalTransition, SessionState, SessionTracker, next_state

S = SessionState

@pytest.mark.parametrize("current, target, expected", [
    (S.INITIATED, S.COMPLETED, S.COMPLETED),
    (S.INITIATED, S.CHARGE_SUCCEEDED, S.CHARGE_SUCCEEDED),
    (S.CHARGE_FAILED, S.CHARGE_SUCCEEDED, S.CHARGE_SUCCEEDED),
    (S.CHARGE_SUCCEEDED, S.COMPLETED, S.COMPLETED),
    (S.COMPLETED, S.CHARGE_SUCCEEDED, S.COMPLETED),
    (S.COMPLETED, S.REFUNDED, S.REFUNDED),
    (S.COMPLETED, S.COMPLETED, S.COMPLETED),
    (S.INITIATED, S.REFUNDED, None),
    (S.CHARGE_FAILED, S.REFUNDED, None),
    (S.CHARGE_SUCCEEDED, S.REFUNDED, None),
    (S.REFUNDED, S.COMPLETED, None),
    (S.COMPLETED, S.CHARGE_FAILED, None),
])
def test_next_state(current, target, expected):
    assert next_state(current, target) == expected

def test_refund_before_any_success_is_illegal():
    tracker = SessionTracker()
    with pytest.raises(IllegalTransition) as exc:
        tracker.apply("pi_1", S.REFUNDED)
    assert exc.value.current == S.INITIATED
    assert tracker.state("pi_1") == S.INITIATED

def test_redelivery_is_flagged():
    tracker = SessionTracker()
    first = tracker.apply("cs_1", S.COMPLETED)
    again = tracker.apply("cs_1", S.COMPLETED)
    assert not first.redelivery
    assert again.redelivery

def test_charge_events_join_session_through_payment_intent():
    tracker = SessionTracker()
    # charge.succeeded arrive avant checkout.session.completed
    tracker.apply("pi_1", S.CHARGE_SUCCEEDED)
    tracker.link("pi_1", "cs_1")
    assert tracker.state("cs_1") == S.CHARGE_SUCCEEDED

    tracker.apply("cs_1", S.COMPLETED)
    refund = tracker.apply("pi_1", S.REFUNDED)

    assert refund.ref == "cs_1"
    assert tracker.state("cs_1") == S.REFUNDED

def test_link_ignores_missing_payment_intent():
    tracker = SessionTracker()
    tracker.link(None, "cs_1")
    tracker.link("cs_1", "cs_1")
    assert tracker.state("cs_1") == S.INITIATED

def test_late_charge_success_keeps_completed_and_is_not_redelivery():
    tracker = SessionTracker()
    tracker.apply("cs_1", S.COMPLETED)
    late = tracker.apply("cs_1", S.CHARGE_SUCCEEDED)
    assert late.current == S.COMPLETED
    assert not late.redelivery

def test_restore_completed_links_payment_intent():
    tracker = SessionTracker()
    restored = tracker.restore_completed([("cs_1", "pi_1"), ("cs_2", None), ("", "pi_x")])

    assert restored == 2
    assert tracker.state("cs_1") == S.COMPLETED
    assert tracker.state("cs_2") == S.COMPLETED
    assert tracker.apply("pi_1", S.REFUNDED).ref == "cs_1"
