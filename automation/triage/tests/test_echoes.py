from __future__ import annotations

from automation.triage.echoes import PendingEchoes


def test_consume_only_after_mark() -> None:
    pending = PendingEchoes()

    assert not pending.consume_if_pending(42, "P-high")
    pending.mark_pending(42, "P-high")
    assert pending.consume_if_pending(42, "P-high")
    assert not pending.consume_if_pending(42, "P-high")


def test_keys_are_issue_and_label() -> None:
    pending = PendingEchoes()
    pending.mark_pending(42, "P-high")

    assert not pending.consume_if_pending(43, "P-high")
    assert not pending.consume_if_pending(42, "P-low")
    # "4" + "2P-high" must not collide with "42" + "P-high"
    assert not pending.consume_if_pending(4, "2P-high")
    assert (42, "P-high") in pending


def test_repeated_mark_is_consumed_once() -> None:
    pending = PendingEchoes()
    pending.mark_pending(7, "P-low")
    pending.mark_pending(7, "P-low")

    assert len(pending) == 1
    assert pending.consume_if_pending(7, "P-low")
    assert not pending.consume_if_pending(7, "P-low")


def test_unconsumed_keys_expire_after_ttl() -> None:
    now = [1000.0]
    pending = PendingEchoes(ttl_sec=60, clock=lambda: now[0])
    pending.mark_pending(1, "P-high")
    pending.mark_pending(2, "P-low")

    now[0] += 30
    assert pending.consume_if_pending(1, "P-high")

    now[0] += 31
    assert not pending.consume_if_pending(2, "P-low")
    assert len(pending) == 0


def test_zero_ttl_never_expires() -> None:
    now = [0.0]
    pending = PendingEchoes(ttl_sec=0, clock=lambda: now[0])
    pending.mark_pending(1, "I-nominated")

    now[0] += 10**9
    assert pending.consume_if_pending(1, "I-nominated")
