"""Unit tests for the adaptive poll controller."""

import random

import pytest

from autoagent.scheduler.adaptive import AdaptivePollController


def test_defaults():
    poller = AdaptivePollController()
    assert poller.current_interval_ms == 15_000
    assert poller.state.max_interval_ms == 300_000
    assert poller.state.activity_level == 0.0


def test_six_empty_polls_back_off_monotonically_within_max():
    poller = AdaptivePollController(base_interval_ms=15_000, max_interval_ms=300_000)
    previous = poller.current_interval_ms
    for _ in range(6):
        interval = poller.record_poll(False)
        assert interval >= previous
        assert interval <= 300_000
        previous = interval
    stats = poller.get_stats()
    assert stats["activity_level"] == 0.0
    assert stats["consecutive_empty_polls"] == 6
    # five 1.5x steps, then the sixth poll adds 1.5x and the >5 doubling
    assert poller.current_interval_ms == min(15_000 * 1.5 ** 6 * 2, 300_000)


def test_empty_poll_doubling_compounds_with_low_activity_backoff():
    poller = AdaptivePollController(base_interval_ms=1000, max_interval_ms=10**9)
    for _ in range(5):
        poller.record_poll(False)
    before = poller.current_interval_ms
    poller.record_poll(False)
    assert poller.current_interval_ms == pytest.approx(before * 1.5 * 2)


def test_activity_snaps_back_to_base_after_level_exceeds_threshold():
    poller = AdaptivePollController(base_interval_ms=15_000, max_interval_ms=300_000)
    for _ in range(20):
        poller.record_poll(False)
    assert poller.current_interval_ms == 300_000

    poller.record_poll(True)
    assert poller.state.consecutive_empty_polls == 0
    assert poller.state.last_activity_at is not None
    for _ in range(3):
        poller.record_poll(True)
    assert poller.state.activity_level > 0.7
    assert poller.current_interval_ms == 15_000


def test_hysteresis_band_holds_interval():
    poller = AdaptivePollController(base_interval_ms=15_000, max_interval_ms=300_000)
    poller.state.current_interval_ms = 40_000

    poller.state.activity_level = 0.4
    poller.record_poll(True)
    assert poller.current_interval_ms == 40_000

    poller.state.activity_level = 0.55
    poller.record_poll(False)
    assert poller.current_interval_ms == 40_000

    poller.state.activity_level = 0.35
    poller.record_poll(False)
    assert poller.current_interval_ms == 60_000

    poller.state.activity_level = 0.6
    poller.record_poll(True)
    assert poller.current_interval_ms == 15_000


def test_activity_level_is_clamped():
    poller = AdaptivePollController()
    for _ in range(10):
        poller.record_poll(True)
    assert poller.state.activity_level == 1.0
    assert poller.state.message_count == 10
    for _ in range(20):
        poller.record_poll(False)
    assert poller.state.activity_level == 0.0


def test_interval_never_leaves_bounds_for_random_signals():
    rng = random.Random(7)
    poller = AdaptivePollController(base_interval_ms=15_000, max_interval_ms=300_000)
    for _ in range(2000):
        poller.record_poll(rng.random() < 0.3)
        assert 15_000 <= poller.current_interval_ms <= 300_000


@pytest.mark.parametrize("base,maximum", [(0, 100), (-5, 100), (500, 100)])
def test_invalid_bounds_rejected(base, maximum):
    with pytest.raises(ValueError):
        AdaptivePollController(base_interval_ms=base, max_interval_ms=maximum)
