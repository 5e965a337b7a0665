"""Tests for the rolling request/token window and daily counter."""

# Standard library
from datetime import datetime, timedelta

# Third-party
import pytest

# Local application
from conftest import START_TIME
from page_translation.rate_window import RateWindow, day_key_for, seconds_until_next_day
from page_translation.schemas import SchedulerConfig


def _window(**overrides) -> RateWindow:
    return RateWindow(SchedulerConfig(**overrides), now=START_TIME)


def test_empty_window_allows_immediate_dispatch():
    window = _window()
    assert window.can_dispatch(START_TIME) is True
    assert window.compute_wait(START_TIME) == 0.0


def test_ideal_interval_spaces_requests_evenly():
    window = _window(rpm_limit=15)
    window.record_request(START_TIME)

    assert window.ideal_interval == 4.0
    assert window.compute_wait(START_TIME + 1) == pytest.approx(3.0)
    assert window.compute_wait(START_TIME + 4) == 0.0


def test_full_window_waits_for_oldest_to_expire():
    window = _window(rpm_limit=2)
    window.record_request(START_TIME)
    window.record_request(START_TIME + 1)

    assert window.can_dispatch(START_TIME + 40) is False
    assert window.compute_wait(START_TIME + 40) == pytest.approx(20.0)


def test_prune_drops_entries_at_the_boundary():
    window = _window()
    window.record_request(START_TIME, tokens=100)

    window.prune(START_TIME + 60)

    assert len(window.request_timestamps) == 0
    assert window.tokens_in_window() == 0
    # Daily usage survives window pruning
    assert window.daily.requests == 1
    assert window.daily.tokens == 100


def test_prune_is_idempotent():
    window = _window()
    window.record_request(START_TIME, tokens=5)
    window.record_request(START_TIME + 30, tokens=7)

    window.prune(START_TIME + 70)
    once = (list(window.request_timestamps), list(window.token_records))
    window.prune(START_TIME + 70)

    assert (list(window.request_timestamps), list(window.token_records)) == once
    assert once[0] == [START_TIME + 30]


def test_failed_attempt_counts_request_but_no_tokens():
    window = _window()
    window.record_request(START_TIME, tokens=0)

    assert len(window.request_timestamps) == 1
    assert window.tokens_in_window() == 0
    assert window.daily.requests == 1


def test_tpm_wait_until_enough_tokens_age_out():
    window = _window(rpm_limit=60, tpm_limit=100)
    window.record_request(START_TIME, tokens=40)
    window.record_request(START_TIME + 10, tokens=40)
    window.record_request(START_TIME + 20, tokens=40)

    # 120 tokens; dropping the first record brings the window under 100
    assert window.can_dispatch(START_TIME + 21) is False
    assert window.compute_wait(START_TIME + 21) == pytest.approx(39.0)


def test_daily_quota_waits_until_midnight_and_resets():
    window = _window(rpm_limit=60, rpd_limit=1)
    window.record_request(START_TIME)

    wait = window.compute_wait(START_TIME + 120)
    assert wait == pytest.approx(seconds_until_next_day(START_TIME + 120))

    window.prune(START_TIME + 120 + wait)
    assert window.daily.requests == 0
    assert window.can_dispatch(START_TIME + 120 + wait) is True


def test_day_key_uses_local_calendar_date():
    assert day_key_for(START_TIME) == datetime.fromtimestamp(START_TIME).date().isoformat()


def test_seconds_until_next_day_from_noon():
    next_day = datetime.fromtimestamp(START_TIME).date() + timedelta(days=1)
    midnight = datetime.combine(next_day, datetime.min.time()).timestamp()
    assert seconds_until_next_day(START_TIME) == pytest.approx(midnight - START_TIME)


def test_snapshot_daily_is_a_copy():
    window = _window()
    snapshot = window.snapshot_daily()
    window.record_request(START_TIME, tokens=3)

    assert snapshot.requests == 0
    assert window.snapshot_daily().requests == 1
