"""Presence Classification: tests for the green/yellow/red badge."""

from datetime import datetime, timedelta, timezone

from mindmeld.core.domain_types import PresenceColor
from mindmeld.core.presence import FRESHNESS_WINDOW, classify_presence

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def test_online_and_fresh_is_green():
    assert classify_presence("online", NOW - timedelta(seconds=5), NOW) == PresenceColor.GREEN


def test_online_but_stale_is_yellow():
    last_seen = NOW - FRESHNESS_WINDOW - timedelta(seconds=1)
    assert classify_presence("online", last_seen, NOW) == PresenceColor.YELLOW


def test_exactly_at_window_is_stale():
    assert classify_presence("online", NOW - FRESHNESS_WINDOW, NOW) == PresenceColor.YELLOW


def test_away_is_yellow_even_when_fresh():
    assert classify_presence("away", NOW, NOW) == PresenceColor.YELLOW


def test_offline_is_red_even_when_fresh():
    assert classify_presence("offline", NOW, NOW) == PresenceColor.RED


def test_naive_last_seen_read_as_utc():
    naive = (NOW - timedelta(seconds=3)).replace(tzinfo=None)
    assert classify_presence("online", naive, NOW) == PresenceColor.GREEN


def test_custom_window():
    last_seen = NOW - timedelta(seconds=30)
    assert classify_presence(
        "online", last_seen, NOW, window=timedelta(seconds=60),
    ) == PresenceColor.GREEN
