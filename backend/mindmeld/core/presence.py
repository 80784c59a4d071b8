"""Presence Classification: online/away/offline rendering from heartbeat state.

Invariants:
    - PURE function of (status, last_seen, now): nothing derived is stored
    - offline -> RED, away -> YELLOW, always
    - online -> GREEN within the freshness window, YELLOW once stale

Design Decisions:
    - Naive datetimes are read as UTC: SQLite drops tzinfo on round-trip
"""

from datetime import datetime, timedelta, timezone

from mindmeld.core.domain_types import PlayerStatus, PresenceColor


FRESHNESS_WINDOW = timedelta(seconds=20)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def classify_presence(
    status: PlayerStatus | str,
    last_seen: datetime,
    now: datetime | None = None,
    window: timedelta = FRESHNESS_WINDOW,
) -> PresenceColor:
    status = PlayerStatus(status)
    if status == PlayerStatus.OFFLINE:
        return PresenceColor.RED
    if status == PlayerStatus.AWAY:
        return PresenceColor.YELLOW

    now = _as_utc(now or datetime.now(timezone.utc))
    if now - _as_utc(last_seen) < window:
        return PresenceColor.GREEN
    return PresenceColor.YELLOW
