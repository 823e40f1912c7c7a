"""Encryption recommendation for outgoing mail.

What:
  Compute a per-recipient verdict from the peer table and fold a list of
  verdicts into the recommendation for the whole message.

Why:
  Autocrypt is opportunistic: encryption is only proposed when both sides
  asked for it, and the UI is warned when a recipient looks unreliable
  (preference mismatch, stale observations). Multi-recipient mail can only
  be encrypted if every recipient can read it, so the aggregate is a strict
  priority fold rather than a majority vote.

How:
  :func:`single_recommendation` applies the ordered rules (no key ->
  ``DISABLED``; both mutual -> ``ENCRYPT``; peer mutual only, deactivated or
  stale -> ``DISCOURAGE``; otherwise ``AVAILABLE``). :func:`aggregate`
  implements ``DISABLED > DISCOURAGE > all-ENCRYPT > AVAILABLE``.

Interfaces:
  :class:`Recommendation`, :data:`STALENESS_DAYS`,
  :func:`single_recommendation`, :func:`aggregate`, :func:`recommendation`.
"""
from __future__ import annotations

import enum
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from .peers import PeerStore, Preference


STALENESS_DAYS = 35


class Recommendation(str, enum.Enum):
    """Verdict driving the compose window."""

    DISABLED = "disabled"
    ENCRYPT = "encrypt"
    DISCOURAGE = "discourage"
    AVAILABLE = "available"


def _days_since(moment: Optional[datetime], now: datetime) -> float:
    if moment is None:
        return float("inf")
    return (now - moment) / timedelta(days=1)


def single_recommendation(
    store: PeerStore,
    sender: str,
    recipient: str,
    *,
    now: Optional[datetime] = None,
    staleness_days: int = STALENESS_DAYS,
) -> Recommendation:
    """Return the recommendation for mailing ``recipient`` as ``sender``."""

    peer = store.lookup_peer(recipient)
    if peer is None or peer.public_key is None:
        return Recommendation.DISABLED

    account = store.lookup_account(sender)
    account_mutual = account is not None and account.preference is Preference.MUTUAL
    peer_mutual = peer.preference is Preference.MUTUAL
    if peer_mutual and account_mutual and not peer.deactivated:
        return Recommendation.ENCRYPT

    now = now or datetime.now(timezone.utc)
    if peer_mutual or peer.deactivated or _days_since(peer.last_seen, now) > staleness_days:
        return Recommendation.DISCOURAGE
    return Recommendation.AVAILABLE


def aggregate(results: Iterable[Recommendation]) -> Recommendation:
    """Fold per-recipient verdicts; an empty list is ``DISABLED``."""

    results = list(results)
    if not results or Recommendation.DISABLED in results:
        return Recommendation.DISABLED
    if Recommendation.DISCOURAGE in results:
        return Recommendation.DISCOURAGE
    if all(result is Recommendation.ENCRYPT for result in results):
        return Recommendation.ENCRYPT
    return Recommendation.AVAILABLE


def recommendation(
    store: PeerStore,
    sender: str,
    recipients: Iterable[str],
    *,
    now: Optional[datetime] = None,
    staleness_days: int = STALENESS_DAYS,
) -> Recommendation:
    """Aggregate recommendation for a message to ``recipients``."""

    now = now or datetime.now(timezone.utc)
    return aggregate(
        single_recommendation(store, sender, recipient, now=now, staleness_days=staleness_days)
        for recipient in recipients
    )
