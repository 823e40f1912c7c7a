"""Per-message update of the peer table.

What:
  Run the Autocrypt update procedure for one inbound message: resolve the
  sender, parse its ``Autocrypt`` header, fold gossip, and update the sender's
  record under the monotonicity rules of :mod:`mailac.core.peers`.

Why:
  This is where attacker-controlled headers meet stored trust state. The
  order of checks matters: a header may only speak for the ``From`` address,
  an old message must never roll a key back, and an absent header suspends
  key use without forgetting the key.

How:
  :func:`process_incoming` works through the message via the
  :class:`~mailac.host.base.MailHost` interface and returns an
  :class:`UpdateOutcome` describing what happened, which the CLI and tests use
  for reporting.

Interfaces:
  :class:`UpdateOutcome`, :func:`message_date`, :func:`select_header`,
  :func:`process_incoming`.

Invariants:
  - ``last_seen`` always advances to the max of itself and the message date.
  - A stale message (date before the stored ``timestamp``) never changes
    ``public_key``, ``preference`` or ``deactivated``.
  - A discarded header (malformed, several candidates, foreign ``addr``)
    means no direct update; only a message without any ``Autocrypt`` header
    deactivates the peer.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import getaddresses, parsedate_to_datetime
from typing import List, Optional, Tuple

from ..host.base import MailHost
from ..utils.logging import get_logger
from .canonical import canonicalize
from .errors import ParseError
from .gossip import message_recipients, process_gossip
from .header import ParsedHeader, parse_header
from .peers import PeerRecord, PeerStore, Preference


AUTOCRYPT_HEADER = "Autocrypt"
IGNORED_CONTENT_TYPES = ("multipart/report",)

_LOGGER = get_logger("mailac.update")


class UpdateAction(str, enum.Enum):
    """What the direct update did to the sender record."""

    IGNORED = "ignored"
    UPDATED = "updated"
    DEACTIVATED = "deactivated"
    STALE = "stale"
    DISCARDED = "discarded"


@dataclass
class UpdateOutcome:
    """Summary of one :func:`process_incoming` call."""

    sender: Optional[str]
    action: UpdateAction
    created: bool = False
    gossip: List[str] = field(default_factory=list)
    reason: Optional[str] = None


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def message_date(value: Optional[str], now: datetime) -> datetime:
    """Effective date of a message.

    A missing or unparsable ``Date`` and dates in the future resolve to
    ``now``.
    """

    if not value:
        return now
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return now
    if parsed is None:
        return now
    return min(_as_utc(parsed), now)


def select_header(values: List[str], sender: str) -> Tuple[Optional[ParsedHeader], Optional[str]]:
    """Pick the usable ``Autocrypt`` header among ``values``.

    Returns:
      ``(header, None)`` when exactly one valid header speaks for ``sender``,
      otherwise ``(None, reason)``.
    """

    candidates: List[ParsedHeader] = []
    reasons: List[str] = []
    for value in values:
        try:
            parsed = parse_header(value)
        except ParseError as exc:
            reasons.append(str(exc))
            continue
        if parsed.address != sender:
            reasons.append(f"addr {parsed.address} does not match sender")
            continue
        candidates.append(parsed)
    if len(candidates) == 1:
        return candidates[0], None
    if len(candidates) > 1:
        return None, "multiple Autocrypt headers for sender"
    return None, "; ".join(reasons) or "no usable Autocrypt header"


def process_incoming(
    store: PeerStore,
    host: MailHost,
    *,
    gossip_enabled: bool = True,
    now: Optional[datetime] = None,
) -> UpdateOutcome:
    """Apply one inbound message to ``store``."""

    now = _as_utc(now or datetime.now(timezone.utc))

    content_type = (host.get_header("Content-Type") or "").split(";", 1)[0].strip().lower()
    if content_type in IGNORED_CONTENT_TYPES:
        return UpdateOutcome(sender=None, action=UpdateAction.IGNORED, reason=content_type)

    from_addresses = [addr for _, addr in getaddresses(host.get_headers("From")) if addr]
    if len(from_addresses) != 1:
        return UpdateOutcome(
            sender=None,
            action=UpdateAction.IGNORED,
            reason=f"expected one From address, found {len(from_addresses)}",
        )
    sender = canonicalize(from_addresses[0])
    date = message_date(host.get_header("Date"), now)

    header_values = host.get_headers(AUTOCRYPT_HEADER)
    header, reason = select_header(header_values, sender) if header_values else (None, None)

    gossip: List[str] = []
    if gossip_enabled:
        recipients = [addr for addr in message_recipients(host) if addr != sender]
        gossip = process_gossip(store, host, date, recipients=recipients)

    if store.is_own_address(sender):
        return UpdateOutcome(
            sender=sender,
            action=UpdateAction.IGNORED,
            gossip=gossip,
            reason="message from own account",
        )

    record = store.lookup_peer(sender)
    created = record is None
    if record is None:
        record = PeerRecord(address=sender)
    record.last_seen = date if record.last_seen is None else max(record.last_seen, date)

    if record.timestamp is not None and date < record.timestamp:
        action = UpdateAction.STALE
    elif header is not None:
        record.preference = header.preference or Preference.NONE
        record.public_key = header.keydata
        record.timestamp = date
        record.deactivated = False
        action = UpdateAction.UPDATED
    elif header_values:
        action = UpdateAction.DISCARDED
        _LOGGER.info("Discarding Autocrypt header", address=sender, reason=reason)
    else:
        record.deactivated = True
        action = UpdateAction.DEACTIVATED

    store.upsert_peer(record)
    _LOGGER.debug("Processed message", address=sender, action=action.value, created=created)
    return UpdateOutcome(
        sender=sender,
        action=action,
        created=created,
        gossip=gossip,
        reason=reason,
    )
