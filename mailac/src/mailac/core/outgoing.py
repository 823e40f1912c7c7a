"""Outgoing message composition.

What:
  Attach the sender's ``Autocrypt`` header, decide whether the message is
  encrypted, and relay the recipients' keys as gossip inside the protected
  part when encrypting to a group.

Why:
  The recommendation is only useful if it drives the client consistently:
  encrypt automatically when both sides asked for it, otherwise let the user
  see whether encryption is available or discouraged. Gossip bootstraps the
  other recipients, so it is sent only where it cannot leak (inside the
  encrypted payload) and only when there is a group to bootstrap.

How:
  :func:`prepare_outgoing` works through the
  :class:`~mailac.host.base.MailHost` interface and returns a
  :class:`ComposeDecision` summarising what it did.

Interfaces:
  :class:`ComposeDecision`, :func:`gossip_headers`, :func:`prepare_outgoing`,
  :func:`prepare_outgoing_with_config`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

from ..host.base import MailHost
from ..keys import KeyBackend
from ..utils.logging import get_logger
from .canonical import canonicalize, canonicalize_all
from .gossip import GOSSIP_HEADER
from .header import MAX_HEADER_BYTES, WRAP_COLUMN, HeaderSource, generate_header
from .peers import PeerStore
from .recommend import STALENESS_DAYS, Recommendation, single_recommendation, aggregate
from .update import AUTOCRYPT_HEADER

if TYPE_CHECKING:  # pragma: no cover
    from ..config.schema import RuntimeConfig

_LOGGER = get_logger("mailac.outgoing")


@dataclass
class ComposeDecision:
    """Result of :func:`prepare_outgoing`."""

    recommendation: Recommendation
    per_recipient: Dict[str, Recommendation] = field(default_factory=dict)
    encrypted: bool = False
    autocrypt_header: Optional[str] = None
    gossip_sent: List[str] = field(default_factory=list)


def gossip_headers(
    store: PeerStore,
    recipients: Iterable[str],
    *,
    max_bytes: int = MAX_HEADER_BYTES,
    wrap_column: int = WRAP_COLUMN,
) -> Dict[str, str]:
    """Gossip header values for every recipient with a usable key."""

    values: Dict[str, str] = {}
    for address in recipients:
        record = store.lookup_peer(address)
        if record is None:
            continue
        value = generate_header(
            HeaderSource.from_peer(record),
            suppress_preference=True,
            max_bytes=max_bytes,
            wrap_column=wrap_column,
        )
        if value is not None:
            values[record.address] = value
    return values


def prepare_outgoing(
    store: PeerStore,
    host: MailHost,
    backend: KeyBackend,
    sender: str,
    recipients: Iterable[str],
    *,
    encrypt_requested: bool = False,
    gossip_enabled: bool = True,
    now: Optional[datetime] = None,
    staleness_days: int = STALENESS_DAYS,
    max_bytes: int = MAX_HEADER_BYTES,
    wrap_column: int = WRAP_COLUMN,
) -> ComposeDecision:
    """Decorate and classify the outgoing message behind ``host``.

    ``encrypt_requested`` reflects an explicit user choice; it turns an
    ``AVAILABLE`` or ``DISCOURAGE`` verdict into encryption but can never
    override ``DISABLED``.

    Raises:
      KeyBackendError: If the sender account key cannot be exported.
    """

    sender = canonicalize(sender)
    recipients = canonicalize_all(recipients)
    per_recipient = {
        address: single_recommendation(
            store, sender, address, now=now, staleness_days=staleness_days
        )
        for address in recipients
    }
    decision = ComposeDecision(
        recommendation=aggregate(per_recipient.values()),
        per_recipient=per_recipient,
    )

    host.remove_header(AUTOCRYPT_HEADER)
    account = store.lookup_account(sender)
    if account is not None and not account.disabled:
        decision.autocrypt_header = generate_header(
            HeaderSource.from_account(account, backend),
            max_bytes=max_bytes,
            wrap_column=wrap_column,
        )
        if decision.autocrypt_header is not None:
            host.add_header(AUTOCRYPT_HEADER, decision.autocrypt_header)

    if decision.recommendation is Recommendation.ENCRYPT or (
        encrypt_requested and decision.recommendation is not Recommendation.DISABLED
    ):
        decision.encrypted = True
        host.sign_and_encrypt()
        if gossip_enabled and len(recipients) > 1:
            values = gossip_headers(
                store, recipients, max_bytes=max_bytes, wrap_column=wrap_column
            )
            if values:
                host.secure_attach(
                    "".join(f"{GOSSIP_HEADER}: {value}\n" for value in values.values())
                )
                decision.gossip_sent = list(values)
    else:
        host.mark_recommendation(decision.recommendation)

    _LOGGER.debug(
        "Prepared outgoing message",
        sender=sender,
        recommendation=decision.recommendation.value,
        encrypted=decision.encrypted,
        gossip=len(decision.gossip_sent),
    )
    return decision


def prepare_outgoing_with_config(
    store: PeerStore,
    host: MailHost,
    backend: KeyBackend,
    sender: str,
    recipients: Iterable[str],
    runtime: "RuntimeConfig",
    *,
    encrypt_requested: bool = False,
    now: Optional[datetime] = None,
) -> ComposeDecision:
    """Run :func:`prepare_outgoing` with the limits and switches of ``runtime``."""

    return prepare_outgoing(
        store,
        host,
        backend,
        sender,
        recipients,
        encrypt_requested=encrypt_requested,
        gossip_enabled=runtime.gossip.send,
        now=now,
        staleness_days=runtime.recommendation.staleness_days,
        max_bytes=runtime.headers.max_bytes,
        wrap_column=runtime.headers.wrap_column,
    )
