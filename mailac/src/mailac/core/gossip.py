"""Gossip processing for inbound messages.

What:
  Extract ``Autocrypt-Gossip`` headers from a message's root part and fold
  the keys they carry into the peer table.

Why:
  Gossip lets a sender relay the keys of the other recipients so a group can
  start encrypting without everyone first mailing everyone else. It is best
  effort by nature: a part the client cannot hand over, or a malformed gossip
  entry, must never interrupt mail processing or surface to the user.

How:
  Read the root part header block through :func:`read_header_block`, parse
  every ``Autocrypt-Gossip`` value with the header codec and keep entries
  addressed to one of the message recipients. Existing records only get their
  gossip fields refreshed when the message is newer than the last gossip
  seen; unknown addresses get a gossip-only stub record.

Interfaces:
  :data:`GOSSIP_HEADER`, :func:`message_recipients`, :func:`extract_gossip`,
  :func:`process_gossip`.

Invariants:
  - Entries naming one of the store's own accounts are skipped.
  - Only ``gossip_timestamp``/``gossip_key`` are written; the direct field
    group of existing records is left as stored.
  - An unsupported root part aborts the step without raising.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from ..host.base import MailHost, PartRef
from ..utils.logging import get_logger
from ..utils.mime import read_header_block
from .canonical import canonicalize_all
from .errors import ParseError, UnsupportedPartError
from .header import ParsedHeader, parse_header
from .peers import PeerRecord, PeerStore


GOSSIP_HEADER = "Autocrypt-Gossip"
RECIPIENT_HEADERS = ("To", "Cc")

_LOGGER = get_logger("mailac.gossip")


def message_recipients(host: MailHost) -> List[str]:
    """Canonical addresses listed in ``To`` and ``Cc``."""

    values: List[str] = []
    for name in RECIPIENT_HEADERS:
        values.extend(host.get_headers(name))
    return canonicalize_all(values)


def extract_gossip(part: PartRef) -> List[ParsedHeader]:
    """Parse every gossip header found in the header block of ``part``.

    Malformed entries are skipped individually.

    Raises:
      UnsupportedPartError: If ``part`` cannot be read.
    """

    headers = read_header_block(part)
    entries: List[ParsedHeader] = []
    for value in headers.get_all(GOSSIP_HEADER) or []:
        try:
            entries.append(parse_header(str(value)))
        except ParseError as exc:
            _LOGGER.info("Skipping malformed gossip header", reason=str(exc))
    return entries


def process_gossip(
    store: PeerStore,
    host: MailHost,
    message_date: datetime,
    *,
    recipients: Optional[List[str]] = None,
) -> List[str]:
    """Fold the gossip of the message behind ``host`` into ``store``.

    Returns:
      Canonical addresses whose gossip fields were written.
    """

    part = host.get_part(0)
    try:
        if part is None:
            raise UnsupportedPartError("message has no root part")
        entries = extract_gossip(part)
    except UnsupportedPartError as exc:
        _LOGGER.info("Skipping gossip step", reason=str(exc))
        return []

    if recipients is None:
        recipients = message_recipients(host)
    updated: List[str] = []
    for entry in entries:
        if entry.address not in recipients:
            _LOGGER.info("Ignoring gossip for non-recipient", address=entry.address)
            continue
        if store.is_own_address(entry.address):
            _LOGGER.debug("Ignoring gossip for own account", address=entry.address)
            continue
        record = store.lookup_peer(entry.address)
        if record is None:
            record = PeerRecord(address=entry.address)
        elif record.gossip_timestamp is not None and record.gossip_timestamp >= message_date:
            continue
        record.gossip_timestamp = message_date
        record.gossip_key = entry.keydata
        store.upsert_peer(record)
        updated.append(entry.address)
    return updated
