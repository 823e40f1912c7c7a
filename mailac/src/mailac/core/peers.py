"""In-memory peer and account table with monotonic merge rules.

What:
  Hold the :class:`Account` list and the :class:`PeerRecord` table keyed by
  canonical address, and expose lookup/upsert helpers used by the message
  update state machine, the gossip processor and the recommendation engine.

Why:
  The trust decisions of Autocrypt depend on a handful of ordering rules
  (timestamps only move forward, ``last_seen`` only grows, gossip fields age
  independently). Enforcing them in one merge routine keeps every writer
  honest, no matter how it computed the candidate record.

How:
  ``PeerStore`` is a plain object passed by reference. ``upsert_peer`` merges a
  candidate into the stored record field group by field group:

  - ``last_seen`` becomes the maximum of both sides.
  - The direct group (``timestamp``, ``public_key``, ``preference``,
    ``deactivated``) is taken from the candidate unless the stored
    ``timestamp`` is newer than the candidate's (or the candidate carries none
    while the stored record does).
  - The gossip group (``gossip_timestamp``, ``gossip_key``) is taken from the
    candidate only when its ``gossip_timestamp`` is strictly newer.

Interfaces:
  :class:`Preference`, :class:`Account`, :class:`PeerRecord`,
  :class:`PeerStore`.

Invariants:
  - At most one record per canonical address.
  - Records are never removed implicitly; :meth:`PeerStore.forget_peer` is an
    explicit operator action.
  - The store performs no I/O; see :mod:`mailac.config.state_store`.
"""
from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from .canonical import canonicalize
from .errors import AccountExistsError


class Preference(str, enum.Enum):
    """Encryption preference announced by a peer or configured for an account."""

    MUTUAL = "mutual"
    NOPREFERENCE = "nopreference"
    NONE = "none"
    DISABLED = "disabled"


PEER_PREFERENCES = (Preference.MUTUAL, Preference.NOPREFERENCE, Preference.NONE)


@dataclass
class Account:
    """A locally controlled identity.

    Attributes:
      address: Canonical address of the account.
      key_fingerprint: Handle into the key backend.
      preference: Announced preference; ``DISABLED`` removes the account from
        the protocol entirely.
    """

    address: str
    key_fingerprint: str
    preference: Preference = Preference.NOPREFERENCE

    def __post_init__(self) -> None:
        self.address = canonicalize(self.address)
        self.preference = Preference(self.preference)

    @property
    def disabled(self) -> bool:
        return self.preference is Preference.DISABLED


@dataclass
class PeerRecord:
    """Observed Autocrypt state of a remote correspondent.

    A record created from gossip alone only carries the gossip fields; its
    ``public_key``/``preference`` are unknown rather than deactivated.
    """

    address: str
    last_seen: Optional[datetime] = None
    timestamp: Optional[datetime] = None
    public_key: Optional[bytes] = None
    preference: Optional[Preference] = None
    gossip_timestamp: Optional[datetime] = None
    gossip_key: Optional[bytes] = None
    deactivated: bool = False

    def __post_init__(self) -> None:
        self.address = canonicalize(self.address)
        if self.preference is not None:
            self.preference = Preference(self.preference)
            if self.preference not in PEER_PREFERENCES:
                raise ValueError(f"invalid peer preference: {self.preference.value}")

    @property
    def directly_observed(self) -> bool:
        """Whether a message from this peer was ever processed."""

        return self.last_seen is not None

    def copy(self) -> "PeerRecord":
        """Shallow copy; key material is immutable bytes."""

        return copy.copy(self)


def _max_ts(left: Optional[datetime], right: Optional[datetime]) -> Optional[datetime]:
    if left is None:
        return right
    if right is None:
        return left
    return max(left, right)


class PeerStore:
    """Table of peers and accounts for one mail profile.

    Callers must serialise access; the store is single-writer by contract.
    """

    def __init__(
        self,
        accounts: Optional[List[Account]] = None,
        peers: Optional[List[PeerRecord]] = None,
    ):
        self._accounts: Dict[str, Account] = {}
        self._peers: Dict[str, PeerRecord] = {}
        for account in accounts or []:
            self.add_account(account)
        for record in peers or []:
            self.upsert_peer(record)

    # Accounts -------------------------------------------------------------

    def lookup_account(self, address: str) -> Optional[Account]:
        """Account registered for ``address``, if any."""

        return self._accounts.get(canonicalize(address))

    def add_account(self, account: Account, *, replace: bool = False) -> Account:
        """Register ``account``; refuses to overwrite unless ``replace`` is set."""

        if account.address in self._accounts and not replace:
            raise AccountExistsError(f"account already exists: {account.address}")
        self._accounts[account.address] = account
        return account

    def accounts(self) -> List[Account]:
        """All accounts sorted by address."""

        return [self._accounts[key] for key in sorted(self._accounts)]

    def is_own_address(self, address: str) -> bool:
        """Whether ``address`` belongs to an enabled local account."""

        account = self.lookup_account(address)
        return account is not None and not account.disabled

    # Peers ----------------------------------------------------------------

    def lookup_peer(self, address: str) -> Optional[PeerRecord]:
        """Return a detached copy of the stored record, or ``None``."""

        record = self._peers.get(canonicalize(address))
        return record.copy() if record is not None else None

    def upsert_peer(self, candidate: PeerRecord) -> PeerRecord:
        """Insert ``candidate`` or merge it into the stored record.

        Returns a copy of the record as stored after the merge.
        """

        existing = self._peers.get(candidate.address)
        if existing is None:
            stored = candidate.copy()
            self._peers[stored.address] = stored
            return stored.copy()

        existing.last_seen = _max_ts(existing.last_seen, candidate.last_seen)

        stale = existing.timestamp is not None and (
            candidate.timestamp is None or candidate.timestamp < existing.timestamp
        )
        if not stale:
            existing.timestamp = candidate.timestamp
            existing.public_key = candidate.public_key
            existing.preference = candidate.preference
            existing.deactivated = candidate.deactivated

        if candidate.gossip_timestamp is not None and (
            existing.gossip_timestamp is None
            or candidate.gossip_timestamp > existing.gossip_timestamp
        ):
            existing.gossip_timestamp = candidate.gossip_timestamp
            existing.gossip_key = candidate.gossip_key
        return existing.copy()

    def forget_peer(self, address: str) -> bool:
        """Drop the record for ``address``; returns whether one existed."""

        return self._peers.pop(canonicalize(address), None) is not None

    def peers(self) -> Iterator[PeerRecord]:
        """Detached copies of every record, sorted by address."""

        for key in sorted(self._peers):
            yield self._peers[key].copy()

    def __len__(self) -> int:
        return len(self._peers)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and canonicalize(address) in self._peers
