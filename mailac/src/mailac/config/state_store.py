"""Versioned persistence of the account and peer record set.

What:
  Load a :class:`~mailac.core.peers.PeerStore` from ``state.yaml`` at startup
  and write it back on demand, migrating older document versions on the way
  in.

Why:
  Peer state must survive restarts indefinitely; losing it silently would
  reset every trust decision. The document therefore carries a format
  version, is validated strictly, and is written atomically so a crash
  mid-write leaves the previous copy intact. I/O failures reach the caller
  instead of being swallowed.

How:
  The YAML payload is checked for its ``version`` marker. Version 1 (a mapping
  of peers keyed by address with abbreviated field names) is rewritten into
  the version 2 shape by :func:`migrate`, then validated through
  :class:`~mailac.config.schema.StateV2`. Saving dumps the model in JSON mode
  (base64 keys, ISO 8601 timestamps) into a temporary file next to the target
  and renames it into place.

Interfaces:
  :class:`StateStore`, :func:`migrate`, :func:`to_document`,
  :func:`from_document`.

Invariants & Safety:
  - A missing file loads as an empty store; it is not created until
    :meth:`StateStore.save`.
  - Unknown versions raise :class:`~mailac.core.errors.StateStoreError`.
"""
from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import yaml

from ..core.errors import AccountExistsError, StateStoreError
from ..core.peers import Account, PeerRecord, PeerStore, Preference
from ..utils.logging import get_logger
from .schema import STATE_VERSION, AccountEntry, PeerEntry, StateV2, ValidationError

_LOGGER = get_logger("mailac.state")


def _migrate_v1(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Rewrite a version 1 document into the version 2 layout."""

    peers = []
    raw_peers = payload.get("peers") or {}
    if not isinstance(raw_peers, dict):
        raise StateStoreError("version 1 peers must be a mapping keyed by address")
    for address, entry in raw_peers.items():
        entry = entry or {}
        preference = entry.get("prefer_encrypt")
        peers.append(
            {
                "address": address,
                "last_seen": entry.get("seen"),
                "timestamp": entry.get("ts"),
                "public_key": entry.get("key"),
                "preference": preference if preference in ("mutual", "nopreference", "none") else None,
                "gossip_timestamp": entry.get("gossip_ts"),
                "gossip_key": entry.get("gossip_key"),
                "deactivated": entry.get("state") == "reset",
            }
        )
    accounts = [
        {
            "address": entry.get("email"),
            "key_fingerprint": entry.get("fingerprint"),
            "preference": entry.get("prefer_encrypt") or "nopreference",
        }
        for entry in payload.get("accounts") or []
    ]
    return {"version": 2, "accounts": accounts, "peers": peers}


_MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    1: _migrate_v1,
}


def migrate(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Bring ``payload`` up to :data:`STATE_VERSION`.

    Raises:
      StateStoreError: If the version marker is missing or unknown.
    """

    version = payload.get("version")
    if not isinstance(version, int):
        raise StateStoreError("state document has no version marker")
    while version != STATE_VERSION:
        step = _MIGRATIONS.get(version)
        if step is None:
            raise StateStoreError(f"unsupported state version {version}")
        payload = step(payload)
        _LOGGER.info("Migrated state document", from_version=version, to_version=payload["version"])
        version = payload["version"]
    return payload


def to_document(store: PeerStore) -> StateV2:
    """Snapshot ``store`` into the persisted document model."""

    return StateV2(
        version=STATE_VERSION,
        accounts=[
            AccountEntry(
                address=account.address,
                key_fingerprint=account.key_fingerprint,
                preference=account.preference.value,
            )
            for account in store.accounts()
        ],
        peers=[
            PeerEntry(
                address=record.address,
                last_seen=record.last_seen,
                timestamp=record.timestamp,
                public_key=record.public_key,
                preference=record.preference.value if record.preference else None,
                gossip_timestamp=record.gossip_timestamp,
                gossip_key=record.gossip_key,
                deactivated=record.deactivated,
            )
            for record in store.peers()
        ],
    )


def from_document(document: StateV2) -> PeerStore:
    """Build a :class:`PeerStore` from a validated document."""

    accounts = [
        Account(
            address=entry.address,
            key_fingerprint=entry.key_fingerprint,
            preference=Preference(entry.preference),
        )
        for entry in document.accounts
    ]
    peers = [
        PeerRecord(
            address=entry.address,
            last_seen=entry.last_seen,
            timestamp=entry.timestamp,
            public_key=entry.public_key,
            preference=Preference(entry.preference) if entry.preference else None,
            gossip_timestamp=entry.gossip_timestamp,
            gossip_key=entry.gossip_key,
            deactivated=entry.deactivated,
        )
        for entry in document.peers
    ]
    try:
        return PeerStore(accounts=accounts, peers=peers)
    except (ValueError, AccountExistsError) as exc:
        raise StateStoreError(f"inconsistent state document: {exc}") from exc


class StateStore:
    """Filesystem accessor for the persisted record set."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> PeerStore:
        """Read, migrate and validate the state document.

        Raises:
          StateStoreError: On I/O errors, invalid YAML, unknown versions or
            schema violations.
        """

        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return PeerStore()
        except OSError as exc:
            raise StateStoreError(f"cannot read {self._path}: {exc}") from exc
        try:
            payload = yaml.safe_load(text) or {"version": STATE_VERSION}
        except yaml.YAMLError as exc:
            raise StateStoreError(f"invalid YAML in {self._path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise StateStoreError(f"{self._path} must contain a mapping at the top-level")
        payload = migrate(payload)
        try:
            document = StateV2.model_validate(payload)
        except ValidationError as exc:
            raise StateStoreError(f"invalid state document {self._path}: {exc}") from exc
        return from_document(document)

    def save(self, store: PeerStore) -> None:
        """Atomically replace the state document with ``store``.

        Raises:
          StateStoreError: If the file cannot be written.
        """

        text = yaml.safe_dump(to_document(store).model_dump(mode="json"), sort_keys=False)
        tmp_path: Optional[Path] = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                delete=False,
            ) as handle:
                tmp_path = Path(handle.name)
                handle.write(text)
            os.replace(tmp_path, self._path)
        except OSError as exc:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()
            raise StateStoreError(f"cannot write {self._path}: {exc}") from exc
        _LOGGER.debug("Saved state", path=str(self._path), peers=len(store))
