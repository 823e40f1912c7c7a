"""Autocrypt and Autocrypt-Gossip header codec.

What:
  Parse a header value into a :class:`ParsedHeader` and serialize a key
  source back into a folded header value.

Why:
  Header values arrive from untrusted senders. The grammar is small but the
  rejection rules matter: an unknown critical attribute invalidates the whole
  header, and a header that is missing ``addr`` or ``keydata`` must never be
  partially applied. On the way out, oversized headers are dropped instead of
  truncated so a peer never receives a corrupt key.

How:
  Split on ``;`` into ``name=value`` pairs, dispatch on the attribute name and
  strip folding whitespace from ``keydata`` before base64 decoding. Output is
  ``addr=<addr>; [prefer-encrypt=<v>; ]keydata=`` followed by the base64 key
  wrapped at a fixed column, each line prefixed with a single space.

Interfaces:
  :class:`ParsedHeader`, :class:`HeaderSource`, :func:`parse_header`,
  :func:`serialize_header`, :func:`generate_header`.

Invariants:
  - Attributes starting with ``_`` are accepted and ignored.
  - ``prefer-encrypt`` values other than ``mutual``/``nopreference`` leave
    the preference absent without invalidating the header.
  - Gossip output never carries ``prefer-encrypt``.
"""
from __future__ import annotations

import base64
import binascii
import textwrap
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from ..utils.logging import get_logger
from .canonical import canonicalize
from .errors import KeyBackendError, OversizedHeaderError, ParseError
from .peers import Account, PeerRecord, Preference

if TYPE_CHECKING:  # pragma: no cover
    from ..keys import KeyBackend


MAX_HEADER_BYTES = 10 * 1024
WRAP_COLUMN = 76

_LOGGER = get_logger("mailac.header")


@dataclass(frozen=True)
class ParsedHeader:
    """Structured content of a valid Autocrypt header."""

    address: str
    keydata: bytes
    preference: Optional[Preference] = None


def _decode_keydata(value: str) -> bytes:
    compact = "".join(value.split())
    if not compact:
        raise ParseError("empty keydata")
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ParseError(f"keydata is not valid base64: {exc}") from exc


def parse_header(value: str) -> ParsedHeader:
    """Parse an Autocrypt header value.

    Raises:
      ParseError: On an unknown non-underscore attribute, a pair without
        ``=``, undecodable key material, or a missing ``addr``/``keydata``.
    """

    address: Optional[str] = None
    keydata: Optional[bytes] = None
    preference: Optional[Preference] = None
    for chunk in (value or "").split(";"):
        if not chunk.strip():
            continue
        name, sep, attr_value = chunk.partition("=")
        if not sep:
            raise ParseError(f"attribute without value: {chunk.strip()!r}")
        name = name.strip()
        attr_value = attr_value.strip()
        if name == "addr":
            address = canonicalize(attr_value)
        elif name == "prefer-encrypt":
            if attr_value in ("mutual", "nopreference"):
                preference = Preference(attr_value)
            else:
                preference = None
        elif name == "keydata":
            keydata = _decode_keydata(attr_value)
        elif name.startswith("_"):
            continue
        else:
            raise ParseError(f"unsupported attribute: {name!r}")
    if not address:
        raise ParseError("missing addr attribute")
    if keydata is None:
        raise ParseError("missing keydata attribute")
    return ParsedHeader(address=address, keydata=keydata, preference=preference)


@dataclass(frozen=True)
class HeaderSource:
    """Everything needed to emit a header for an account or a peer."""

    address: str
    keydata: Optional[bytes]
    preference: Optional[Preference] = None
    deactivated: bool = False

    @classmethod
    def from_peer(cls, record: PeerRecord) -> "HeaderSource":
        """Source for relaying a directly observed peer key."""

        return cls(
            address=record.address,
            keydata=record.public_key,
            preference=record.preference,
            deactivated=record.deactivated,
        )

    @classmethod
    def from_account(cls, account: Account, backend: "KeyBackend") -> "HeaderSource":
        """Resolve the account key through ``backend``.

        Disabled accounts never touch the backend. Export failures propagate
        as :class:`KeyBackendError`.
        """

        if account.disabled:
            return cls(address=account.address, keydata=None, deactivated=True)
        keydata = backend.export_public_key(account.key_fingerprint)
        if not keydata:
            raise KeyBackendError(f"empty key export for {account.key_fingerprint}")
        return cls(address=account.address, keydata=keydata, preference=account.preference)


def serialize_header(
    source: HeaderSource,
    *,
    suppress_preference: bool = False,
    max_bytes: int = MAX_HEADER_BYTES,
    wrap_column: int = WRAP_COLUMN,
) -> str:
    """Render ``source`` as a folded header value.

    Raises:
      ValueError: If the source has no key material.
      OversizedHeaderError: If the result exceeds ``max_bytes``.
    """

    if not source.keydata:
        raise ValueError(f"no key material for {source.address}")
    parts = [f"addr={canonicalize(source.address)}; "]
    if not suppress_preference and source.preference in (
        Preference.MUTUAL,
        Preference.NOPREFERENCE,
    ):
        parts.append(f"prefer-encrypt={source.preference.value}; ")
    parts.append("keydata=")
    encoded = base64.b64encode(source.keydata).decode("ascii")
    for line in textwrap.wrap(encoded, wrap_column):
        parts.append(f"\n {line}")
    value = "".join(parts)
    size = len(value.encode("utf-8"))
    if size > max_bytes:
        raise OversizedHeaderError(size, max_bytes)
    return value


def generate_header(
    source: HeaderSource,
    suppress_preference: bool = False,
    *,
    max_bytes: int = MAX_HEADER_BYTES,
    wrap_column: int = WRAP_COLUMN,
) -> Optional[str]:
    """Build a header value, or ``None`` when no header should be sent.

    ``None`` covers a missing key, a deactivated source and an oversized
    result; the latter is dropped, never truncated.
    """

    if source.deactivated or not source.keydata:
        return None
    try:
        return serialize_header(
            source,
            suppress_preference=suppress_preference,
            max_bytes=max_bytes,
            wrap_column=wrap_column,
        )
    except OversizedHeaderError as exc:
        _LOGGER.warning(
            "Dropping oversized header",
            address=source.address,
            size=exc.size,
            limit=exc.limit,
        )
        return None
