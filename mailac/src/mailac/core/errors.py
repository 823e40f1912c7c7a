"""Exception hierarchy shared by the Autocrypt peer-state engine.

What:
  Name every failure mode the engine distinguishes so callers can decide
  which ones are fatal and which ones are swallowed by design.

Why:
  Autocrypt is driven by attacker-influenced headers. Malformed input must
  never escalate into a user-visible error, while key backend and storage
  failures must reach the operator. A typed hierarchy keeps both paths
  explicit at the call sites.

How:
  Derive everything from :class:`AutocryptError`. ``ParseError`` also derives
  from :class:`ValueError` so generic input validation handlers keep working.

Interfaces:
  :class:`AutocryptError`, :class:`ParseError`, :class:`UnsupportedPartError`,
  :class:`OversizedHeaderError`, :class:`KeyBackendError`,
  :class:`StateStoreError`, :class:`AccountExistsError`.
"""
from __future__ import annotations


class AutocryptError(Exception):
    """Base class for all engine errors."""


class ParseError(AutocryptError, ValueError):
    """Raised when an Autocrypt or Gossip header value is malformed.

    The whole header is discarded; no attribute of it may be applied.
    """


class UnsupportedPartError(AutocryptError):
    """Raised when a root MIME part is handed over in an unreadable form."""


class OversizedHeaderError(AutocryptError):
    """Raised when a serialized header exceeds the configured byte cap."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"header is {size} bytes, limit is {limit}")
        self.size = size
        self.limit = limit


class KeyBackendError(AutocryptError):
    """Raised when the key backend cannot export or generate a key."""


class StateStoreError(AutocryptError):
    """Raised when the persisted record set cannot be read or written."""


class AccountExistsError(AutocryptError):
    """Raised when account setup targets an address that is already set up."""
