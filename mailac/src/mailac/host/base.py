"""Mail Host Adapter interface.

What:
  Describe the capabilities the engine needs from the mail client it runs in
  (header access, encryption requests, MIME part access) together with the
  three shapes a MIME part can be handed over in.

Why:
  The engine must not know which client it runs inside. Every supported
  client ships one adapter implementing this fixed interface; the core only
  ever talks to :class:`MailHost`.

How:
  :class:`MailHost` is an abstract base class. Part references are small
  frozen dataclasses so readers can dispatch with ``isinstance``.

Interfaces:
  :class:`MailHost`, :class:`TextPart`, :class:`BufferPart`,
  :class:`FilePart`, :data:`PartRef`.
"""
from __future__ import annotations

import abc
from dataclasses import dataclass
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, List, Optional, Union

if TYPE_CHECKING:  # pragma: no cover
    from ..core.recommend import Recommendation


@dataclass(frozen=True)
class TextPart:
    """MIME part available as decoded text."""

    text: str


@dataclass(frozen=True)
class BufferPart:
    """MIME part available through an open file-like handle."""

    handle: IO[Any]


@dataclass(frozen=True)
class FilePart:
    """MIME part stored in a file on disk."""

    path: Union[str, Path]


PartRef = Union[TextPart, BufferPart, FilePart]


class MailHost(abc.ABC):
    """Capabilities consumed by the peer-state engine."""

    @abc.abstractmethod
    def get_header(self, field_name: str) -> Optional[str]:
        """Return the first value of ``field_name`` or ``None``."""

    @abc.abstractmethod
    def get_headers(self, field_name: str) -> List[str]:
        """Return every value of ``field_name`` in message order."""

    @abc.abstractmethod
    def add_header(self, name: str, value: str) -> None:
        """Append a header to the message being composed."""

    @abc.abstractmethod
    def remove_header(self, name: str) -> None:
        """Remove every occurrence of ``name``."""

    @abc.abstractmethod
    def sign_and_encrypt(self) -> None:
        """Ask the client to sign and encrypt the message on send."""

    @abc.abstractmethod
    def secure_attach(self, payload: str) -> None:
        """Attach ``payload`` inside the protected (encrypted) part."""

    @abc.abstractmethod
    def is_encrypted(self) -> bool:
        """Whether the inbound message arrived encrypted."""

    @abc.abstractmethod
    def get_part(self, index: int) -> Optional[PartRef]:
        """Return a reference to MIME part ``index`` (``0`` is the root)."""

    @abc.abstractmethod
    def mark_recommendation(self, recommendation: "Recommendation") -> None:
        """Surface a non-encrypting recommendation to the compose UI."""
