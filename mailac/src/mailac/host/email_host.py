"""Mail Host Adapter for :class:`email.message.EmailMessage` objects.

What:
  Implement :class:`~mailac.host.base.MailHost` over the standard library
  message model, which is what the CLI, the tests and any pipeline that
  handles raw RFC 822 bytes work with.

Why:
  The standard ``email`` package is the one client every deployment has.
  Wrapping it in the adapter keeps the core identical whether it runs inside
  a plugin for a desktop client or in a batch job over ``.eml`` files.

How:
  Header reads delegate to the message. Writes unfold the value first because
  the default policy refuses embedded line breaks and refolds on output.
  Encryption requests and protected payloads are recorded on the adapter for
  the sending pipeline to act on; encryption itself happens elsewhere.

Interfaces:
  :class:`EmailMessageHost`.
"""
from __future__ import annotations

from email.message import Message
from typing import List, Optional

from ..core.recommend import Recommendation
from .base import MailHost, PartRef, TextPart


def unfold(value: str) -> str:
    """Undo RFC 5322 folding: drop line breaks, keep the following whitespace."""

    return value.replace("\r\n", "").replace("\n", "").replace("\r", "")


class EmailMessageHost(MailHost):
    """Adapter around a parsed or composed :class:`EmailMessage`."""

    def __init__(self, message: Message):
        self.message = message
        self.encrypt_requested = False
        self.protected_payloads: List[str] = []
        self.recommendation: Optional[Recommendation] = None

    def get_header(self, field_name: str) -> Optional[str]:
        value = self.message.get(field_name)
        return None if value is None else str(value)

    def get_headers(self, field_name: str) -> List[str]:
        return [str(value) for value in self.message.get_all(field_name) or []]

    def add_header(self, name: str, value: str) -> None:
        self.message[name] = unfold(value)

    def remove_header(self, name: str) -> None:
        del self.message[name]

    def sign_and_encrypt(self) -> None:
        self.encrypt_requested = True

    def secure_attach(self, payload: str) -> None:
        self.protected_payloads.append(payload)

    def is_encrypted(self) -> bool:
        return self.message.get_content_type() == "multipart/encrypted"

    def get_part(self, index: int) -> Optional[PartRef]:
        for position, part in enumerate(self.message.walk()):
            if position == index:
                return TextPart(part.as_string())
        return None

    def mark_recommendation(self, recommendation: Recommendation) -> None:
        self.recommendation = recommendation
