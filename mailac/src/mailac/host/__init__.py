"""Mail Host Adapters.

The core depends on :class:`MailHost` only; each supported client provides
one implementation.
"""

from .base import BufferPart, FilePart, MailHost, PartRef, TextPart
from .email_host import EmailMessageHost

__all__ = [
    "BufferPart",
    "EmailMessageHost",
    "FilePart",
    "MailHost",
    "PartRef",
    "TextPart",
]
