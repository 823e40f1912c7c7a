"""MIME helpers for locating header blocks.

What:
  Turn raw RFC 822 payloads into :class:`email.message.EmailMessage` objects
  and read the header block of a MIME part handed over as text, an open
  buffer, or a file path.

Why:
  Gossip headers live in the header block of the (decrypted) root part, which
  mail clients expose in different shapes. The engine never needs the body,
  so parsing stops at the first blank line and bounds the amount read.

How:
  Use :class:`~email.parser.BytesParser`/:class:`~email.parser.Parser` with
  ``headersonly=True`` and the ``compat32`` policy, which keeps folded values
  verbatim so the header codec sees exactly what the sender wrote. Unknown
  part shapes raise :class:`~mailac.core.errors.UnsupportedPartError`.

Interfaces:
  :func:`parse_message`, :func:`read_header_block`.

Invariants & Safety:
  - At most :data:`MAX_HEADER_BLOCK_BYTES` are read from buffers and files.
  - Buffers are read from their current position and never closed here; the
    caller owns the handle.
"""
from __future__ import annotations

from email import policy
from email.message import EmailMessage, Message
from email.parser import BytesParser, Parser

from ..core.errors import UnsupportedPartError
from ..host.base import BufferPart, FilePart, PartRef, TextPart


MAX_HEADER_BLOCK_BYTES = 1_000_000
"""Upper bound on bytes read while looking for the end of a header block."""


def parse_message(raw: bytes) -> EmailMessage:
    """Parse raw message bytes with the default (modern) policy."""

    return BytesParser(policy=policy.default).parsebytes(raw)


def _parse_headers(data) -> Message:
    if isinstance(data, bytes):
        return BytesParser(policy=policy.compat32).parsebytes(data, headersonly=True)
    if isinstance(data, str):
        return Parser(policy=policy.compat32).parsestr(data, headersonly=True)
    raise UnsupportedPartError(f"unreadable part content: {type(data).__name__}")


def read_header_block(part: PartRef) -> Message:
    """Return the header block of ``part`` as a headers-only message.

    Raises:
      UnsupportedPartError: If ``part`` is not one of the supported shapes or
        its content cannot be read.
    """

    if isinstance(part, TextPart):
        return _parse_headers(part.text[:MAX_HEADER_BLOCK_BYTES])
    if isinstance(part, BufferPart):
        try:
            data = part.handle.read(MAX_HEADER_BLOCK_BYTES)
        except (OSError, ValueError) as exc:
            raise UnsupportedPartError(f"cannot read part buffer: {exc}") from exc
        return _parse_headers(data)
    if isinstance(part, FilePart):
        try:
            with open(part.path, "rb") as handle:
                data = handle.read(MAX_HEADER_BLOCK_BYTES)
        except OSError as exc:
            raise UnsupportedPartError(f"cannot read part file {part.path}: {exc}") from exc
        return _parse_headers(data)
    raise UnsupportedPartError(f"unsupported part reference: {type(part).__name__}")
