"""Address canonicalization for peer lookups.

What:
  Reduce any address form (``"Alice <Alice@Example.org>"``, a bare mailbox,
  an already canonical key) to the lowercase mailbox used as store key.

Why:
  Every comparison in the engine (store lookups, the anti-spoofing check
  between ``From`` and ``addr=``, gossip recipient matching) must agree on a
  single representation, otherwise an attacker could register a second
  record for the same correspondent by varying case or display names.

How:
  Use :func:`email.utils.parseaddr` to strip the display name, then lowercase
  local part and domain. Plus-addressing is kept verbatim so distinct
  identities sharing a mailbox stay distinct.

Invariants:
  - ``canonicalize(canonicalize(x)) == canonicalize(x)``.
  - Inputs without exactly one ``@`` are lowercased and stripped, nothing
    else; there is no sensible way to canonicalize them further.
"""
from __future__ import annotations

from email.utils import getaddresses, parseaddr
from typing import Iterable, List


def canonicalize(address: str) -> str:
    """Return the canonical comparison key for ``address``."""

    _, mailbox = parseaddr(address or "")
    mailbox = (mailbox or address or "").strip()
    try:
        localpart, domain = mailbox.split("@")
    except ValueError:
        return mailbox.lower()
    return f"{localpart.lower()}@{domain.lower()}"


def canonicalize_all(values: Iterable[str]) -> List[str]:
    """Canonicalize every mailbox listed in a set of address header values.

    Header values may carry several comma separated mailboxes (``To``,
    ``Cc``). Empty entries are dropped and the first-seen order is kept.
    """

    result: List[str] = []
    for _, mailbox in getaddresses(list(values)):
        if not mailbox:
            continue
        key = canonicalize(mailbox)
        if key not in result:
            result.append(key)
    return result
