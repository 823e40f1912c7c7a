"""Account setup.

What:
  Create a local Autocrypt account: generate its key through the key backend
  and register it in the peer store.

Why:
  Accounts are the only records the engine never derives from mail. Setup is
  all-or-nothing: a key backend failure must abort before the store changes,
  so the user is never left with an account that announces no key.

How:
  Check for an existing account first, call the backend, and only then add
  the :class:`~mailac.core.peers.Account`.

Interfaces:
  :func:`create_account`.
"""
from __future__ import annotations

from typing import Optional

from .core.canonical import canonicalize
from .core.errors import AccountExistsError
from .core.peers import Account, PeerStore, Preference
from .keys import KeyBackend, KeyParams
from .utils.logging import get_logger

_LOGGER = get_logger("mailac.accounts")


def create_account(
    store: PeerStore,
    backend: KeyBackend,
    address: str,
    preference: Preference = Preference.NOPREFERENCE,
    *,
    name: Optional[str] = None,
    params: Optional[KeyParams] = None,
    replace: bool = False,
) -> Account:
    """Generate a key for ``address`` and register the account.

    Raises:
      AccountExistsError: If the address is already set up and ``replace`` is
        false.
      KeyBackendError: If key generation fails; the store is left unchanged.
    """

    address = canonicalize(address)
    if store.lookup_account(address) is not None and not replace:
        raise AccountExistsError(f"account already exists: {address}")
    fingerprint = backend.generate_key(params or KeyParams(address=address, name=name))
    account = Account(address=address, key_fingerprint=fingerprint, preference=preference)
    store.add_account(account, replace=replace)
    _LOGGER.info(
        "Account created",
        address=address,
        fingerprint=fingerprint,
        preference=account.preference.value,
    )
    return account
