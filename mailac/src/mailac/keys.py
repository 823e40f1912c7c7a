"""Key backend interface and its GnuPG implementation.

What:
  Define what the engine needs from a cryptographic backend (export an
  account's public key, generate a new key) and provide an implementation on
  top of a GnuPG home directory.

Why:
  Key material for peers is opaque to the engine, but accounts need a real
  key to announce. Keeping the backend behind a protocol lets tests run with
  an in-memory fake while deployments reuse the user's GnuPG keyring.

How:
  :class:`GnuPGBackend` drives ``gpg`` through :mod:`gnupg` (python-gnupg).
  Exports are binary (``armor=False``) since Autocrypt carries base64 of the
  binary key. Every failure is converted to
  :class:`~mailac.core.errors.KeyBackendError` and propagated.

Interfaces:
  :class:`KeyParams`, :class:`KeyBackend`, :class:`GnuPGBackend`.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union

import gnupg

from .core.errors import KeyBackendError
from .utils.logging import get_logger

_LOGGER = get_logger("mailac.keys")


@dataclass(frozen=True)
class KeyParams:
    """Parameters for key generation."""

    address: str
    name: Optional[str] = None
    key_type: str = "RSA"
    key_length: int = 3072
    passphrase: Optional[str] = None
    expire_date: str = "0"


class KeyBackend(Protocol):
    """What the engine needs from a cryptographic backend."""

    def export_public_key(self, fingerprint: str) -> bytes:
        """Return the binary public key for ``fingerprint``."""
        ...

    def generate_key(self, params: KeyParams) -> str:
        """Create a key pair and return its fingerprint."""
        ...


class GnuPGBackend:
    """Key backend bound to one GnuPG home directory."""

    def __init__(self, gnupghome: Optional[Union[str, Path]] = None, gpgbinary: str = "gpg"):
        """Bind to ``gnupghome``, or the default keyring when ``None``."""

        try:
            self._gpg = gnupg.GPG(
                gpgbinary=gpgbinary,
                gnupghome=str(gnupghome) if gnupghome is not None else None,
            )
        except (OSError, ValueError, RuntimeError) as exc:
            raise KeyBackendError(f"cannot start gpg: {exc}") from exc

    def export_public_key(self, fingerprint: str) -> bytes:
        """Export the unarmored public key; an empty export is an error."""

        try:
            data = self._gpg.export_keys(fingerprint, armor=False)
        except (OSError, ValueError) as exc:
            raise KeyBackendError(f"key export failed for {fingerprint}: {exc}") from exc
        if isinstance(data, str):
            data = data.encode("latin-1")
        if not data:
            raise KeyBackendError(f"no public key for {fingerprint}")
        return data

    def generate_key(self, params: KeyParams) -> str:
        """Generate a key without passphrase protection unless one is given.

        Raises:
          KeyBackendError: If gpg fails or reports no fingerprint.
        """

        options = {
            "name_email": params.address,
            "key_type": params.key_type,
            "key_length": params.key_length,
            "expire_date": params.expire_date,
        }
        if params.name:
            options["name_real"] = params.name
        if params.passphrase:
            options["passphrase"] = params.passphrase
        else:
            options["no_protection"] = True
        try:
            result = self._gpg.gen_key(self._gpg.gen_key_input(**options))
        except (OSError, ValueError) as exc:
            raise KeyBackendError(f"key generation failed for {params.address}: {exc}") from exc
        fingerprint = getattr(result, "fingerprint", None)
        if not fingerprint:
            raise KeyBackendError(
                f"key generation failed for {params.address}: {getattr(result, 'stderr', '')}".strip()
            )
        _LOGGER.info("Generated key", address=params.address, fingerprint=fingerprint)
        return str(fingerprint)
