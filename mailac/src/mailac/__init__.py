"""mailac: the Autocrypt peer-state engine.

What:
  Top-level package for opportunistic, store-and-forward key discovery in
  email: canonicalization, Autocrypt/Gossip header handling, the per-peer
  state machine and the encryption recommendation.

Interfaces:
  - config: Runtime configuration and the versioned state store.
  - core: Header codec, peer store, recommendation, gossip, message update.
  - host: Mail Host Adapter interface and the ``email`` package adapter.
  - utils: Logging and MIME helpers.
"""

__all__ = [
    "config",
    "core",
    "host",
    "utils",
]

__version__ = "0.1.0"
