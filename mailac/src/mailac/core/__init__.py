"""Aggregated exports for the Autocrypt peer-state core.

What:
  Provide a package facade over the canonicalizer, header codec, peer store,
  recommendation engine, gossip processor, message update state machine and
  outgoing composition.

Why:
  The core modules import each other and the host adapters. Resolving names
  lazily keeps ``import mailac.core.errors`` free of those imports and avoids
  import cycles between the core and :mod:`mailac.host`.

How:
  ``__getattr__`` maps each public name to the submodule owning it and imports
  that submodule on first access.

Invariants & Safety:
  - Only names listed in ``__all__`` resolve; anything else raises
    :class:`AttributeError`.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

_EXPORTS = {
    "canonicalize": "canonical",
    "canonicalize_all": "canonical",
    "ParsedHeader": "header",
    "HeaderSource": "header",
    "parse_header": "header",
    "generate_header": "header",
    "Preference": "peers",
    "Account": "peers",
    "PeerRecord": "peers",
    "PeerStore": "peers",
    "Recommendation": "recommend",
    "single_recommendation": "recommend",
    "recommendation": "recommend",
    "aggregate": "recommend",
    "process_gossip": "gossip",
    "process_incoming": "update",
    "UpdateOutcome": "update",
    "prepare_outgoing": "outgoing",
    "prepare_outgoing_with_config": "outgoing",
    "ComposeDecision": "outgoing",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> Any:
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(name)
    return getattr(import_module(f".{module_name}", __name__), name)
