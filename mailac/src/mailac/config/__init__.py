"""Configuration and persistence for mailac.

Re-exports the runtime configuration loader, the pydantic schemas and the
versioned state store so callers never reach into submodules.
"""

from .loader import (
    ConfigLoadError,
    RuntimeConfigError,
    get_runtime_config,
    load_runtime_config,
    reset_runtime_config,
)
from .schema import RuntimeConfig, StateV2, ValidationError
from .state_store import StateStore

__all__ = [
    "ConfigLoadError",
    "RuntimeConfigError",
    "get_runtime_config",
    "load_runtime_config",
    "reset_runtime_config",
    "RuntimeConfig",
    "StateV2",
    "StateStore",
    "ValidationError",
]
