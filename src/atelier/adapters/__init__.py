"""Adapters - I/O implementations of ports."""

from .postgrest import ConfigurationError, PostgrestAdapter, StoreError

__all__ = [
    "PostgrestAdapter",
    "StoreError",
    "ConfigurationError",
]
