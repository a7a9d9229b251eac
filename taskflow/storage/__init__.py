"""Local persistence used as fallback and for local-only mode."""

from .local import (
    ANONYMOUS_USER,
    FileKeyValueBackend,
    KeyValueBackend,
    LocalStore,
    MemoryKeyValueBackend,
    namespace_key,
)

__all__ = [
    "ANONYMOUS_USER",
    "FileKeyValueBackend",
    "KeyValueBackend",
    "LocalStore",
    "MemoryKeyValueBackend",
    "namespace_key",
]
