"""Token storage backends."""

from playkit_auth.auth.storage.token_store import (
    FileTokenStore,
    KeyringTokenStore,
    MemoryTokenStore,
    TokenStore,
)

__all__ = [
    "TokenStore",
    "MemoryTokenStore",
    "FileTokenStore",
    "KeyringTokenStore",
]
