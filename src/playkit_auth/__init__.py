"""PlayKit Auth - player token orchestration for PlayKit games."""

from playkit_auth.auth import AuthManager, AuthState, TokenType
from playkit_auth.config import SDKConfig

__version__ = "1.0.0"

__all__ = [
    "AuthManager",
    "AuthState",
    "TokenType",
    "SDKConfig",
]
