"""PlayKit Auth Module

player token 발급과 수명 관리.
developer token, 저장된 토큰, 공유 토큰, identity token 교환,
인터랙티브 로그인 (headless code / popup OAuth) 지원.

Example:
    from playkit_auth.auth import AuthManager, MemoryTokenStore
    from playkit_auth.config import SDKConfig

    manager = AuthManager(SDKConfig(game_id="my-game"), store=MemoryTokenStore())
    state = await manager.initialize()
"""

from playkit_auth.auth.exceptions import (
    AuthenticationError,
    ErrorCode,
    ExchangeError,
    GameInfoError,
    InvalidCodeError,
    InvalidResponseError,
    NotAuthenticatedError,
    OAuthError,
    PopupBlockedError,
    ProtocolError,
    RemoteAuthError,
    SendCodeError,
    StateMismatchError,
    TokenExchangeError,
    UserCancelledError,
    ValidationError,
    VerificationFailedError,
)
from playkit_auth.auth.manager import AuthManager, AuthPhase
from playkit_auth.auth.state import AuthRecord, AuthState, TokenType
from playkit_auth.auth.storage.token_store import (
    FileTokenStore,
    KeyringTokenStore,
    MemoryTokenStore,
    TokenStore,
)

__all__ = [
    # Core
    "AuthManager",
    "AuthPhase",
    "AuthState",
    "AuthRecord",
    "TokenType",
    # Storage
    "TokenStore",
    "MemoryTokenStore",
    "FileTokenStore",
    "KeyringTokenStore",
    # Exceptions
    "AuthenticationError",
    "ErrorCode",
    "NotAuthenticatedError",
    "ProtocolError",
    "StateMismatchError",
    "InvalidResponseError",
    "ValidationError",
    "RemoteAuthError",
    "SendCodeError",
    "InvalidCodeError",
    "VerificationFailedError",
    "TokenExchangeError",
    "GameInfoError",
    "OAuthError",
    "ExchangeError",
    "PopupBlockedError",
    "UserCancelledError",
]
