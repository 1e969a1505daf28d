"""Auth state 데이터 클래스

AuthManager가 소유하는 인증 상태와 저장용 레코드 정의.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TokenType(str, Enum):
    """토큰 종류"""

    DEVELOPER = "developer"
    PLAYER = "player"


def _parse_timestamp(value) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        # epoch milliseconds
        try:
            return datetime.fromtimestamp(value / 1000)
        except (OverflowError, OSError) as e:
            raise ValueError(f"Invalid timestamp: {value!r}") from e
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        # 비교는 항상 naive local time 기준
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


@dataclass(frozen=True)
class AuthState:
    """인증 상태

    token은 is_authenticated가 True일 때만 존재한다.
    expires_at이 None이면 만료되지 않는 토큰 (developer token 등).
    """

    is_authenticated: bool = False
    token: str | None = None
    token_type: TokenType | None = None
    expires_at: datetime | None = None

    def __post_init__(self):
        if self.is_authenticated != bool(self.token):
            raise ValueError("token must be present iff is_authenticated is True")

    @classmethod
    def unauthenticated(cls) -> "AuthState":
        return cls()

    def is_expired(self) -> bool:
        """토큰 만료 여부 확인"""
        if self.expires_at is None:
            return False
        return datetime.now() >= self.expires_at

    def to_dict(self) -> dict:
        data: dict = {"isAuthenticated": self.is_authenticated}
        if self.token:
            data["token"] = self.token
        if self.token_type:
            data["tokenType"] = self.token_type.value
        if self.expires_at:
            data["expiresAt"] = self.expires_at.isoformat()
        return data


@dataclass(frozen=True)
class AuthRecord:
    """게임별 저장 레코드"""

    game_id: str
    token: str
    token_type: TokenType = TokenType.PLAYER
    expires_at: datetime | None = None

    def is_valid(self) -> bool:
        """만료 시간이 없거나 아직 지나지 않았으면 유효"""
        if self.expires_at is None:
            return True
        return datetime.now() < self.expires_at

    def to_state(self) -> AuthState:
        return AuthState(
            is_authenticated=True,
            token=self.token,
            token_type=self.token_type,
            expires_at=self.expires_at,
        )

    def to_dict(self) -> dict:
        """딕셔너리로 변환 (저장용)"""
        return {
            "game_id": self.game_id,
            "token": self.token,
            "token_type": self.token_type.value,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AuthRecord":
        """딕셔너리에서 생성

        Raises:
            KeyError, TypeError, ValueError: 필드 누락 또는 형식 오류
        """
        token = data["token"]
        if not isinstance(token, str) or not token:
            raise ValueError("token must be a non-empty string")
        return cls(
            game_id=str(data["game_id"]),
            token=token,
            token_type=TokenType(data.get("token_type", TokenType.PLAYER.value)),
            expires_at=_parse_timestamp(data.get("expires_at")),
        )
