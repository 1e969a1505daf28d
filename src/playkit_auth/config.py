"""SDK configuration."""

import os
from dataclasses import dataclass

DEFAULT_BASE_URL = "https://playkit.agentlandlab.com"

AUTH_METHOD_EXTERNAL = "external-auth"
AUTH_METHOD_HEADLESS = "headless"
AUTH_METHODS = (AUTH_METHOD_EXTERNAL, AUTH_METHOD_HEADLESS)


@dataclass
class SDKConfig:
    """PlayKit 인증 설정.

    Attributes:
        game_id: 게임 ID (필수)
        developer_token: 개발용 토큰 (있으면 모든 로그인 절차 생략)
        player_jwt: 외부 identity token (있으면 player token으로 교환)
        base_url: 백엔드 주소
        auth_method: "external-auth" (팝업, 기본값) 또는 "headless" (코드 인증)
        http_timeout: HTTP 요청 타임아웃 (초)
        debug: playkit_auth 로거를 DEBUG 레벨로 설정 (env: PLAYKIT_DEBUG)
    """

    game_id: str
    developer_token: str | None = None
    player_jwt: str | None = None
    base_url: str = DEFAULT_BASE_URL
    auth_method: str = AUTH_METHOD_EXTERNAL
    http_timeout: float = 30.0
    debug: bool = False

    def __post_init__(self):
        if not self.game_id:
            raise ValueError("game_id is required")
        if self.auth_method not in AUTH_METHODS:
            raise ValueError(
                f"Unknown auth_method '{self.auth_method}', "
                f"expected one of {', '.join(AUTH_METHODS)}"
            )
        self.base_url = (self.base_url or DEFAULT_BASE_URL).rstrip("/")

    @property
    def use_external_auth(self) -> bool:
        return self.auth_method == AUTH_METHOD_EXTERNAL

    @classmethod
    def from_env(cls, **overrides) -> "SDKConfig":
        """환경 변수(PLAYKIT_*)에서 설정 로드.

        Args:
            **overrides: 환경 변수보다 우선하는 값 (None은 무시)

        Returns:
            SDKConfig
        """
        values = {
            "game_id": os.getenv("PLAYKIT_GAME_ID", ""),
            "developer_token": os.getenv("PLAYKIT_DEVELOPER_TOKEN") or None,
            "player_jwt": os.getenv("PLAYKIT_PLAYER_JWT") or None,
            "base_url": os.getenv("PLAYKIT_BASE_URL") or DEFAULT_BASE_URL,
            "auth_method": os.getenv("PLAYKIT_AUTH_METHOD") or AUTH_METHOD_EXTERNAL,
            "debug": os.getenv("PLAYKIT_DEBUG", "").lower() in ("1", "true", "yes"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
