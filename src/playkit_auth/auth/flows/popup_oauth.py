"""Popup OAuth 2.0 + PKCE Authentication

팝업 창에서 로그인하고, 결과(authorization code)를 redirect 대신
창 간 메시지(postMessage)로 전달받는 플로우.
받은 access token을 그대로 player token으로 사용한다.

순서:
1. 게임 정보 조회
2. 로그인 확인 화면 (로그인 / 취소)
3. PKCE + state 생성
4. 팝업 열기 (redirect_uri=postmessage)
5. 메시지 리스너 등록 (origin + type 검증)
6. state / code 검증
7. code + code_verifier → access token 교환
8. 모든 종료 경로에서 정리
"""

import asyncio
import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass
from urllib.parse import urlencode, urlsplit

import httpx

from playkit_auth.auth.exceptions import (
    ErrorCode,
    GameInfoError,
    InvalidResponseError,
    OAuthError,
    PopupBlockedError,
    ProtocolError,
    StateMismatchError,
    TokenExchangeError,
    UserCancelledError,
)
from playkit_auth.auth.ui.base import (
    CrossWindowMessage,
    LoginPresenter,
    LoginPrompt,
    PopupWindow,
    WindowHost,
)
from playkit_auth.config import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)

# 결과를 navigation이 아닌 창 간 메시지로 전달하라는 고정값
REDIRECT_URI = "postmessage"
CALLBACK_MESSAGE_TYPE = "external_auth_callback"
POPUP_NAME = "playkit_auth"
POPUP_FEATURES = "width=500,height=700,popup=1"


@dataclass
class PKCEChallenge:
    """PKCE (Proof Key for Code Exchange) 챌린지."""

    code_verifier: str
    code_challenge: str
    code_challenge_method: str = "S256"


@dataclass
class GameInfo:
    """로그인 화면에 표시할 게임 정보."""

    id: str
    name: str
    description: str | None = None
    icon: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "GameInfo":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            description=data.get("description"),
            icon=data.get("icon"),
        )


def _base64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def derive_code_challenge(code_verifier: str) -> str:
    """code_verifier의 SHA256 해시를 base64url 인코딩 (padding 없음)."""
    return _base64url(hashlib.sha256(code_verifier.encode()).digest())


def generate_pkce_challenge() -> PKCEChallenge:
    """PKCE 챌린지 생성.

    Returns:
        PKCEChallenge: 32 바이트 랜덤 code_verifier와 code_challenge
    """
    code_verifier = _base64url(secrets.token_bytes(32))
    return PKCEChallenge(
        code_verifier=code_verifier,
        code_challenge=derive_code_challenge(code_verifier),
        code_challenge_method="S256",
    )


def generate_state() -> str:
    """CSRF 방지용 state (16 바이트 랜덤)."""
    return _base64url(secrets.token_bytes(16))


def origin_of(url: str) -> str:
    """URL의 origin (scheme://host[:port])."""
    parts = urlsplit(url)
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}"


class PopupOAuthFlow:
    """Popup OAuth 2.0 + PKCE 인증.

    Example:
        flow = PopupOAuthFlow(base_url, "game-1", presenter, window_host)
        try:
            player_token = await flow.start()
        finally:
            flow.destroy()
    """

    AUTHORIZE_PATH = "/external-auth/authorize"
    GAME_INFO_ENDPOINT = "/api/external-auth/game-info"
    TOKEN_ENDPOINT = "/api/external-auth/token"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        game_id: str = "",
        presenter: LoginPresenter | None = None,
        window_host: WindowHost | None = None,
        timeout: float = 30.0,
    ):
        """초기화.

        Args:
            base_url: 백엔드 (authorization server) 주소
            game_id: 게임 ID
            presenter: 로그인 확인 화면
            window_host: 팝업 / 메시지 호스트
            timeout: HTTP 타임아웃 (초)
        """
        if presenter is None or window_host is None:
            raise ValueError("PopupOAuthFlow requires a presenter and a window host")
        self.base_url = base_url.rstrip("/")
        self.game_id = game_id
        self.presenter = presenter
        self.window_host = window_host
        self.timeout = timeout
        # 메시지 검증은 호출자 origin이 아니라 authorization server origin 기준
        self.auth_origin = origin_of(self.base_url)

        self._popup: PopupWindow | None = None
        self._listener = None
        self._callback: asyncio.Future | None = None
        self._presenter_closed = False
        self._started = False

    def build_authorization_url(self, pkce: PKCEChallenge, state: str) -> str:
        """인증 URL 생성."""
        params = {
            "response_type": "code",
            "game_id": self.game_id,
            "redirect_uri": REDIRECT_URI,
            "code_challenge": pkce.code_challenge,
            "code_challenge_method": pkce.code_challenge_method,
            "state": state,
            "origin": self.window_host.origin,
        }
        return f"{self.base_url}{self.AUTHORIZE_PATH}?{urlencode(params)}"

    async def fetch_game_info(self) -> GameInfo:
        """게임 정보 조회.

        Raises:
            GameInfoError: 조회 실패
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.base_url}{self.GAME_INFO_ENDPOINT}",
                    params={"game_id": self.game_id},
                )
        except httpx.HTTPError as e:
            raise GameInfoError("Failed to fetch game information") from e

        if not 200 <= response.status_code < 300:
            raise GameInfoError(
                "Failed to fetch game information", status_code=response.status_code
            )
        try:
            return GameInfo.from_dict(response.json())
        except (KeyError, TypeError, ValueError) as e:
            raise GameInfoError("Invalid game information response") from e

    async def exchange_code_for_token(self, code: str, code_verifier: str) -> str:
        """인증 코드를 토큰으로 교환.

        Args:
            code: 인증 코드
            code_verifier: PKCE code_verifier

        Returns:
            str: access token (player token)

        Raises:
            TokenExchangeError: 서버 거부 또는 네트워크 오류
            InvalidResponseError: 응답에 access_token 없음
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}{self.TOKEN_ENDPOINT}",
                    json={
                        "grant_type": "authorization_code",
                        "code": code,
                        "code_verifier": code_verifier,
                        "redirect_uri": REDIRECT_URI,
                    },
                )
        except httpx.HTTPError as e:
            raise TokenExchangeError("Token exchange failed") from e

        if not 200 <= response.status_code < 300:
            try:
                error = response.json()
            except ValueError:
                error = {}
            if not isinstance(error, dict):
                error = {}
            raise TokenExchangeError(
                error.get("error_description") or "Token exchange failed",
                status_code=response.status_code,
                error_code=error.get("error"),
            )

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponseError("Invalid token response") from e
        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            raise InvalidResponseError("No access token received from server")
        return access_token

    async def start(self) -> str:
        """인증 수행.

        Returns:
            str: player token

        Raises:
            GameInfoError, UserCancelledError, PopupBlockedError, OAuthError,
            StateMismatchError, ProtocolError, TokenExchangeError
        """
        if self._started:
            raise RuntimeError("PopupOAuthFlow.start() can only be called once")
        self._started = True
        try:
            return await self._run()
        finally:
            self._cleanup()

    async def _run(self) -> str:
        game_info = await self.fetch_game_info()

        prompt = self.presenter.show_login(game_info)
        await self._wait_for_login_click(prompt)

        # PKCE 값은 이 호출의 지역 변수로만 유지
        pkce = generate_pkce_challenge()
        state = generate_state()
        self.presenter.show_waiting(game_info)

        auth_url = self.build_authorization_url(pkce, state)
        popup = self.window_host.open(auth_url, POPUP_NAME, POPUP_FEATURES)
        if popup is None:
            raise PopupBlockedError("Popup blocked. Please allow popups for this site.")
        self._popup = popup

        # 팝업이 응답하기 전에 리스너 등록 (사이에 await 없음)
        self._callback = asyncio.get_running_loop().create_future()
        self._listener = self._on_message
        self.window_host.add_message_listener(self._listener)
        logger.debug("Listening for auth callback from %s", self.auth_origin)

        await asyncio.wait(
            {self._callback, prompt.cancelled},
            return_when=asyncio.FIRST_COMPLETED,
        )
        if not self._callback.done():
            raise UserCancelledError("User cancelled login")
        if self._callback.cancelled():
            raise UserCancelledError("Login flow was closed")

        data = self._callback.result()
        # 더 이상 메시지를 받지 않음
        self._cleanup()
        return await self._handle_callback(data, state, pkce.code_verifier)

    async def _wait_for_login_click(self, prompt: LoginPrompt) -> None:
        await asyncio.wait(
            {prompt.clicked, prompt.cancelled},
            return_when=asyncio.FIRST_COMPLETED,
        )
        if not prompt.clicked.done():
            raise UserCancelledError("User cancelled login")

    def _on_message(self, message: CrossWindowMessage) -> None:
        """창 간 메시지 수신.

        origin과 type 검증을 모두 통과하기 전에는 payload를 신뢰하지 않는다.
        검증 실패는 에러가 아니라 무시.
        """
        if message.origin != self.auth_origin:
            logger.debug(
                "Ignoring message from wrong origin. Expected: %s, Got: %s",
                self.auth_origin,
                message.origin,
            )
            return
        data = message.data
        if not isinstance(data, dict) or data.get("type") != CALLBACK_MESSAGE_TYPE:
            logger.debug("Ignoring message with wrong type")
            return
        if self._callback is None or self._callback.done():
            return
        self._callback.set_result(dict(data))

    async def _handle_callback(self, data: dict, state: str, code_verifier: str) -> str:
        error = data.get("error")
        if error:
            logger.error("Auth error: %s", error)
            raise OAuthError(data.get("error_description") or error, error_code=error)

        if data.get("state") != state:
            logger.error("State mismatch in auth callback")
            raise StateMismatchError("State mismatch - possible CSRF attack")

        code = data.get("code")
        if not code:
            raise ProtocolError("No authorization code received", code=ErrorCode.NO_CODE)

        logger.debug("Exchanging code for token")
        token = await self.exchange_code_for_token(code, code_verifier)
        logger.debug("Token received")
        return token

    def _cleanup(self) -> None:
        """리스너 제거, 팝업 닫기, 화면 제거 (여러 번 호출 가능)"""
        if self._listener is not None:
            self.window_host.remove_message_listener(self._listener)
            self._listener = None
        if self._popup is not None:
            if not self._popup.closed:
                self._popup.close()
            self._popup = None
        if not self._presenter_closed:
            self._presenter_closed = True
            self.presenter.close()

    def destroy(self) -> None:
        if self._callback is not None and not self._callback.done():
            self._callback.cancel()
        self._cleanup()
