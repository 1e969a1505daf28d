"""Auth Manager

인증 전략 선택과 토큰 수명 관리.

initialize() 전략 순서 (처음 성공한 것에서 멈춤):
1. developer token (네트워크 호출 없음)
2. 저장된 게임별 토큰 (만료 전)
3. 게임 간 공유 토큰 → 현재 게임으로 다시 저장
4. identity token (player_jwt) → exchange
5. 인터랙티브 로그인 (UI가 있을 때만, 없으면 NOT_AUTHENTICATED)
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from enum import Enum

import httpx

from playkit_auth.auth.exceptions import (
    ExchangeError,
    InvalidResponseError,
    NotAuthenticatedError,
)
from playkit_auth.auth.flows.headless_code import HeadlessCodeFlow
from playkit_auth.auth.flows.popup_oauth import PopupOAuthFlow
from playkit_auth.auth.state import AuthRecord, AuthState, TokenType
from playkit_auth.auth.storage.token_store import FileTokenStore, TokenStore
from playkit_auth.auth.ui.base import AuthUI
from playkit_auth.config import SDKConfig

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 86400  # 24시간


def _now() -> datetime:
    return datetime.now()


class AuthPhase(str, Enum):
    """AuthManager 상태"""

    UNINITIALIZED = "uninitialized"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"
    FLOW_IN_PROGRESS = "flow_in_progress"
    FAILED = "failed"


def parse_exchange_response(data) -> tuple[str, int]:
    """exchange 응답을 (player_token, expires_in) 하나의 형태로 정규화.

    ``playerToken``과 ``token`` 둘 다 허용한다.

    Raises:
        InvalidResponseError: 토큰이 없거나 expiresIn 형식이 잘못됨
    """
    if not isinstance(data, dict):
        raise InvalidResponseError("Invalid exchange response")
    player_token = data.get("playerToken") or data.get("token")
    if not player_token or not isinstance(player_token, str):
        raise InvalidResponseError("No player token received from server")
    expires_in = data.get("expiresIn") or DEFAULT_EXPIRES_IN
    try:
        expires_in = int(expires_in)
    except (TypeError, ValueError) as e:
        raise InvalidResponseError(f"Invalid expiresIn: {expires_in!r}") from e
    return player_token, expires_in


class AuthManager:
    """인증 오케스트레이터.

    Events:
        authenticated: AuthState
        unauthenticated: (인자 없음)
        error: Exception

    Example:
        manager = AuthManager(SDKConfig(game_id="my-game"), ui=console_ui())
        manager.on("authenticated", lambda state: print(state.token_type))
        await manager.initialize()
        token = manager.get_token()
    """

    JWT_EXCHANGE_ENDPOINT = "/api/external/exchange-jwt"
    EVENTS = ("authenticated", "unauthenticated", "error")

    def __init__(
        self,
        config: SDKConfig,
        store: TokenStore | None = None,
        ui: AuthUI | None = None,
    ):
        """초기화.

        Args:
            config: SDK 설정
            store: 토큰 저장소 (기본: FileTokenStore)
            ui: UI 표시 능력 (None이면 비대화형 환경)
        """
        self.config = config
        self.base_url = config.base_url
        self.store = store or FileTokenStore()
        self.ui = ui
        if config.debug:
            logging.getLogger("playkit_auth").setLevel(logging.DEBUG)

        self._state = AuthState.unauthenticated()
        self._phase = AuthPhase.UNINITIALIZED
        self._flow: HeadlessCodeFlow | PopupOAuthFlow | None = None
        self._listeners: dict[str, list[Callable]] = {event: [] for event in self.EVENTS}

    # ------------------------------------------------------------------
    # 이벤트
    # ------------------------------------------------------------------

    def on(self, event: str, callback: Callable) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown event '{event}'")
        self._listeners[event].append(callback)

    def off(self, event: str, callback: Callable) -> None:
        if event in self._listeners and callback in self._listeners[event]:
            self._listeners[event].remove(callback)

    def _emit(self, event: str, *args) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(*args)
            except Exception:
                logger.exception("Listener for '%s' failed", event)

    # ------------------------------------------------------------------
    # 상태 조회
    # ------------------------------------------------------------------

    @property
    def phase(self) -> AuthPhase:
        return self._phase

    @property
    def flow_in_progress(self) -> bool:
        return self._flow is not None

    def get_token(self) -> str | None:
        return self._state.token

    def get_auth_state(self) -> AuthState:
        return self._state

    def is_authenticated(self) -> bool:
        return self._state.is_authenticated

    def is_token_expired(self) -> bool:
        return self._state.is_expired()

    # ------------------------------------------------------------------
    # 인증
    # ------------------------------------------------------------------

    async def initialize(self) -> AuthState:
        """인증 초기화.

        Returns:
            AuthState: 인증된 상태

        Raises:
            NotAuthenticatedError: 인증 수단이 없고 UI도 없음
            AuthenticationError: exchange 또는 로그인 플로우 실패
        """
        game_id = self.config.game_id

        # 1. developer token (개발 모드)
        if self.config.developer_token:
            logger.debug("Using developer token")
            self._authenticate(
                AuthState(
                    is_authenticated=True,
                    token=self.config.developer_token,
                    token_type=TokenType.DEVELOPER,
                )
            )
            return self._state

        # 2. 저장된 게임별 토큰
        record = await self.store.load_auth_record(game_id)
        if record is not None and record.token:
            if record.is_valid():
                logger.debug("Using cached token for game %s", game_id)
                self._authenticate(record.to_state())
                return self._state
            logger.debug("Cached token for game %s expired", game_id)

        # 3. 게임 간 공유 토큰
        shared_token = await self.store.load_shared_token()
        if shared_token:
            logger.debug("Using shared token for game %s", game_id)
            state = AuthState(
                is_authenticated=True,
                token=shared_token,
                token_type=TokenType.PLAYER,
            )
            await self._persist(state, shared=False)
            self._authenticate(state)
            return self._state

        # 4. identity token 교환
        if self.config.player_jwt:
            await self.exchange_jwt(self.config.player_jwt)
            return self._state

        # 5. 인터랙티브 로그인
        self._phase = AuthPhase.UNAUTHENTICATED
        self._emit("unauthenticated")

        if self.ui is None:
            raise NotAuthenticatedError(
                "No authentication token provided. Please provide developer_token, "
                "player_jwt, or call start_auth_flow() with a UI."
            )

        await self.start_auth_flow()
        return self._state

    async def start_auth_flow(self, use_external: bool | None = None) -> None:
        """인터랙티브 로그인 시작.

        이미 진행 중인 플로우가 있으면 아무 것도 하지 않는다.

        Args:
            use_external: True면 popup flow, False면 headless flow,
                None이면 config.auth_method 사용
        """
        if self._flow is not None:
            logger.debug("Auth flow already in progress")
            return

        if use_external is None:
            use_external = self.config.use_external_auth

        flow = self._create_flow(use_external)
        self._flow = flow
        self._phase = AuthPhase.FLOW_IN_PROGRESS
        try:
            if use_external:
                # popup flow는 player token을 바로 반환
                player_token = await flow.start()
                state = AuthState(
                    is_authenticated=True,
                    token=player_token,
                    token_type=TokenType.PLAYER,
                )
                await self._persist(state)
                self._authenticate(state)
            else:
                # headless flow는 global token → player token 교환
                global_token = await flow.start()
                await self._exchange(global_token)
        except Exception as e:
            self._teardown_flow()
            self._phase = AuthPhase.FAILED
            logger.warning("Auth flow failed: %r", e)
            self._emit("error", e)
            raise
        finally:
            self._teardown_flow()

    async def exchange_jwt(self, identity_token: str) -> str:
        """identity token을 player token으로 교환.

        Args:
            identity_token: 외부 identity token 또는 global token

        Returns:
            str: player token

        Raises:
            ExchangeError: 서버 거부 (서버 message / code / status 포함)
            InvalidResponseError: 응답에 토큰 없음
        """
        try:
            return await self._exchange(identity_token)
        except Exception as e:
            self._emit("error", e)
            raise

    async def logout(self) -> None:
        """로그아웃. 현재 게임의 저장 레코드만 삭제."""
        self._state = AuthState.unauthenticated()
        self._phase = AuthPhase.UNAUTHENTICATED
        await self.store.clear_auth_record(self.config.game_id)
        self._emit("unauthenticated")

    async def clear_all(self) -> None:
        """모든 저장 레코드와 공유 토큰 삭제"""
        await self.store.clear_all()

    # ------------------------------------------------------------------
    # 내부
    # ------------------------------------------------------------------

    def _create_flow(self, use_external: bool) -> HeadlessCodeFlow | PopupOAuthFlow:
        if self.ui is None:
            raise NotAuthenticatedError("Interactive login is not available")

        timeout = self.config.http_timeout
        if use_external:
            if not self.ui.supports_popup:
                raise NotAuthenticatedError("Popup login is not available")
            return PopupOAuthFlow(
                self.base_url,
                self.config.game_id,
                presenter=self.ui.login_presenter_factory(),
                window_host=self.ui.window_host,
                timeout=timeout,
            )

        if not self.ui.supports_headless:
            raise NotAuthenticatedError("Verification code login is not available")
        return HeadlessCodeFlow(
            self.base_url,
            presenter=self.ui.code_presenter_factory(),
            timeout=timeout,
        )

    def _teardown_flow(self) -> None:
        if self._flow is not None:
            flow, self._flow = self._flow, None
            flow.destroy()

    async def _exchange(self, identity_token: str) -> str:
        try:
            async with httpx.AsyncClient(timeout=self.config.http_timeout) as client:
                response = await client.post(
                    f"{self.base_url}{self.JWT_EXCHANGE_ENDPOINT}",
                    json={"gameId": self.config.game_id},
                    headers={
                        "Authorization": f"Bearer {identity_token}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.HTTPError as e:
            raise ExchangeError(f"JWT exchange failed: {e}") from e

        if not 200 <= response.status_code < 300:
            try:
                error = response.json()
            except ValueError:
                error = {}
            if not isinstance(error, dict):
                error = {}
            raise ExchangeError(
                error.get("message") or "JWT exchange failed",
                status_code=response.status_code,
                error_code=error.get("code"),
            )

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponseError("Invalid exchange response") from e

        player_token, expires_in = parse_exchange_response(data)
        state = AuthState(
            is_authenticated=True,
            token=player_token,
            token_type=TokenType.PLAYER,
            expires_at=_now() + timedelta(seconds=expires_in),
        )
        await self._persist(state)
        self._authenticate(state)
        return player_token

    async def _persist(self, state: AuthState, shared: bool = True) -> None:
        record = AuthRecord(
            game_id=self.config.game_id,
            token=state.token,
            token_type=state.token_type,
            expires_at=state.expires_at,
        )
        if not await self.store.save_auth_record(self.config.game_id, record):
            logger.warning("Failed to persist auth record for %s", self.config.game_id)
        if shared and not await self.store.save_shared_token(state.token):
            logger.warning("Failed to persist shared token")

    def _authenticate(self, state: AuthState) -> None:
        self._state = state
        self._phase = AuthPhase.AUTHENTICATED
        self._emit("authenticated", state)
