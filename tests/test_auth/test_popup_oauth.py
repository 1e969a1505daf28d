"""Popup OAuth + PKCE flow 테스트"""

import asyncio
import base64
import hashlib

import httpx
import pytest

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
from playkit_auth.auth.flows.popup_oauth import (
    CALLBACK_MESSAGE_TYPE,
    POPUP_FEATURES,
    POPUP_NAME,
    REDIRECT_URI,
    GameInfo,
    PKCEChallenge,
    PopupOAuthFlow,
    derive_code_challenge,
    generate_pkce_challenge,
    generate_state,
    origin_of,
)
from tests.helpers import (
    GAME_ORIGIN,
    FakeLoginPresenter,
    FakeWindowHost,
    make_response,
    wait_until,
)

BASE_URL = "https://auth.example.com"
GAME_INFO = make_response(200, {"id": "game-1", "name": "Space Cats", "icon": None})
TOKEN_OK = make_response(200, {"access_token": "player-1", "token_type": "Bearer"})


@pytest.fixture
def presenter():
    return FakeLoginPresenter()


@pytest.fixture
def host():
    return FakeWindowHost()


@pytest.fixture
def flow(presenter, host):
    return PopupOAuthFlow(BASE_URL, "game-1", presenter=presenter, window_host=host)


def callback(state: str, **fields) -> dict:
    return {"type": CALLBACK_MESSAGE_TYPE, "state": state, **fields}


async def start_and_wait_for_popup(flow, host):
    task = asyncio.create_task(flow.start())
    await wait_until(lambda: host.listeners or task.done())
    return task


class TestPKCE:
    """PKCE 생성 테스트"""

    def test_challenge_is_sha256_of_verifier(self):
        pkce = generate_pkce_challenge()

        digest = hashlib.sha256(pkce.code_verifier.encode()).digest()
        expected = base64.urlsafe_b64encode(digest).rstrip(b"=").decode()
        assert pkce.code_challenge == expected
        assert pkce.code_challenge_method == "S256"

    def test_challenge_is_deterministic(self):
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        # RFC 7636 Appendix B
        assert derive_code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
        assert derive_code_challenge(verifier) == derive_code_challenge(verifier)

    def test_no_padding(self):
        pkce = generate_pkce_challenge()
        assert "=" not in pkce.code_verifier
        assert "=" not in pkce.code_challenge
        # 32 바이트 → 43자, SHA256 → 43자
        assert len(pkce.code_verifier) == 43
        assert len(pkce.code_challenge) == 43

    def test_unique_per_call(self):
        verifiers = {generate_pkce_challenge().code_verifier for _ in range(10)}
        assert len(verifiers) == 10

    def test_state(self):
        state = generate_state()
        assert len(state) == 22
        assert state != generate_state()


class TestHelpers:
    def test_origin_of(self):
        assert origin_of("https://Auth.Example.com/api/x?y=1") == "https://auth.example.com"
        assert origin_of("http://localhost:8080/path") == "http://localhost:8080"

    def test_game_info_from_dict(self):
        info = GameInfo.from_dict({"id": 42, "name": "Space Cats"})
        assert info.id == "42"
        assert info.description is None

    def test_requires_presenter_and_host(self, presenter):
        with pytest.raises(ValueError):
            PopupOAuthFlow(BASE_URL, "game-1", presenter=presenter)

    def test_auth_origin_from_base_url(self, flow):
        assert flow.auth_origin == BASE_URL

    def test_build_authorization_url(self, flow, host):
        pkce = PKCEChallenge(code_verifier="v", code_challenge="c")
        url = flow.build_authorization_url(pkce, "s-1")
        host.opened.append(url)

        assert url.startswith(f"{BASE_URL}/external-auth/authorize?")
        assert host.opened_params() == {
            "response_type": "code",
            "game_id": "game-1",
            "redirect_uri": REDIRECT_URI,
            "code_challenge": "c",
            "code_challenge_method": "S256",
            "state": "s-1",
            "origin": GAME_ORIGIN,
        }


class TestPopupOAuthFlow:
    """전체 플로우 테스트"""

    @pytest.mark.asyncio
    async def test_success(self, flow, presenter, host, mock_http):
        mock_http.get.return_value = GAME_INFO
        mock_http.post.return_value = TOKEN_OK

        task = await start_and_wait_for_popup(flow, host)
        params = host.opened_params()
        host.post(BASE_URL, callback(params["state"], code="auth-code"))

        assert await task == "player-1"

        # 게임 정보 조회
        args, kwargs = mock_http.get.call_args
        assert args[0] == f"{BASE_URL}/api/external-auth/game-info"
        assert kwargs["params"] == {"game_id": "game-1"}
        assert presenter.shown.name == "Space Cats"
        assert presenter.waiting

        # 토큰 교환에 PKCE verifier 전달
        args, kwargs = mock_http.post.call_args
        assert args[0] == f"{BASE_URL}/api/external-auth/token"
        body = kwargs["json"]
        assert body["grant_type"] == "authorization_code"
        assert body["code"] == "auth-code"
        assert body["redirect_uri"] == REDIRECT_URI
        assert derive_code_challenge(body["code_verifier"]) == params["code_challenge"]

        # 정리
        assert host.listeners == []
        assert host.popup.closed
        assert presenter.close_count == 1

    @pytest.mark.asyncio
    async def test_popup_options(self, flow, host, mock_http, monkeypatch):
        mock_http.get.return_value = GAME_INFO
        calls = []
        original_open = host.open

        def spy_open(url, name, features):
            calls.append((name, features))
            return original_open(url, name, features)

        monkeypatch.setattr(host, "open", spy_open)

        task = await start_and_wait_for_popup(flow, host)
        flow.destroy()

        assert calls == [(POPUP_NAME, POPUP_FEATURES)]
        with pytest.raises(UserCancelledError):
            await task

    @pytest.mark.asyncio
    async def test_wrong_origin_ignored(self, flow, presenter, host, mock_http):
        mock_http.get.return_value = GAME_INFO
        mock_http.post.return_value = TOKEN_OK

        task = await start_and_wait_for_popup(flow, host)
        state = host.opened_params()["state"]

        # 호출자 자신의 origin에서 온 메시지도 무시
        host.post(GAME_ORIGIN, callback(state, code="auth-code"))
        host.post("https://evil.example.com", callback(state, code="auth-code"))
        for _ in range(10):
            await asyncio.sleep(0)

        assert not task.done()
        mock_http.post.assert_not_called()

        presenter.prompt.cancel()
        with pytest.raises(UserCancelledError):
            await task

    @pytest.mark.asyncio
    async def test_wrong_type_ignored(self, flow, host, mock_http):
        mock_http.get.return_value = GAME_INFO
        mock_http.post.return_value = TOKEN_OK

        task = await start_and_wait_for_popup(flow, host)
        state = host.opened_params()["state"]

        host.post(BASE_URL, {"type": "something_else", "state": state, "code": "x"})
        host.post(BASE_URL, "not a dict")
        for _ in range(10):
            await asyncio.sleep(0)
        assert not task.done()

        host.post(BASE_URL, callback(state, code="auth-code"))
        assert await task == "player-1"

    @pytest.mark.asyncio
    async def test_state_mismatch_never_exchanges(self, flow, host, mock_http):
        mock_http.get.return_value = GAME_INFO
        mock_http.post.return_value = TOKEN_OK

        task = await start_and_wait_for_popup(flow, host)
        host.post(BASE_URL, callback("forged-state", code="auth-code"))

        with pytest.raises(StateMismatchError) as exc_info:
            await task

        assert exc_info.value.code == ErrorCode.STATE_MISMATCH
        mock_http.post.assert_not_called()
        assert host.listeners == []

    @pytest.mark.asyncio
    async def test_callback_error(self, flow, host, mock_http):
        mock_http.get.return_value = GAME_INFO

        task = await start_and_wait_for_popup(flow, host)
        state = host.opened_params()["state"]
        host.post(
            BASE_URL,
            callback(state, error="access_denied", error_description="User denied access"),
        )

        with pytest.raises(OAuthError) as exc_info:
            await task

        assert str(exc_info.value) == "User denied access"
        assert exc_info.value.code == ErrorCode.AUTH_ERROR
        assert exc_info.value.error_code == "access_denied"
        mock_http.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_code(self, flow, host, mock_http):
        mock_http.get.return_value = GAME_INFO

        task = await start_and_wait_for_popup(flow, host)
        host.post(BASE_URL, callback(host.opened_params()["state"]))

        with pytest.raises(ProtocolError) as exc_info:
            await task

        assert exc_info.value.code == ErrorCode.NO_CODE

    @pytest.mark.asyncio
    async def test_popup_blocked(self, presenter, mock_http):
        host = FakeWindowHost(blocked=True)
        flow = PopupOAuthFlow(BASE_URL, "game-1", presenter=presenter, window_host=host)
        mock_http.get.return_value = GAME_INFO

        with pytest.raises(PopupBlockedError) as exc_info:
            await flow.start()

        assert exc_info.value.code == ErrorCode.POPUP_BLOCKED
        # 리스너를 등록하지 않음
        assert host.add_count == 0
        assert presenter.close_count == 1

    @pytest.mark.asyncio
    async def test_cancel_at_login_prompt(self, host, mock_http):
        presenter = FakeLoginPresenter(auto_click=False)
        flow = PopupOAuthFlow(BASE_URL, "game-1", presenter=presenter, window_host=host)
        mock_http.get.return_value = GAME_INFO

        task = asyncio.create_task(flow.start())
        await wait_until(lambda: presenter.prompt is not None)
        presenter.prompt.cancel()

        with pytest.raises(UserCancelledError):
            await task
        assert host.opened == []
        assert presenter.close_count == 1

    @pytest.mark.asyncio
    async def test_cancel_while_waiting(self, flow, presenter, host, mock_http):
        mock_http.get.return_value = GAME_INFO

        task = await start_and_wait_for_popup(flow, host)
        popup = host.popup
        state = host.opened_params()["state"]
        presenter.prompt.cancel()

        with pytest.raises(UserCancelledError) as exc_info:
            await task

        assert exc_info.value.code == ErrorCode.USER_CANCELLED
        assert host.listeners == []
        assert popup.closed

        # 늦게 도착한 메시지는 효과 없음
        host.post(BASE_URL, callback(state, code="auth-code"))
        mock_http.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_game_info_failure(self, flow, presenter, host, mock_http):
        mock_http.get.return_value = make_response(404)

        with pytest.raises(GameInfoError) as exc_info:
            await flow.start()

        assert exc_info.value.status_code == 404
        assert presenter.shown is None
        assert host.opened == []

    @pytest.mark.asyncio
    async def test_game_info_network_error(self, flow, mock_http):
        mock_http.get.side_effect = httpx.ConnectError("unreachable")

        with pytest.raises(GameInfoError):
            await flow.start()

    @pytest.mark.asyncio
    async def test_token_exchange_rejected(self, flow, host, mock_http):
        mock_http.get.return_value = GAME_INFO
        mock_http.post.return_value = make_response(
            400, {"error": "invalid_grant", "error_description": "Code expired"}
        )

        task = await start_and_wait_for_popup(flow, host)
        host.post(BASE_URL, callback(host.opened_params()["state"], code="auth-code"))

        with pytest.raises(TokenExchangeError) as exc_info:
            await task

        assert str(exc_info.value) == "Code expired"
        assert exc_info.value.status_code == 400
        assert exc_info.value.error_code == "invalid_grant"

    @pytest.mark.asyncio
    async def test_token_response_without_access_token(self, flow, host, mock_http):
        mock_http.get.return_value = GAME_INFO
        mock_http.post.return_value = make_response(200, {"token_type": "Bearer"})

        task = await start_and_wait_for_popup(flow, host)
        host.post(BASE_URL, callback(host.opened_params()["state"], code="auth-code"))

        with pytest.raises(InvalidResponseError):
            await task

    @pytest.mark.asyncio
    async def test_start_only_once(self, flow, host, mock_http):
        mock_http.get.return_value = GAME_INFO
        mock_http.post.return_value = TOKEN_OK

        task = await start_and_wait_for_popup(flow, host)
        with pytest.raises(RuntimeError):
            await flow.start()

        host.post(BASE_URL, callback(host.opened_params()["state"], code="auth-code"))
        assert await task == "player-1"

    @pytest.mark.asyncio
    async def test_destroy_is_idempotent(self, flow, presenter, host, mock_http):
        mock_http.get.return_value = GAME_INFO

        task = await start_and_wait_for_popup(flow, host)
        flow.destroy()
        flow.destroy()

        with pytest.raises(UserCancelledError):
            await task
        assert host.listeners == []
        assert presenter.close_count == 1
