"""Headless Verification Code Flow

이메일/전화번호로 6자리 인증 코드를 받아 로그인하는 플로우.
성공하면 짧은 수명의 global token을 반환하며,
AuthManager가 이를 player token으로 교환한다.

플로우:
1. 사용자가 이메일 또는 전화번호 입력 → send-code (sessionId 수신)
2. 6자리 코드 입력 → verify-code (sessionId + code)
3. 성공 시 globalToken 반환
"""

import asyncio
import logging
import re

import httpx

from playkit_auth.auth.exceptions import (
    AuthenticationError,
    ErrorCode,
    InvalidCodeError,
    InvalidResponseError,
    ProtocolError,
    SendCodeError,
    UserCancelledError,
    ValidationError,
    VerificationFailedError,
)
from playkit_auth.auth.ui.base import CodeFlowPresenter, CodePanel, IdentifierType
from playkit_auth.config import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)

MSG_ENTER_EMAIL = "Please enter your email address"
MSG_ENTER_PHONE = "Please enter your phone number"
MSG_ENTER_ALL_DIGITS = "Please enter all 6 digits"
MSG_FAILED_TO_SEND_CODE = "Failed to send code"
MSG_INVALID_CODE = "Invalid verification code"
MSG_VERIFICATION_FAILED = "Verification failed"


class CodeInput:
    """6칸 코드 입력 상태.

    각 칸은 숫자 한 글자만 받는다.
    """

    LENGTH = 6

    def __init__(self):
        self.cells: list[str] = [""] * self.LENGTH
        self.focus = 0

    @property
    def value(self) -> str:
        return "".join(self.cells)

    @property
    def is_complete(self) -> bool:
        return all(self.cells)

    def clear(self) -> None:
        self.cells = [""] * self.LENGTH
        self.focus = 0

    def enter(self, index: int, value: str) -> bool:
        """한 칸 입력.

        Args:
            index: 칸 번호 (0-5)
            value: 입력 문자 (마지막 한 글자만 사용)

        Returns:
            bool: 마지막 칸이 채워져 검증을 시작해야 하면 True
        """
        if not 0 <= index < self.LENGTH:
            raise IndexError(f"code cell index out of range: {index}")
        char = value[-1:] if value else ""
        if char and not char.isdigit():
            return False
        self.cells[index] = char
        if char and index < self.LENGTH - 1:
            self.focus = index + 1
        return index == self.LENGTH - 1 and bool(char)

    def backspace(self, index: int) -> None:
        """빈 칸에서 backspace → 이전 칸으로 포커스 이동"""
        if self.cells[index]:
            self.cells[index] = ""
            self.focus = index
        elif index > 0:
            self.focus = index - 1

    def paste(self, text: str) -> bool:
        """붙여넣기. 숫자만 앞에서부터 채운다.

        Returns:
            bool: 6자리가 모두 채워지면 True
        """
        digits = re.sub(r"\D", "", text or "")[: self.LENGTH]
        for i, digit in enumerate(digits):
            self.cells[i] = digit
        self.focus = min(len(digits), self.LENGTH - 1)
        return len(digits) == self.LENGTH


class HeadlessCodeFlow:
    """Verification code 로그인 플로우.

    결과는 한 번만 완료되는 Future로 전달된다.

    Example:
        flow = HeadlessCodeFlow(base_url, presenter=ConsoleCodePresenter())
        try:
            global_token = await flow.start()
        finally:
            flow.destroy()
    """

    SEND_CODE_ENDPOINT = "/api/auth/send-code"
    VERIFY_CODE_ENDPOINT = "/api/auth/verify-code"
    REACHABILITY_ENDPOINT = "/api/reachability"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        presenter: CodeFlowPresenter | None = None,
        timeout: float = 30.0,
    ):
        """초기화.

        Args:
            base_url: 백엔드 주소
            presenter: 화면 구현
            timeout: HTTP 타임아웃 (초)
        """
        if presenter is None:
            raise ValueError("HeadlessCodeFlow requires a presenter")
        self.base_url = base_url.rstrip("/")
        self.presenter = presenter
        self.timeout = timeout

        self.panel = CodePanel.IDENTIFIER
        self.identifier_type = IdentifierType.EMAIL
        self.identifier: str | None = None
        self.code_input = CodeInput()

        self._session_id: str | None = None
        self._type_selected_by_user = False
        self._busy = False
        self._result: asyncio.Future | None = None
        self._region_task: asyncio.Task | None = None
        self._destroyed = False

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def done(self) -> bool:
        return self._result is not None and self._result.done()

    async def start(self) -> str:
        """플로우 시작. global token으로 완료된다.

        Returns:
            str: global token

        Raises:
            UserCancelledError: 사용자가 취소한 경우
        """
        if self._result is not None:
            raise RuntimeError("HeadlessCodeFlow.start() can only be called once")

        self._result = asyncio.get_running_loop().create_future()
        self.presenter.open(self)
        self.presenter.select_identifier_type(self.identifier_type)
        self.presenter.show_identifier_panel()

        # 지역 기반 기본 식별자 선택 (실패해도 무시)
        self._region_task = asyncio.create_task(self._set_default_type_by_region())

        try:
            return await self._result
        finally:
            if not self._region_task.done():
                self._region_task.cancel()
            self.presenter.close()

    # ------------------------------------------------------------------
    # API
    # ------------------------------------------------------------------

    async def send_code(self, identifier: str, identifier_type: IdentifierType) -> str:
        """인증 코드 전송.

        Args:
            identifier: 이메일 또는 전화번호
            identifier_type: 식별자 종류

        Returns:
            str: session id

        Raises:
            ValidationError: 식별자가 비어 있음
            SendCodeError: 서버 거부 또는 네트워크 오류
            InvalidResponseError: 응답에 sessionId 없음
        """
        identifier_type = IdentifierType(identifier_type)
        identifier = (identifier or "").strip()
        if not identifier:
            message = (
                MSG_ENTER_EMAIL
                if identifier_type == IdentifierType.EMAIL
                else MSG_ENTER_PHONE
            )
            raise ValidationError(message)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}{self.SEND_CODE_ENDPOINT}",
                    json={"identifier": identifier, "type": identifier_type.value},
                )
        except httpx.HTTPError as e:
            raise SendCodeError(MSG_FAILED_TO_SEND_CODE) from e

        if not 200 <= response.status_code < 300:
            raise SendCodeError(MSG_FAILED_TO_SEND_CODE, status_code=response.status_code)

        data = _json_or_empty(response)
        if not data.get("success") or not data.get("sessionId"):
            raise InvalidResponseError(MSG_FAILED_TO_SEND_CODE)

        self._session_id = data["sessionId"]
        self.identifier = identifier
        self.identifier_type = identifier_type
        self._show_code_panel()
        logger.debug("Verification code sent (%s)", identifier_type.value)
        return self._session_id

    async def verify_code(self, code: str) -> str:
        """코드 검증.

        Args:
            code: 6자리 코드

        Returns:
            str: global token

        Raises:
            ValidationError: 6자리가 아님 (네트워크 호출 없음)
            ProtocolError: send_code 전에 호출됨 (NO_SESSION)
            InvalidCodeError: 서버가 코드를 거부함
            VerificationFailedError: 응답에 globalToken 없음
        """
        if len(code or "") != CodeInput.LENGTH:
            raise ValidationError(MSG_ENTER_ALL_DIGITS)
        if not self._session_id:
            raise ProtocolError("No session ID available", code=ErrorCode.NO_SESSION)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}{self.VERIFY_CODE_ENDPOINT}",
                    json={"sessionId": self._session_id, "code": code},
                )
        except httpx.HTTPError as e:
            raise VerificationFailedError(MSG_VERIFICATION_FAILED) from e

        if not 200 <= response.status_code < 300:
            raise InvalidCodeError(MSG_INVALID_CODE, status_code=response.status_code)

        data = _json_or_empty(response)
        if not data.get("success") or not data.get("globalToken"):
            raise VerificationFailedError(MSG_VERIFICATION_FAILED)

        logger.debug("Verification succeeded for user %s", data.get("userId"))
        return data["globalToken"]

    # ------------------------------------------------------------------
    # UI 핸들러
    # ------------------------------------------------------------------

    def select_identifier_type(
        self, identifier_type: IdentifierType, by_user: bool = True
    ) -> None:
        self.identifier_type = IdentifierType(identifier_type)
        if by_user:
            self._type_selected_by_user = True
        self.presenter.select_identifier_type(self.identifier_type)

    async def submit_identifier(
        self,
        identifier: str,
        identifier_type: IdentifierType | None = None,
    ) -> bool:
        """식별자 패널의 "Send Code" 처리. 에러는 패널에 표시한다."""
        if self.done or self._busy:
            return False
        if identifier_type is not None:
            self.select_identifier_type(identifier_type)

        self.presenter.clear_error(CodePanel.IDENTIFIER)
        self._busy = True
        self.presenter.set_loading(True)
        try:
            await self.send_code(identifier, self.identifier_type)
        except AuthenticationError as e:
            self.presenter.show_error(str(e), CodePanel.IDENTIFIER)
            return False
        finally:
            self._busy = False
            self.presenter.set_loading(False)
        return True

    async def input_digit(self, index: int, value: str) -> bool:
        """코드 칸 입력. 6번째 칸이 채워지면 자동 검증."""
        should_verify = self.code_input.enter(index, value)
        self._sync_cells()
        if should_verify:
            return await self.submit_code()
        return False

    def backspace(self, index: int) -> None:
        self.code_input.backspace(index)
        self._sync_cells()

    async def paste_code(self, text: str) -> bool:
        """코드 붙여넣기. 6자리면 자동 검증."""
        complete = self.code_input.paste(text)
        self._sync_cells()
        if complete:
            return await self.submit_code()
        return False

    async def submit_code(self) -> bool:
        """코드 패널의 "Verify" 처리.

        실패하면 패널에 에러를 표시하고 재시도를 기다린다.
        """
        if self.done or self._busy:
            return False

        self.presenter.clear_error(CodePanel.CODE)
        self._busy = True
        self.presenter.set_loading(True)
        try:
            global_token = await self.verify_code(self.code_input.value)
        except AuthenticationError as e:
            self.presenter.show_error(str(e), CodePanel.CODE)
            return False
        finally:
            self._busy = False
            self.presenter.set_loading(False)

        self._succeed(global_token)
        return True

    def go_back(self) -> None:
        """코드 패널 → 식별자 패널"""
        if self.panel != CodePanel.CODE:
            return
        self.panel = CodePanel.IDENTIFIER
        self.code_input.clear()
        self._sync_cells()
        self.presenter.show_identifier_panel()

    def cancel(self) -> None:
        self._fail(UserCancelledError("User cancelled login"))

    def destroy(self) -> None:
        """리소스 정리 (여러 번 호출 가능)"""
        if self._destroyed:
            return
        self._destroyed = True
        if self._region_task is not None and not self._region_task.done():
            self._region_task.cancel()
        if self._result is not None and not self._result.done():
            self._fail(UserCancelledError("Login flow was closed"))
        self.presenter.close()
        self._session_id = None

    # ------------------------------------------------------------------
    # 내부
    # ------------------------------------------------------------------

    def _show_code_panel(self) -> None:
        self.panel = CodePanel.CODE
        self.code_input.clear()
        self._sync_cells()
        self.presenter.show_code_panel(self.identifier or "")

    def _sync_cells(self) -> None:
        self.presenter.set_code_cells(list(self.code_input.cells), self.code_input.focus)

    def _succeed(self, token: str) -> None:
        if self._result is None or self._result.done():
            return
        self.panel = CodePanel.SUCCESS
        self._result.set_result(token)

    def _fail(self, error: Exception) -> None:
        if self._result is None or self._result.done():
            return
        self.panel = CodePanel.FAILED
        self._result.set_exception(error)

    async def _set_default_type_by_region(self) -> None:
        """접속 지역이 CN이면 전화번호를 기본으로 선택"""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.base_url}{self.REACHABILITY_ENDPOINT}")
            if response.status_code != 200:
                return
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Failed to detect region: %s", e)
            return

        if not isinstance(data, dict) or data.get("region") != "CN":
            return
        if self._type_selected_by_user or self.panel != CodePanel.IDENTIFIER:
            return
        self.select_identifier_type(IdentifierType.PHONE, by_user=False)


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
