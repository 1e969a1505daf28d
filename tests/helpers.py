"""테스트용 대역 (presenter, window host, HTTP 응답)"""

import asyncio
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

from playkit_auth.auth.ui.base import (
    CodeFlowPresenter,
    CrossWindowMessage,
    LoginPresenter,
    LoginPrompt,
    PopupWindow,
    WindowHost,
)

GAME_ORIGIN = "https://game.example.com"


def make_response(status_code: int = 200, data=None) -> MagicMock:
    """httpx.Response 대역 (json()은 동기 메서드)."""
    response = MagicMock()
    response.status_code = status_code
    if isinstance(data, Exception):
        response.json.side_effect = data
    else:
        response.json.return_value = {} if data is None else data
    return response


async def wait_until(predicate, iterations: int = 200) -> None:
    """이벤트 루프를 돌리며 조건이 참이 될 때까지 대기."""
    for _ in range(iterations):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


class FakeCodePresenter(CodeFlowPresenter):
    """화면 호출 기록용 presenter."""

    def __init__(self):
        self.flow = None
        self.panels: list = []
        self.errors: list = []
        self.identifier_type = None
        self.cells: list[str] = []
        self.focus = 0
        self.loading_changes: list[bool] = []
        self.close_count = 0

    def open(self, flow):
        self.flow = flow

    def show_identifier_panel(self):
        self.panels.append("identifier")

    def show_code_panel(self, identifier):
        self.panels.append(("code", identifier))

    def show_error(self, message, panel):
        self.errors.append((panel, message))

    def close(self):
        self.close_count += 1

    def select_identifier_type(self, identifier_type):
        self.identifier_type = identifier_type

    def set_loading(self, loading):
        self.loading_changes.append(loading)

    def set_code_cells(self, cells, focus):
        self.cells = cells
        self.focus = focus


class FakeLoginPresenter(LoginPresenter):
    """로그인 확인 화면 대역.

    auto_click이면 화면 표시 즉시 로그인 버튼을 누른다.
    """

    def __init__(self, auto_click: bool = True):
        self.auto_click = auto_click
        self.prompt: LoginPrompt | None = None
        self.shown = None
        self.waiting = False
        self.close_count = 0

    def show_login(self, game_info):
        self.shown = game_info
        self.prompt = LoginPrompt.create()
        if self.auto_click:
            self.prompt.click()
        return self.prompt

    def show_waiting(self, game_info):
        self.waiting = True

    def close(self):
        self.close_count += 1


class FakePopup(PopupWindow):
    def __init__(self):
        self._closed = False

    @property
    def closed(self):
        return self._closed

    def close(self):
        self._closed = True


class FakeWindowHost(WindowHost):
    """팝업/메시지 호스트 대역."""

    def __init__(self, blocked: bool = False, origin: str = GAME_ORIGIN):
        self.blocked = blocked
        self._origin = origin
        self.opened: list[str] = []
        self.popup: FakePopup | None = None
        self.listeners: list = []
        self.add_count = 0

    @property
    def origin(self):
        return self._origin

    def open(self, url, name, features):
        self.opened.append(url)
        if self.blocked:
            return None
        self.popup = FakePopup()
        return self.popup

    def add_message_listener(self, listener):
        self.add_count += 1
        self.listeners.append(listener)

    def remove_message_listener(self, listener):
        if listener in self.listeners:
            self.listeners.remove(listener)

    def post(self, origin: str, data) -> None:
        """팝업 → opener 메시지 전달"""
        for listener in list(self.listeners):
            listener(CrossWindowMessage(origin=origin, data=data))

    def opened_params(self) -> dict[str, str]:
        query = parse_qs(urlparse(self.opened[-1]).query)
        return {key: values[0] for key, values in query.items()}
