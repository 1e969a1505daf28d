"""UI ports

인터랙티브 로그인 플로우가 사용하는 UI 추상화.
AuthManager는 UI 환경을 직접 검사하지 않고 주입된 AuthUI만 본다.
AuthUI가 없으면 비대화형 환경으로 간주한다.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from playkit_auth.auth.flows.headless_code import HeadlessCodeFlow
    from playkit_auth.auth.flows.popup_oauth import GameInfo


class IdentifierType(str, Enum):
    """로그인 식별자 종류"""

    EMAIL = "email"
    PHONE = "phone"


class CodePanel(str, Enum):
    """HeadlessCodeFlow 패널 상태"""

    IDENTIFIER = "identifier"
    CODE = "code"
    SUCCESS = "success"
    FAILED = "failed"


class CodeFlowPresenter(ABC):
    """Headless code flow 화면.

    presenter는 사용자 입력을 받아 flow의 핸들러
    (submit_identifier, input_digit, paste_code, submit_code, go_back, cancel)를
    호출하고, flow는 아래 메서드로 화면을 갱신한다.
    """

    @abstractmethod
    def open(self, flow: "HeadlessCodeFlow") -> None:
        """화면 표시 및 flow 연결"""

    @abstractmethod
    def show_identifier_panel(self) -> None:
        """식별자 입력 패널 표시"""

    @abstractmethod
    def show_code_panel(self, identifier: str) -> None:
        """6자리 코드 입력 패널 표시"""

    @abstractmethod
    def show_error(self, message: str, panel: CodePanel) -> None:
        """패널 내 에러 메시지 표시"""

    @abstractmethod
    def close(self) -> None:
        """화면 제거 (여러 번 호출 가능)"""

    def select_identifier_type(self, identifier_type: IdentifierType) -> None:
        pass

    def clear_error(self, panel: CodePanel | None = None) -> None:
        pass

    def set_loading(self, loading: bool) -> None:
        pass

    def set_code_cells(self, cells: list[str], focus: int) -> None:
        pass


@dataclass
class LoginPrompt:
    """로그인 확인 화면의 두 결과.

    Attributes:
        clicked: 사용자가 로그인 버튼을 누르면 완료
        cancelled: 사용자가 취소하면 완료
    """

    clicked: asyncio.Future
    cancelled: asyncio.Future

    @classmethod
    def create(cls) -> "LoginPrompt":
        loop = asyncio.get_running_loop()
        return cls(clicked=loop.create_future(), cancelled=loop.create_future())

    def click(self) -> None:
        if not self.clicked.done():
            self.clicked.set_result(None)

    def cancel(self) -> None:
        if not self.cancelled.done():
            self.cancelled.set_result(None)


class LoginPresenter(ABC):
    """Popup flow 확인 화면."""

    @abstractmethod
    def show_login(self, game_info: "GameInfo") -> LoginPrompt:
        """게임 정보와 로그인/취소 버튼 표시"""

    @abstractmethod
    def show_waiting(self, game_info: "GameInfo") -> None:
        """팝업 로그인 대기 화면 (취소 버튼 유지)"""

    @abstractmethod
    def close(self) -> None:
        """화면 제거 (여러 번 호출 가능)"""


@dataclass(frozen=True)
class CrossWindowMessage:
    """창 간 메시지.

    Attributes:
        origin: 보낸 쪽 origin (전송 계층이 보증하는 값)
        data: 신뢰할 수 없는 payload
    """

    origin: str
    data: Any


MessageListener = Callable[[CrossWindowMessage], None]


class PopupWindow(ABC):
    """열린 팝업 창 핸들"""

    @property
    @abstractmethod
    def closed(self) -> bool:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


class WindowHost(ABC):
    """팝업을 열고 창 간 메시지를 전달하는 호스트."""

    @property
    @abstractmethod
    def origin(self) -> str:
        """호출자 자신의 origin (authorize URL에 전달)"""

    @abstractmethod
    def open(self, url: str, name: str, features: str) -> PopupWindow | None:
        """팝업 열기. 차단되면 None."""

    @abstractmethod
    def add_message_listener(self, listener: MessageListener) -> None:
        pass

    @abstractmethod
    def remove_message_listener(self, listener: MessageListener) -> None:
        pass


@dataclass
class AuthUI:
    """UI 표시 능력.

    각 플로우는 필요한 구성 요소가 있을 때만 시작할 수 있다.
    """

    code_presenter_factory: Callable[[], CodeFlowPresenter] | None = None
    login_presenter_factory: Callable[[], LoginPresenter] | None = None
    window_host: WindowHost | None = None

    @property
    def supports_headless(self) -> bool:
        return self.code_presenter_factory is not None

    @property
    def supports_popup(self) -> bool:
        return self.login_presenter_factory is not None and self.window_host is not None
