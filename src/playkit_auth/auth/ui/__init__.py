"""Login UI

UI 포트 정의와 기본 구현 (rich 터미널 화면, 시스템 브라우저 팝업).
"""

from rich.console import Console

from playkit_auth.auth.ui.base import (
    AuthUI,
    CodeFlowPresenter,
    CodePanel,
    CrossWindowMessage,
    IdentifierType,
    LoginPresenter,
    LoginPrompt,
    PopupWindow,
    WindowHost,
)
from playkit_auth.auth.ui.console import ConsoleCodePresenter, ConsoleLoginPresenter
from playkit_auth.auth.ui.loopback import LoopbackWindowHost


def console_ui(
    console: Console | None = None,
    window_host: WindowHost | None = None,
) -> AuthUI:
    """터미널용 AuthUI 생성.

    Args:
        console: rich Console (기본: 새 Console)
        window_host: 팝업 호스트 (기본: LoopbackWindowHost)
    """
    console = console or Console()
    return AuthUI(
        code_presenter_factory=lambda: ConsoleCodePresenter(console),
        login_presenter_factory=lambda: ConsoleLoginPresenter(console),
        window_host=window_host or LoopbackWindowHost(),
    )


__all__ = [
    # Ports
    "AuthUI",
    "CodeFlowPresenter",
    "CodePanel",
    "IdentifierType",
    "LoginPresenter",
    "LoginPrompt",
    "WindowHost",
    "PopupWindow",
    "CrossWindowMessage",
    # Implementations
    "ConsoleCodePresenter",
    "ConsoleLoginPresenter",
    "LoopbackWindowHost",
    "console_ui",
]
