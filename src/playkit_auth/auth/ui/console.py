"""Console UI

rich 기반 터미널 로그인 화면.
입력은 daemon 스레드에서 받고, flow 호출은 이벤트 루프로 넘긴다.
"""

import asyncio
import logging
import threading
from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel

from playkit_auth.auth.ui.base import (
    CodeFlowPresenter,
    CodePanel,
    IdentifierType,
    LoginPresenter,
    LoginPrompt,
)

if TYPE_CHECKING:
    from playkit_auth.auth.flows.headless_code import HeadlessCodeFlow
    from playkit_auth.auth.flows.popup_oauth import GameInfo

logger = logging.getLogger(__name__)

CANCEL_WORDS = {"q", "quit", "cancel"}


class _LoopBridge:
    """입력 스레드 → 이벤트 루프 호출"""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.loop = loop

    def call(self, fn, *args) -> None:
        try:
            self.loop.call_soon_threadsafe(fn, *args)
        except RuntimeError:
            # 루프가 이미 종료됨
            pass

    def run(self, coro):
        try:
            return asyncio.run_coroutine_threadsafe(coro, self.loop).result()
        except RuntimeError:
            coro.close()
            return None


class ConsoleCodePresenter(CodeFlowPresenter):
    """Headless code flow 터미널 화면"""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self._flow: "HeadlessCodeFlow | None" = None
        self._bridge: _LoopBridge | None = None
        self._identifier_type = IdentifierType.EMAIL
        self._closed = False

    def open(self, flow: "HeadlessCodeFlow") -> None:
        self._flow = flow
        self._bridge = _LoopBridge(asyncio.get_running_loop())
        self.console.print()
        self.console.print(
            Panel.fit(
                "[bold cyan]Sign In / Register[/bold cyan]\n\n"
                "If you don't have an account, we'll create one for you.",
                title="[AUTH] PlayKit Login",
                border_style="cyan",
            )
        )
        threading.Thread(target=self._drive, daemon=True).start()

    def select_identifier_type(self, identifier_type: IdentifierType) -> None:
        self._identifier_type = identifier_type

    def show_identifier_panel(self) -> None:
        self.console.print("[dim]Enter your email address or phone number.[/dim]")

    def show_code_panel(self, identifier: str) -> None:
        self.console.print(
            Panel.fit(
                f"[bold cyan]Enter Code[/bold cyan]\n\n"
                f"We've sent a 6-digit code to your "
                f"{self._identifier_type.value}: [bold]{identifier}[/bold]",
                border_style="cyan",
            )
        )

    def show_error(self, message: str, panel: CodePanel) -> None:
        self.console.print(f"[bold red]{message}[/bold red]")

    def set_loading(self, loading: bool) -> None:
        if loading:
            self.console.print("[dim]...[/dim]")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

    def _prompt(self, text: str) -> str | None:
        try:
            return self.console.input(text).strip()
        except (EOFError, KeyboardInterrupt):
            return None

    def _drive(self) -> None:
        """입력 루프 (daemon 스레드)"""
        flow, bridge = self._flow, self._bridge
        while not self._closed and not flow.done:
            if flow.panel == CodePanel.IDENTIFIER:
                other = (
                    IdentifierType.PHONE
                    if self._identifier_type == IdentifierType.EMAIL
                    else IdentifierType.EMAIL
                )
                answer = self._prompt(
                    f"[bold]{self._identifier_type.value.capitalize()}[/bold] "
                    f"[dim]('{other.value}' to switch, 'q' to cancel)[/dim]: "
                )
                if self._closed:
                    break
                if answer is None or answer.lower() in CANCEL_WORDS:
                    bridge.call(flow.cancel)
                    break
                if answer.lower() == other.value:
                    bridge.call(flow.select_identifier_type, other)
                    continue
                bridge.run(flow.submit_identifier(answer))
            elif flow.panel == CodePanel.CODE:
                answer = self._prompt(
                    "[bold]Code[/bold] [dim]('b' to go back, 'q' to cancel)[/dim]: "
                )
                if self._closed:
                    break
                if answer is None or answer.lower() in CANCEL_WORDS:
                    bridge.call(flow.cancel)
                    break
                if answer.lower() == "b":
                    bridge.call(flow.go_back)
                    continue
                # 한 줄 입력 = 전체 코드 붙여넣기
                bridge.call(flow.code_input.clear)
                if not bridge.run(flow.paste_code(answer)) and not flow.done:
                    if not flow.code_input.is_complete:
                        bridge.run(flow.submit_code())
            else:
                break


class ConsoleLoginPresenter(LoginPresenter):
    """Popup flow 터미널 확인 화면"""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self._prompt: LoginPrompt | None = None
        self._closed = False

    def show_login(self, game_info: "GameInfo") -> LoginPrompt:
        self._prompt = LoginPrompt.create()
        bridge = _LoopBridge(asyncio.get_running_loop())

        body = f"[bold cyan]{game_info.name}[/bold cyan]"
        if game_info.description:
            body += f"\n\n{game_info.description}"
        self.console.print()
        self.console.print(
            Panel.fit(body, title="[AUTH] Login to Play", border_style="cyan")
        )

        def wait_for_input():
            prompt = self._prompt
            answer = self._read("[bold]Press Enter to login[/bold] [dim]('q' to cancel)[/dim]: ")
            if self._closed:
                return
            if answer is None or answer.lower() in CANCEL_WORDS:
                bridge.call(prompt.cancel)
                return
            bridge.call(prompt.click)
            # 로그인 대기 중 취소
            answer = self._read("")
            if not self._closed:
                bridge.call(prompt.cancel)

        threading.Thread(target=wait_for_input, daemon=True).start()
        return self._prompt

    def show_waiting(self, game_info: "GameInfo") -> None:
        self.console.print(
            Panel.fit(
                "[bold cyan]Please login in the opened window[/bold cyan]\n\n"
                "[dim]Press Enter to cancel.[/dim]",
                title=f"[AUTH] {game_info.name}",
                border_style="cyan",
            )
        )

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

    def _read(self, text: str) -> str | None:
        try:
            return self.console.input(text).strip()
        except (EOFError, KeyboardInterrupt):
            return None
