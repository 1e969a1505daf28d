"""Loopback Window Host

시스템 브라우저를 팝업으로 사용하는 WindowHost.
authorization 페이지는 결과 메시지를 localhost의 ``POST /message``로 보내고,
보낸 쪽 origin은 브라우저가 붙이는 ``Origin`` 헤더에서 얻는다.
"""

import asyncio
import json
import logging
import threading
import webbrowser
from collections.abc import Callable
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlparse

from playkit_auth.auth.ui.base import (
    CrossWindowMessage,
    MessageListener,
    PopupWindow,
    WindowHost,
)

logger = logging.getLogger(__name__)

MAX_MESSAGE_BYTES = 64 * 1024


class MessageRelayHandler(BaseHTTPRequestHandler):
    """창 간 메시지 수신 핸들러."""

    server: "_RelayServer"

    def log_message(self, format, *args):
        """로그 출력 비활성화."""
        pass

    def _send_cors_headers(self) -> None:
        origin = self.headers.get("Origin")
        if origin:
            self.send_header("Access-Control-Allow-Origin", origin)
            self.send_header("Vary", "Origin")
        self.send_header("Access-Control-Allow-Methods", "POST, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")

    def do_OPTIONS(self):
        """CORS preflight"""
        self.send_response(204)
        self._send_cors_headers()
        self.end_headers()

    def do_POST(self):
        if urlparse(self.path).path != "/message":
            self.send_response(404)
            self.end_headers()
            return

        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = -1
        if length <= 0 or length > MAX_MESSAGE_BYTES:
            self.send_response(400)
            self.end_headers()
            return

        try:
            data = json.loads(self.rfile.read(length))
        except ValueError:
            self.send_response(400)
            self._send_cors_headers()
            self.end_headers()
            return

        # Origin 헤더가 없으면 "null" (opaque origin)
        origin = self.headers.get("Origin") or "null"
        self.server.window_host.dispatch(CrossWindowMessage(origin=origin, data=data))

        self.send_response(204)
        self._send_cors_headers()
        self.end_headers()


class _RelayServer(ThreadingHTTPServer):
    daemon_threads = True
    window_host: "LoopbackWindowHost"


class BrowserPopup(PopupWindow):
    """시스템 브라우저 탭. 프로그램에서 닫을 수 없으므로 상태만 관리."""

    def __init__(self):
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True


class LoopbackWindowHost(WindowHost):
    """localhost 메시지 릴레이 + 시스템 브라우저.

    Example:
        host = LoopbackWindowHost()
        try:
            ...
        finally:
            host.shutdown()
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 0,
        open_browser: Callable[[str], bool] = webbrowser.open,
    ):
        self.host = host
        self.port = port
        self._open_browser = open_browser
        self._server: _RelayServer | None = None
        self._thread: threading.Thread | None = None
        self._listeners: list[MessageListener] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock = threading.Lock()

    @property
    def origin(self) -> str:
        self._ensure_server()
        return f"http://{self.host}:{self.port}"

    def _ensure_server(self) -> None:
        with self._lock:
            if self._server is not None:
                return
            server = _RelayServer((self.host, self.port), MessageRelayHandler)
            server.window_host = self
            self.port = server.server_address[1]
            self._server = server
            self._thread = threading.Thread(target=server.serve_forever, daemon=True)
            self._thread.start()
            logger.debug("Message relay listening on %s:%d", self.host, self.port)

    def open(self, url: str, name: str, features: str) -> PopupWindow | None:
        self._ensure_server()
        try:
            opened = self._open_browser(url)
        except webbrowser.Error as e:
            logger.warning("Failed to open browser: %s", e)
            opened = False
        if not opened:
            return None
        return BrowserPopup()

    def add_message_listener(self, listener: MessageListener) -> None:
        self._loop = asyncio.get_running_loop()
        self._listeners.append(listener)

    def remove_message_listener(self, listener: MessageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def dispatch(self, message: CrossWindowMessage) -> None:
        """서버 스레드에서 호출. 리스너는 이벤트 루프에서 실행한다."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._deliver, message)
        except RuntimeError:
            pass

    def _deliver(self, message: CrossWindowMessage) -> None:
        for listener in list(self._listeners):
            listener(message)

    def shutdown(self) -> None:
        with self._lock:
            server, self._server = self._server, None
        if server is None:
            return
        server.shutdown()
        server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=2)
            self._thread = None
        logger.debug("Message relay closed")
