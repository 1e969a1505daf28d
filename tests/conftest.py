"""Shared test fixtures."""

from unittest.mock import AsyncMock, patch

import pytest

from tests.helpers import make_response


@pytest.fixture(autouse=True)
def playkit_config_dir(tmp_path, monkeypatch):
    """Redirect default token storage to tmp directory.

    Prevents tests from writing tokens into the real user config dir.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("APPDATA", str(tmp_path / "config"))
    for name in (
        "PLAYKIT_GAME_ID",
        "PLAYKIT_DEVELOPER_TOKEN",
        "PLAYKIT_PLAYER_JWT",
        "PLAYKIT_BASE_URL",
        "PLAYKIT_AUTH_METHOD",
        "PLAYKIT_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_http():
    """httpx.AsyncClient 패치.

    반환값은 ``async with`` 안의 client (post/get은 AsyncMock).
    ``mock_http.factory``로 AsyncClient 생성 횟수를 확인할 수 있다.
    """
    with patch("httpx.AsyncClient") as mock_client:
        instance = AsyncMock()
        mock_client.return_value.__aenter__.return_value = instance
        mock_client.return_value.__aexit__.return_value = False
        instance.get.return_value = make_response(503)
        instance.post.return_value = make_response(503)
        instance.factory = mock_client
        yield instance
