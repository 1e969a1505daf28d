"""CLI 테스트"""

from unittest.mock import AsyncMock, patch

import pytest

from playkit_auth.__main__ import build_parser, main, make_store
from playkit_auth.auth.storage import (
    FileTokenStore,
    KeyringTokenStore,
    MemoryTokenStore,
)
from tests.helpers import make_response


class TestParser:
    def test_login_options(self):
        args = build_parser().parse_args(
            ["login", "--game-id", "game-1", "--auth-method", "headless", "--store", "memory"]
        )
        assert args.command == "login"
        assert args.game_id == "game-1"
        assert args.auth_method == "headless"
        assert args.store == "memory"

    def test_unknown_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["refresh"])

    def test_make_store(self):
        assert isinstance(make_store("memory"), MemoryTokenStore)
        assert isinstance(make_store("keyring"), KeyringTokenStore)
        assert isinstance(make_store("file"), FileTokenStore)


class TestMain:
    def test_status_with_developer_token(self):
        code = main(
            ["status", "--game-id", "game-1", "--developer-token", "dev-1", "--store", "memory"]
        )
        assert code == 0

    def test_status_without_credentials(self):
        assert main(["status", "--game-id", "game-1", "--store", "memory"]) == 1

    def test_status_exchange_failure(self):
        with patch("httpx.AsyncClient") as mock_client:
            instance = AsyncMock()
            mock_client.return_value.__aenter__.return_value = instance
            mock_client.return_value.__aexit__.return_value = False
            instance.post.return_value = make_response(401, {"message": "Token expired"})

            code = main(
                ["status", "--game-id", "game-1", "--player-jwt", "jwt", "--store", "memory"]
            )

        assert code == 1

    def test_missing_game_id(self):
        assert main(["status", "--store", "memory"]) == 2

    def test_logout_and_clear(self):
        assert main(["logout", "--game-id", "game-1"]) == 0
        assert main(["clear"]) == 0
