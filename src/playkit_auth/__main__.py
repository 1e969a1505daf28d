"""PlayKit Auth CLI

Usage:
    python -m playkit_auth login --game-id my-game
    python -m playkit_auth status --game-id my-game
    python -m playkit_auth logout --game-id my-game
    python -m playkit_auth clear
"""

import argparse
import asyncio
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from playkit_auth.auth import (
    AuthenticationError,
    AuthManager,
    FileTokenStore,
    KeyringTokenStore,
    MemoryTokenStore,
    NotAuthenticatedError,
    TokenStore,
)
from playkit_auth.auth.ui import LoopbackWindowHost, console_ui
from playkit_auth.config import AUTH_METHODS, SDKConfig

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="playkit_auth", description="PlayKit player login")
    parser.add_argument("command", choices=["login", "status", "logout", "clear"])
    parser.add_argument("--game-id", help="game id (env: PLAYKIT_GAME_ID)")
    parser.add_argument("--base-url", help="backend URL (env: PLAYKIT_BASE_URL)")
    parser.add_argument("--auth-method", choices=AUTH_METHODS)
    parser.add_argument("--developer-token")
    parser.add_argument("--player-jwt")
    parser.add_argument(
        "--store", choices=["file", "keyring", "memory"], default="file",
        help="token storage backend",
    )
    parser.add_argument("--debug", action="store_true")
    return parser


def make_store(kind: str) -> TokenStore:
    if kind == "keyring":
        return KeyringTokenStore()
    if kind == "memory":
        return MemoryTokenStore()
    return FileTokenStore()


def print_state(manager: AuthManager) -> None:
    state = manager.get_auth_state()
    table = Table(title=f"PlayKit auth ({manager.config.game_id})", show_header=False)
    table.add_row("Authenticated", "yes" if state.is_authenticated else "no")
    if state.token:
        table.add_row("Token type", state.token_type.value if state.token_type else "-")
        table.add_row("Token", f"{state.token[:8]}...")
        table.add_row(
            "Expires", state.expires_at.isoformat(timespec="seconds") if state.expires_at else "never"
        )
    console.print(table)


async def run(args: argparse.Namespace) -> int:
    store = make_store(args.store)

    if args.command == "clear":
        await store.clear_all()
        console.print("[bold green][OK] All stored tokens cleared[/bold green]")
        return 0

    config = SDKConfig.from_env(
        game_id=args.game_id,
        base_url=args.base_url,
        auth_method=args.auth_method,
        developer_token=args.developer_token,
        player_jwt=args.player_jwt,
        debug=args.debug or None,
    )

    if args.command == "logout":
        manager = AuthManager(config, store=store)
        await manager.logout()
        console.print(f"[bold green][OK] Logged out of {config.game_id}[/bold green]")
        return 0

    window_host = LoopbackWindowHost()
    ui = console_ui(console, window_host) if args.command == "login" else None
    manager = AuthManager(config, store=store, ui=ui)
    try:
        await manager.initialize()
    except NotAuthenticatedError:
        print_state(manager)
        return 1
    except AuthenticationError as e:
        console.print(f"[bold red]Login failed:[/bold red] {e} [dim]({e.code})[/dim]")
        return 1
    finally:
        window_host.shutdown()

    print_state(manager)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    try:
        return asyncio.run(run(args))
    except ValueError as e:
        console.print(f"[bold red]{e}[/bold red]")
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
