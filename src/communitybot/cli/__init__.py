from __future__ import annotations

from functools import partial
from pathlib import Path

import anyio
import typer

from .. import __version__
from ..chats import ChatStore
from ..config import BotSettings, ConfigError, load_settings
from ..logging import get_logger, setup_logging
from ..loop import run_main_loop

logger = get_logger(__name__)

_CONFIG_OPTION = typer.Option(
    None,
    "--config",
    help="Path to communitybot.toml "
    "(default: ./communitybot.toml, then ~/.communitybot/).",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


def _load_settings_or_exit(config: Path | None) -> BotSettings:
    try:
        return load_settings(config)
    except ConfigError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1) from e


def run(
    config: Path | None = _CONFIG_OPTION,
    debug: bool = typer.Option(
        False,
        "--debug/--no-debug",
        help="Log Telegram requests and every dispatched update.",
    ),
) -> None:
    """Start polling Telegram and handling updates."""
    setup_logging(debug=debug)
    settings = _load_settings_or_exit(config)
    logger.info(
        "cli.run",
        config_path=str(settings.config_path),
        chats_path=str(settings.chats_path),
    )
    try:
        anyio.run(partial(run_main_loop, settings))
    except KeyboardInterrupt:
        logger.info("cli.interrupted")


def chats(config: Path | None = _CONFIG_OPTION) -> None:
    """Print the saved chat list."""
    setup_logging(debug=False)
    settings = _load_settings_or_exit(config)
    store = ChatStore(settings.chats_path)
    saved = anyio.run(store.list_chats)
    if not saved:
        typer.echo("no chats saved.")
        return
    for chat in saved:
        chat_id = str(chat.id) if chat.has_known_id else "?"
        typer.echo(f"{chat.name}\t{chat.invite_link}\t{chat_id}")


def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Community chat-list bot for Telegram."""


def create_app() -> typer.Typer:
    app = typer.Typer(
        add_completion=False,
        no_args_is_help=True,
        help="Community chat-list bot for Telegram.",
    )
    app.callback()(app_main)
    app.command(name="run")(run)
    app.command(name="chats")(chats)
    return app


def main() -> None:
    app = create_app()
    app()


if __name__ == "__main__":
    main()
