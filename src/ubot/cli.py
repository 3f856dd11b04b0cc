from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import TypeVar

import anyio
import typer

from . import __version__
from .bot import Bot
from .errors import ConfigError, TelegramError
from .config import load_settings
from .logging import get_logger, setup_logging
from .settings import BotSettings

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class CliState:
    config_path: Path | None = None


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


def _load_settings_or_exit(path: Path | None) -> BotSettings:
    try:
        settings, _ = load_settings(path)
    except ConfigError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    return settings


def _build_bot(settings: BotSettings) -> Bot:
    return Bot(settings)


async def _with_bot(settings: BotSettings, action: Callable[[Bot], Awaitable[T]]) -> T:
    bot = _build_bot(settings)
    try:
        return await action(bot)
    finally:
        await bot.aclose()


def _call_or_exit(ctx: typer.Context, action: Callable[[Bot], Awaitable[T]]) -> T:
    state: CliState = ctx.obj
    settings = _load_settings_or_exit(state.config_path)
    try:
        return anyio.run(partial(_with_bot, settings, action))
    except TelegramError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def create_app() -> typer.Typer:
    app = typer.Typer(
        add_completion=False,
        no_args_is_help=True,
        help="Inspect a Telegram bot configured for ubot.",
    )

    @app.callback()
    def main(
        ctx: typer.Context,
        config: Path | None = typer.Option(
            None, "--config", "-c", help="Path to ubot.toml."
        ),
        debug: bool = typer.Option(False, "--debug", help="Verbose logging."),
        version: bool = typer.Option(
            False,
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the version and exit.",
        ),
    ) -> None:
        setup_logging(debug=debug)
        ctx.obj = CliState(config_path=config)

    @app.command()
    def me(ctx: typer.Context) -> None:
        """Print the bot's own user record."""
        user = _call_or_exit(ctx, lambda bot: bot.get_me())
        typer.echo(f"id: {user.id}")
        typer.echo(f"username: @{user.username}" if user.username else "username: -")
        typer.echo(f"name: {' '.join(filter(None, [user.first_name, user.last_name]))}")
        typer.echo(f"inline queries: {'yes' if user.supports_inline_queries else 'no'}")

    @app.command("webhook-info")
    def webhook_info(ctx: typer.Context) -> None:
        """Print the current webhook status."""
        info = _call_or_exit(ctx, lambda bot: bot.get_webhook_info())
        typer.echo(f"url: {info.url or '-'}")
        typer.echo(f"pending updates: {info.pending_update_count}")
        if info.last_error_message:
            typer.echo(f"last error: {info.last_error_message}")

    @app.command("delete-webhook")
    def delete_webhook(
        ctx: typer.Context,
        drop_pending: bool = typer.Option(
            False, "--drop-pending", help="Discard updates queued on the server."
        ),
    ) -> None:
        """Remove the webhook so the bot can long-poll."""
        ok = _call_or_exit(
            ctx,
            lambda bot: bot.delete_webhook(drop_pending_updates=drop_pending or None),
        )
        if not ok:
            typer.echo("error: deleteWebhook returned false", err=True)
            raise typer.Exit(code=1)
        typer.echo("webhook deleted")

    return app


def main() -> None:
    create_app()()
