from __future__ import annotations

import secrets
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import anyio
import msgspec
import uvicorn
from anyio.streams.memory import MemoryObjectSendStream
from starlette.applications import Starlette
from starlette.requests import ClientDisconnect, Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Route

from .errors import ConfigError, SourceError, TelegramError, TelegramRetryAfter
from .logging import get_logger
from .settings import BotSettings
from .updates import Update

if TYPE_CHECKING:
    from .bot import Bot, UpdateSource

logger = get_logger(__name__)

__all__ = [
    "SECRET_TOKEN_HEADER",
    "create_webhook_app",
    "poll_updates",
    "select_source",
    "webhook_updates",
]

SECRET_TOKEN_HEADER = "X-Telegram-Bot-Api-Secret-Token"
SERVER_SHUTDOWN_GRACE_S = 5.0


def select_source(settings: BotSettings) -> UpdateSource:
    if settings.long_poll:
        return poll_updates
    if not settings.webhook_url:
        raise ConfigError(
            "Empty webhook url; set `webhook_url` or `long_poll = true`."
        )
    return webhook_updates


async def poll_updates(bot: Bot, updates: MemoryObjectSendStream[Update]) -> None:
    """Long-poll ``getUpdates`` and forward every update to ``updates``.

    Transport errors are logged and retried; this only returns when cancelled.
    """
    settings = bot.settings
    offset: int | None = None
    logger.info("poll.started", timeout_s=settings.poll_timeout_s)
    while True:
        try:
            batch = await bot.get_updates(
                offset=offset,
                timeout=settings.poll_timeout_s,
                allowed_updates=settings.allowed_updates,
            )
        except TelegramRetryAfter as exc:
            logger.info("poll.retry_after", retry_after=exc.retry_after)
            await anyio.sleep(exc.retry_after)
            continue
        except TelegramError as exc:
            logger.warning(
                "poll.failed",
                error=str(exc),
                error_type=exc.__class__.__name__,
                retry_in_s=settings.poll_retry_delay_s,
            )
            await anyio.sleep(settings.poll_retry_delay_s)
            continue
        if not batch:
            continue
        logger.debug("poll.updates", count=len(batch))
        delivered = False
        for raw in batch:
            if not isinstance(raw, Mapping):
                logger.warning("poll.invalid_update", update_type=type(raw).__name__)
                continue
            update_id = raw.get("update_id")
            if isinstance(update_id, bool) or not isinstance(update_id, int):
                logger.warning("poll.missing_update_id", update_id=update_id)
                continue
            await updates.send(raw)
            delivered = True
            if offset is None or update_id >= offset:
                offset = update_id + 1
        if not delivered:
            # Nothing usable in a non-empty batch: step past it anyway.
            offset = (offset or 0) + 1
            logger.warning("poll.skipped_batch", count=len(batch), offset=offset)
            await anyio.sleep(settings.poll_retry_delay_s)


def create_webhook_app(
    bot: Bot, updates: MemoryObjectSendStream[Update]
) -> Starlette:
    settings = bot.settings

    async def receive_update(request: Request) -> Response:
        if settings.webhook_secret is not None:
            token = request.headers.get(SECRET_TOKEN_HEADER, "")
            if not secrets.compare_digest(
                token.encode(), settings.webhook_secret.encode()
            ):
                logger.warning("webhook.bad_secret")
                return PlainTextResponse("forbidden", status_code=403)
        try:
            body = await request.body()
        except ClientDisconnect:
            logger.warning("webhook.client_disconnected")
            return PlainTextResponse("can't read body", status_code=400)
        try:
            update: Any = msgspec.json.decode(body)
        except msgspec.DecodeError as exc:
            logger.warning("webhook.bad_body", error=str(exc))
            return PlainTextResponse("can't decode body", status_code=400)
        if not isinstance(update, dict):
            logger.warning("webhook.invalid_update", update_type=type(update).__name__)
            return PlainTextResponse("update is not an object", status_code=400)
        try:
            await updates.send(update)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            return PlainTextResponse("shutting down", status_code=503)
        return Response(status_code=200)

    return Starlette(
        routes=[Route(settings.webhook_route, receive_update, methods=["POST"])]
    )


async def webhook_updates(bot: Bot, updates: MemoryObjectSendStream[Update]) -> None:
    """Register the webhook and serve it until cancelled.

    Runs uvicorn, so it needs the asyncio backend.
    """
    settings = bot.settings
    if not settings.webhook_url:
        raise ConfigError("Empty webhook url.")
    try:
        ok = await bot.set_webhook(
            settings.webhook_url,
            secret_token=settings.webhook_secret,
            allowed_updates=settings.allowed_updates,
        )
    except TelegramError as exc:
        raise SourceError(f"Can't set webhook: {exc}") from exc
    if not ok:
        raise SourceError("Can't set webhook.")

    server = uvicorn.Server(
        uvicorn.Config(
            create_webhook_app(bot, updates),
            host=settings.listen_host,
            port=settings.listen_port,
            lifespan="off",
            log_config=None,
        )
    )
    logger.info(
        "webhook.serving",
        host=settings.listen_host,
        port=settings.listen_port,
        url=settings.webhook_url,
    )
    await _serve(server)


async def _serve(server: uvicorn.Server) -> None:
    finished = anyio.Event()
    exit_code: list[object] = []

    async def serve() -> None:
        try:
            # Shielded so shutdown goes through uvicorn's own should_exit path.
            with anyio.CancelScope(shield=True):
                await server.serve()
        except SystemExit as exc:
            # uvicorn exits when it cannot bind the socket.
            exit_code.append(exc.code)
        finally:
            finished.set()

    async with anyio.create_task_group() as tg:
        tg.start_soon(serve)
        try:
            await finished.wait()
        finally:
            server.should_exit = True
            with anyio.CancelScope(shield=True):
                with anyio.move_on_after(SERVER_SHUTDOWN_GRACE_S) as grace:
                    await finished.wait()
                if grace.cancelled_caught:
                    logger.warning("webhook.force_exit")
                    server.force_exit = True
                    await finished.wait()
            logger.info("webhook.stopped")

    detail = f" (exit code {exit_code[0]})" if exit_code else ""
    raise SourceError(f"Webhook server stopped unexpectedly{detail}.")
