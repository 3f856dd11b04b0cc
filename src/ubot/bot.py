from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from typing import Any

import anyio
import structlog
from anyio.abc import TaskGroup
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from .api_models import User
from .client import TelegramClient, Transport
from .config import load_settings
from .dispatch import DispatchResult, Handler, HandlerRegistry, Matcher, dispatch_update
from .errors import (
    ClassificationError,
    HandlerError,
    SourceError,
    StartupError,
)
from .logging import get_logger
from .matchers import always
from .methods import BotMethods
from .settings import BotSettings
from .updates import Update, UpdateKind

logger = get_logger(__name__)

__all__ = ["Bot", "UpdateSource"]

UpdateSource = Callable[["Bot", MemoryObjectSendStream[Update]], Awaitable[None]]


def _update_id(update: Any) -> int | None:
    if isinstance(update, Mapping):
        value = update.get("update_id")
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


class Bot(BotMethods):
    """A Bot API client with a bounded-concurrency update dispatcher.

    Register handlers, then call :meth:`run` once. Handlers receive the bot
    itself and can call any API wrapper through it.
    """

    def __init__(
        self,
        settings: BotSettings,
        *,
        transport: Transport | None = None,
        handlers: HandlerRegistry | None = None,
    ) -> None:
        self.settings = settings
        self.transport = transport or TelegramClient(
            settings.api_token, timeout_s=settings.request_timeout_s
        )
        self.handlers = handlers if handlers is not None else HandlerRegistry()
        self._me: User | None = None
        self._state = "idle"
        self._stop_requested = False
        self._stop_event: anyio.Event | None = None
        self._source_error: Exception | None = None

    @classmethod
    def from_config(
        cls, path: str | Path | None = None, *, transport: Transport | None = None
    ) -> Bot:
        settings, _ = load_settings(path)
        return cls(settings, transport=transport)

    async def __aenter__(self) -> Bot:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.transport.close()

    async def invoke(
        self, method: str, params: Mapping[str, Any] | None = None
    ) -> Any:
        return await self.transport.invoke(method, params)

    # Registration

    def add_handler(
        self, kind: UpdateKind | str, matcher: Matcher, handler: Handler
    ) -> None:
        self.handlers.add(kind, matcher, handler)

    def on(
        self, kind: UpdateKind | str, matcher: Matcher = always
    ) -> Callable[[Handler], Handler]:
        return self.handlers.on(kind, matcher)

    # Identity

    @property
    def identity(self) -> User | None:
        return self._me

    @property
    def me(self) -> User:
        if self._me is None:
            raise StartupError("bot identity has not been fetched yet")
        return self._me

    async def fetch_self(self) -> User:
        try:
            user = await self.get_me()
        except Exception as exc:
            logger.error(
                "bot.identity_failed",
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            raise StartupError(f"getMe failed: {exc}") from exc
        self._me = user
        logger.info("bot.identity", id=user.id, username=user.username)
        return user

    # Dispatch

    async def dispatch(self, update: Update) -> DispatchResult:
        return await dispatch_update(self, self.handlers, update)

    def stop(self) -> None:
        """Stop accepting updates; in-flight dispatches get to finish."""
        self._stop_requested = True
        if self._stop_event is not None:
            self._stop_event.set()

    async def run(self, source: UpdateSource | None = None) -> None:
        if self._state != "idle":
            raise RuntimeError(f"Bot.run called while {self._state}")
        if source is None:
            from .sources import select_source

            source = select_source(self.settings)
        self._state = "starting"
        try:
            if self._me is None:
                await self.fetch_self()
        except BaseException:
            self._state = "idle"
            raise
        self.handlers.freeze()
        self._state = "running"

        stop = self._stop_event = anyio.Event()
        if self._stop_requested:
            stop.set()
        workers = self.settings.worker_count
        slots = anyio.Semaphore(workers)
        send_stream: MemoryObjectSendStream[Update]
        receive_stream: MemoryObjectReceiveStream[Update]
        send_stream, receive_stream = anyio.create_memory_object_stream(0)

        logger.info(
            "bot.started",
            username=self.me.username,
            workers=workers,
            source=getattr(source, "__name__", repr(source)),
            handlers=len(self.handlers),
        )
        try:
            async with anyio.create_task_group() as dispatch_tg:
                async with anyio.create_task_group() as intake_tg:
                    intake_tg.start_soon(self._run_source, source, send_stream)
                    intake_tg.start_soon(
                        self._intake, receive_stream, dispatch_tg, slots, stop
                    )
                    await stop.wait()
                    intake_tg.cancel_scope.cancel()
                await self._drain(slots, workers)
                dispatch_tg.cancel_scope.cancel()
        finally:
            self._state = "stopped"
        logger.info("bot.stopped")

        if self._source_error is not None:
            if isinstance(self._source_error, SourceError):
                raise self._source_error
            raise SourceError(
                f"update source failed: {self._source_error}"
            ) from self._source_error

    async def _run_source(
        self, source: UpdateSource, send_stream: MemoryObjectSendStream[Update]
    ) -> None:
        try:
            async with send_stream:
                await source(self, send_stream)
        except Exception as exc:
            logger.error(
                "source.failed",
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            self._source_error = exc
        else:
            logger.info("source.finished")

    async def _intake(
        self,
        updates: MemoryObjectReceiveStream[Update],
        dispatch_tg: TaskGroup,
        slots: anyio.Semaphore,
        stop: anyio.Event,
    ) -> None:
        try:
            async with updates:
                async for update in updates:
                    await slots.acquire()
                    if stop.is_set():
                        slots.release()
                        logger.debug(
                            "dispatch.dropped_on_stop", update_id=_update_id(update)
                        )
                        break
                    dispatch_tg.start_soon(self._process, update, slots)
        finally:
            stop.set()

    async def _process(self, update: Update, slots: anyio.Semaphore) -> None:
        try:
            with structlog.contextvars.bound_contextvars(update_id=_update_id(update)):
                await self._dispatch_logged(update)
        finally:
            slots.release()

    async def _dispatch_logged(self, update: Update) -> None:
        try:
            result = await self.dispatch(update)
        except ClassificationError as exc:
            logger.warning("dispatch.unclassified", error=str(exc))
        except HandlerError as exc:
            logger.error(
                "dispatch.handler_failed",
                kind=exc.kind,
                handler=exc.handler,
                error=str(exc.error),
                error_type=exc.error.__class__.__name__,
                exc_info=exc.error,
            )
        else:
            logger.debug(
                "dispatch.done",
                kind=result.kind.value,
                invoked=result.invoked,
                stopped=result.stopped,
            )

    async def _drain(self, slots: anyio.Semaphore, workers: int) -> None:
        in_flight = workers - slots.value
        if not in_flight:
            return
        timeout_s = self.settings.drain_timeout_s
        logger.info("bot.draining", in_flight=in_flight, timeout_s=timeout_s)
        # Holding every slot means no dispatch task is left.
        acquired = 0
        with anyio.move_on_after(timeout_s) as scope:
            while acquired < workers:
                await slots.acquire()
                acquired += 1
        if scope.cancelled_caught:
            logger.warning(
                "bot.drain_timeout",
                in_flight=workers - acquired,
                timeout_s=timeout_s,
            )
