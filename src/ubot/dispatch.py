from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import HandlerError, RegistryFrozen
from .logging import get_logger
from .matchers import always
from .updates import Payload, Update, UpdateKind, classify

if TYPE_CHECKING:
    from .bot import Bot

logger = get_logger(__name__)

__all__ = [
    "ChainEntry",
    "DispatchResult",
    "Handler",
    "HandlerRegistry",
    "Matcher",
    "dispatch_update",
    "run_chain",
]

Matcher = Callable[["Bot", Payload], bool]
# A truthy result stops the chain; raising stops it with an error.
Handler = Callable[["Bot", Payload], Awaitable[bool | None]]


def _callable_name(func: object) -> str:
    name = getattr(func, "__qualname__", None) or getattr(func, "__name__", None)
    return name if isinstance(name, str) else repr(func)


@dataclass(frozen=True, slots=True)
class ChainEntry:
    matcher: Matcher
    handler: Handler

    @property
    def name(self) -> str:
        return _callable_name(self.handler)


@dataclass(frozen=True, slots=True)
class DispatchResult:
    kind: UpdateKind
    invoked: int
    stopped: bool


class HandlerRegistry:
    """Per-kind handler chains, built before the dispatch loop starts.

    Chains are tuples replaced on every registration, so a reader always sees
    a complete chain. The bot freezes the registry when it starts running and
    any later registration raises :class:`RegistryFrozen`.
    """

    def __init__(self) -> None:
        self._chains: dict[UpdateKind, tuple[ChainEntry, ...]] = {
            kind: () for kind in UpdateKind
        }
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def add(self, kind: UpdateKind | str, matcher: Matcher, handler: Handler) -> None:
        kind = UpdateKind(kind)
        if self._frozen:
            raise RegistryFrozen(
                f"cannot register a {kind} handler while the bot is running"
            )
        self._chains[kind] = (*self._chains[kind], ChainEntry(matcher, handler))
        logger.debug(
            "handlers.registered",
            kind=kind.value,
            handler=_callable_name(handler),
            position=len(self._chains[kind]),
        )

    def on(
        self, kind: UpdateKind | str, matcher: Matcher = always
    ) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.add(kind, matcher, handler)
            return handler

        return decorator

    def chain(self, kind: UpdateKind | str) -> tuple[ChainEntry, ...]:
        return self._chains[UpdateKind(kind)]

    def __len__(self) -> int:
        return sum(len(chain) for chain in self._chains.values())


async def run_chain(
    bot: Bot,
    kind: UpdateKind,
    chain: tuple[ChainEntry, ...],
    payload: Payload,
) -> tuple[int, bool]:
    """Walk ``chain`` in order. Returns (handlers invoked, stopped)."""
    invoked = 0
    for entry in chain:
        try:
            if not entry.matcher(bot, payload):
                continue
            invoked += 1
            stop = await entry.handler(bot, payload)
        except Exception as exc:
            raise HandlerError(kind.value, entry.name, exc) from exc
        if stop:
            return invoked, True
    return invoked, False


async def dispatch_update(
    bot: Bot, registry: HandlerRegistry, update: Update
) -> DispatchResult:
    kind, payload = classify(update)
    invoked, stopped = await run_chain(bot, kind, registry.chain(kind), payload)
    return DispatchResult(kind=kind, invoked=invoked, stopped=stopped)
