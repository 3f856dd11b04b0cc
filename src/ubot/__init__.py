"""Telegram Bot API client with a bounded-concurrency update dispatcher."""

from __future__ import annotations

__version__ = "0.3.0"

from .api_models import User
from .bot import Bot, UpdateSource
from .client import InputFile, TelegramClient, Transport
from .dispatch import DispatchResult, HandlerRegistry, dispatch_update
from .errors import (
    ClassificationError,
    ConfigError,
    HandlerError,
    MalformedPayload,
    RegistryFrozen,
    SourceError,
    StartupError,
    TelegramAPIError,
    TelegramError,
    TelegramNetworkError,
    TelegramRetryAfter,
    UbotError,
    UnclassifiedUpdate,
)
from .settings import BotSettings
from .sources import poll_updates, select_source, webhook_updates
from .updates import UpdateKind, classify

__all__ = [
    "Bot",
    "BotSettings",
    "ClassificationError",
    "ConfigError",
    "DispatchResult",
    "HandlerError",
    "HandlerRegistry",
    "InputFile",
    "MalformedPayload",
    "RegistryFrozen",
    "SourceError",
    "StartupError",
    "TelegramAPIError",
    "TelegramClient",
    "TelegramError",
    "TelegramNetworkError",
    "TelegramRetryAfter",
    "Transport",
    "UbotError",
    "UnclassifiedUpdate",
    "UpdateKind",
    "UpdateSource",
    "User",
    "__version__",
    "classify",
    "dispatch_update",
    "poll_updates",
    "select_source",
    "webhook_updates",
]
