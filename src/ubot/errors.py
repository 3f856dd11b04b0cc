from __future__ import annotations

from typing import Any


class UbotError(Exception):
    pass


class ConfigError(UbotError):
    pass


class StartupError(UbotError):
    pass


class SourceError(UbotError):
    pass


class RegistryFrozen(UbotError):
    pass


class ClassificationError(UbotError):
    def __init__(self, message: str, *, update: Any = None) -> None:
        super().__init__(message)
        self.update = update


class UnclassifiedUpdate(ClassificationError):
    pass


class MalformedPayload(ClassificationError):
    def __init__(self, kind: str, *, update: Any = None) -> None:
        super().__init__(f"{kind} payload is not an object", update=update)
        self.kind = kind


class HandlerError(UbotError):
    """A matcher or handler raised while walking a handler chain.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, kind: str, handler: str, error: BaseException) -> None:
        super().__init__(f"{kind} handler {handler} failed: {error}")
        self.kind = kind
        self.handler = handler
        self.error = error


class TelegramError(UbotError):
    def __init__(self, method: str, message: str) -> None:
        super().__init__(f"{method}: {message}")
        self.method = method


class TelegramNetworkError(TelegramError):
    pass


class TelegramAPIError(TelegramError):
    def __init__(
        self,
        method: str,
        description: str,
        *,
        error_code: int | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(method, description)
        self.description = description
        self.error_code = error_code
        self.status = status


class TelegramRetryAfter(TelegramAPIError):
    def __init__(
        self,
        method: str,
        retry_after: float,
        description: str | None = None,
    ) -> None:
        super().__init__(
            method,
            description or f"retry after {retry_after}",
            error_code=429,
            status=429,
        )
        self.retry_after = float(retry_after)
