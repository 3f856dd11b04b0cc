from __future__ import annotations

import itertools
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import IO, Any, Protocol

import httpx
import msgspec

from .errors import (
    TelegramAPIError,
    TelegramNetworkError,
    TelegramRetryAfter,
)
from .logging import get_logger

logger = get_logger(__name__)

__all__ = [
    "API_BASE_URL",
    "InputFile",
    "TelegramClient",
    "Transport",
]

API_BASE_URL = "https://api.telegram.org"


class Transport(Protocol):
    async def invoke(
        self, method: str, params: Mapping[str, Any] | None = None
    ) -> Any: ...

    async def close(self) -> None: ...


@dataclass(frozen=True, slots=True)
class InputFile:
    """A file to upload with a multipart request."""

    filename: str
    content: bytes | IO[bytes]
    mime_type: str = "application/octet-stream"

    def __post_init__(self) -> None:
        if not self.filename:
            raise ValueError("InputFile needs a file name")
        if isinstance(self.content, (bytes, bytearray)) and not self.content:
            raise ValueError("InputFile content is empty")

    def as_httpx(self) -> tuple[str, Any, str]:
        return (self.filename, self.content, self.mime_type)


_RETRY_AFTER_RE = re.compile(r"retry after (\d+)", re.IGNORECASE)


def _retry_after_from_payload(payload: Mapping[str, Any]) -> float | None:
    params = payload.get("parameters")
    if isinstance(params, Mapping):
        retry_after = params.get("retry_after")
        if isinstance(retry_after, (int, float)) and not isinstance(retry_after, bool):
            return float(retry_after)
    description = payload.get("description")
    if isinstance(description, str):
        return _retry_after_from_description(description)
    return None


def _retry_after_from_description(description: str) -> float | None:
    match = _RETRY_AFTER_RE.search(description)
    if not match:
        return None
    return float(match.group(1))


def _extract_files(
    params: Mapping[str, Any],
) -> tuple[dict[str, Any], dict[str, InputFile]]:
    """Split uploads out of ``params``.

    Top-level files are sent under their own field name. Files nested in
    lists or objects (``sendMediaGroup``) are replaced by ``attach://`` refs.
    """
    files: dict[str, InputFile] = {}
    counter = itertools.count()

    def attach(value: Any) -> Any:
        if isinstance(value, InputFile):
            name = f"file{next(counter)}"
            while name in params:
                name = f"file{next(counter)}"
            files[name] = value
            return f"attach://{name}"
        if isinstance(value, Mapping):
            return {key: attach(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [attach(item) for item in value]
        return value

    fields: dict[str, Any] = {}
    for key, value in params.items():
        if isinstance(value, InputFile):
            files[key] = value
        else:
            fields[key] = attach(value)
    return fields, files


def _form_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return msgspec.json.encode(value).decode("utf-8")


class TelegramClient:
    def __init__(
        self,
        token: str,
        timeout_s: float = 120,
        client: httpx.AsyncClient | None = None,
        *,
        base_url: str = API_BASE_URL,
    ) -> None:
        if not token:
            raise ValueError("Telegram token is empty")
        self._base = f"{base_url.rstrip('/')}/bot{token}"
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def invoke(
        self, method: str, params: Mapping[str, Any] | None = None
    ) -> Any:
        if not method:
            raise ValueError("empty method")
        payload = {
            key: value for key, value in (params or {}).items() if value is not None
        }
        fields, files = _extract_files(payload)
        url = f"{self._base}/{method}"
        logger.debug(
            "telegram.request",
            method=method,
            payload=fields,
            files=sorted(files) or None,
        )
        try:
            if files:
                resp = await self._client.post(
                    url,
                    data={key: _form_value(value) for key, value in fields.items()},
                    files={key: item.as_httpx() for key, item in files.items()},
                )
            else:
                resp = await self._client.post(url, json=fields)
        except httpx.HTTPError as e:
            logger.error(
                "telegram.network_error",
                method=method,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            raise TelegramNetworkError(method, str(e)) from e
        return self._decode(method, resp)

    def _decode(self, method: str, resp: httpx.Response) -> Any:
        try:
            payload = resp.json()
        except ValueError:
            payload = None

        if not isinstance(payload, dict):
            if resp.status_code == 429:
                retry_after = _retry_after_from_description(resp.text)
                if retry_after is not None:
                    raise TelegramRetryAfter(method, retry_after)
            logger.error(
                "telegram.bad_response",
                method=method,
                status=resp.status_code,
                body=resp.text,
            )
            raise TelegramAPIError(
                method,
                f"unexpected response (HTTP {resp.status_code})",
                status=resp.status_code,
            )

        if not payload.get("ok"):
            description = str(payload.get("description") or "no description")
            retry_after = _retry_after_from_payload(payload)
            if retry_after is not None:
                logger.info(
                    "telegram.rate_limited",
                    method=method,
                    status=resp.status_code,
                    retry_after=retry_after,
                )
                raise TelegramRetryAfter(method, retry_after, description)
            error_code = payload.get("error_code")
            logger.error(
                "telegram.api_error",
                method=method,
                status=resp.status_code,
                error_code=error_code,
                description=description,
            )
            raise TelegramAPIError(
                method,
                description,
                error_code=error_code if isinstance(error_code, int) else None,
                status=resp.status_code,
            )

        logger.debug("telegram.response", method=method, payload=payload)
        return payload.get("result")
