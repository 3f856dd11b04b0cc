from __future__ import annotations

import msgspec

__all__ = [
    "BotCommand",
    "User",
    "WebhookInfo",
]


class User(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: str | None = None
    username: str | None = None
    language_code: str | None = None
    can_join_groups: bool | None = None
    can_read_all_group_messages: bool | None = None
    supports_inline_queries: bool | None = None


class WebhookInfo(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    url: str
    has_custom_certificate: bool = False
    pending_update_count: int = 0
    ip_address: str | None = None
    last_error_date: int | None = None
    last_error_message: str | None = None
    max_connections: int | None = None
    allowed_updates: list[str] | None = None


class BotCommand(msgspec.Struct, frozen=True, forbid_unknown_fields=False):
    command: str
    description: str
