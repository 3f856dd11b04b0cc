"""Predicates for handler chains.

A matcher takes the bot and the update payload and returns a bool. Matchers
never raise on malformed payloads: a missing or mistyped field means no match.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from .values import PathError, get_array, get_int, get_str

if TYPE_CHECKING:
    from .bot import Bot

__all__ = [
    "GROUP_CHAT_TYPES",
    "all_of",
    "always",
    "any_of",
    "callback_data",
    "chat_type",
    "command_text",
    "has_command",
    "has_entities",
    "has_photo",
    "in_group",
    "is_from",
    "is_private",
    "negate",
    "never",
    "text_matches",
]

MatcherFunc = Callable[["Bot", Mapping[str, Any]], bool]

GROUP_CHAT_TYPES = frozenset({"group", "supergroup"})


def always(bot: Bot, payload: Mapping[str, Any]) -> bool:
    return True


def never(bot: Bot, payload: Mapping[str, Any]) -> bool:
    return False


def all_of(*matchers: MatcherFunc) -> MatcherFunc:
    def matcher(bot: Bot, payload: Mapping[str, Any]) -> bool:
        return all(m(bot, payload) for m in matchers)

    return matcher


def any_of(*matchers: MatcherFunc) -> MatcherFunc:
    def matcher(bot: Bot, payload: Mapping[str, Any]) -> bool:
        return any(m(bot, payload) for m in matchers)

    return matcher


def negate(inner: MatcherFunc) -> MatcherFunc:
    def matcher(bot: Bot, payload: Mapping[str, Any]) -> bool:
        return not inner(bot, payload)

    return matcher


def chat_type(expected: str) -> MatcherFunc:
    def matcher(bot: Bot, payload: Mapping[str, Any]) -> bool:
        try:
            return get_str(payload, "chat.type") == expected
        except PathError:
            return False

    return matcher


def is_from(user_id: int) -> MatcherFunc:
    def matcher(bot: Bot, payload: Mapping[str, Any]) -> bool:
        try:
            return get_int(payload, "from.id") == user_id
        except PathError:
            return False

    return matcher


def has_photo(bot: Bot, payload: Mapping[str, Any]) -> bool:
    try:
        get_array(payload, "photo")
    except PathError:
        return False
    return True


def has_entities(bot: Bot, payload: Mapping[str, Any]) -> bool:
    try:
        get_array(payload, "entities")
    except PathError:
        return False
    return True


def is_private(bot: Bot, payload: Mapping[str, Any]) -> bool:
    return chat_type("private")(bot, payload)


def in_group(bot: Bot, payload: Mapping[str, Any]) -> bool:
    try:
        return get_str(payload, "chat.type") in GROUP_CHAT_TYPES
    except PathError:
        return False


def command_text(text: str, offset: int, length: int) -> str | None:
    """Slice an entity out of ``text``.

    Entity offsets and lengths count UTF-16 code units. Returns ``None`` when
    the range falls outside the text or splits a surrogate pair.
    """
    if offset < 0 or length <= 0:
        return None
    encoded = text.encode("utf-16-le")
    start = offset * 2
    end = (offset + length) * 2
    if end > len(encoded):
        return None
    try:
        return encoded[start:end].decode("utf-16-le")
    except UnicodeDecodeError:
        return None


def has_command(command: str) -> MatcherFunc:
    """Match a bot command addressed to this bot.

    Outside groups the entity may be ``/command`` or ``/command@botname``. In
    groups and supergroups it must carry the bot's username, so it never
    matches there while the bot identity is unknown.
    """
    wanted = command if command.startswith("/") else f"/{command}"

    def matcher(bot: Bot, payload: Mapping[str, Any]) -> bool:
        try:
            text = get_str(payload, "text")
            entities = get_array(payload, "entities")
            kind = get_str(payload, "chat.type")
        except PathError:
            return False
        identity = bot.identity
        username = identity.username if identity is not None else None
        group = kind in GROUP_CHAT_TYPES
        if group and not username:
            return False
        for entity in entities:
            if not isinstance(entity, Mapping):
                continue
            if entity.get("type", "bot_command") != "bot_command":
                continue
            try:
                offset = get_int(entity, "offset")
                length = get_int(entity, "length")
            except PathError:
                continue
            fragment = command_text(text, offset, length)
            if fragment is None:
                continue
            name, at, mention = fragment.partition("@")
            if name != wanted:
                continue
            if not at and not group:
                return True
            if at and username and mention.casefold() == username.casefold():
                return True
        return False

    return matcher


def text_matches(pattern: str | re.Pattern[str]) -> MatcherFunc:
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern

    def matcher(bot: Bot, payload: Mapping[str, Any]) -> bool:
        text = payload.get("text")
        if not isinstance(text, str):
            text = payload.get("caption")
        if not isinstance(text, str):
            return False
        return regex.search(text) is not None

    return matcher


def callback_data(expected: str) -> MatcherFunc:
    def matcher(bot: Bot, payload: Mapping[str, Any]) -> bool:
        try:
            return get_str(payload, "data") == expected
        except PathError:
            return False

    return matcher
