from __future__ import annotations

import enum
from collections.abc import Mapping
from typing import Any

from .errors import MalformedPayload, UnclassifiedUpdate

__all__ = ["Payload", "Update", "UpdateKind", "classify"]

Update = Mapping[str, Any]
Payload = Mapping[str, Any]


class UpdateKind(str, enum.Enum):
    MESSAGE = "message"
    EDITED_MESSAGE = "edited_message"
    CHANNEL_POST = "channel_post"
    EDITED_CHANNEL_POST = "edited_channel_post"
    INLINE_QUERY = "inline_query"
    CHOSEN_INLINE_RESULT = "chosen_inline_result"
    CALLBACK_QUERY = "callback_query"
    SHIPPING_QUERY = "shipping_query"
    PRE_CHECKOUT_QUERY = "pre_checkout_query"
    POLL = "poll"
    POLL_ANSWER = "poll_answer"
    MY_CHAT_MEMBER = "my_chat_member"
    CHAT_MEMBER = "chat_member"

    def __str__(self) -> str:
        return self.value


# Definition order doubles as classification priority.
CLASSIFICATION_ORDER: tuple[UpdateKind, ...] = tuple(UpdateKind)


def classify(update: Update) -> tuple[UpdateKind, Payload]:
    """Return the kind of ``update`` and the payload stored under its key."""
    if not isinstance(update, Mapping):
        raise UnclassifiedUpdate(
            f"update is not an object: {type(update).__name__}", update=update
        )
    for kind in CLASSIFICATION_ORDER:
        if kind.value not in update:
            continue
        payload = update[kind.value]
        if not isinstance(payload, Mapping):
            raise MalformedPayload(kind.value, update=update)
        return kind, payload
    raise UnclassifiedUpdate("update without a known payload key", update=update)
