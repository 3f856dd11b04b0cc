"""Thin wrappers over the Bot API methods.

Every wrapper forwards its keyword arguments as request parameters, so newer
API fields work without a library update. Parameters set to ``None`` are
dropped. Upload parameters accept either a file id/URL string or an
:class:`~ubot.client.InputFile`.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import msgspec

from .api_models import BotCommand, User, WebhookInfo
from .client import InputFile
from .errors import TelegramAPIError

ChatId = int | str
Media = str | InputFile


class BotMethods:
    async def invoke(
        self, method: str, params: Mapping[str, Any] | None = None
    ) -> Any:
        raise NotImplementedError

    async def _object(self, method: str, **params: Any) -> dict[str, Any]:
        result = await self.invoke(method, params)
        if not isinstance(result, dict):
            raise TelegramAPIError(
                method, f"expected an object result, got {type(result).__name__}"
            )
        return result

    async def _array(self, method: str, **params: Any) -> list[Any]:
        result = await self.invoke(method, params)
        if not isinstance(result, list):
            raise TelegramAPIError(
                method, f"expected an array result, got {type(result).__name__}"
            )
        return result

    async def _bool(self, method: str, **params: Any) -> bool:
        result = await self.invoke(method, params)
        if not isinstance(result, bool):
            raise TelegramAPIError(
                method, f"expected a boolean result, got {type(result).__name__}"
            )
        return result

    async def _int(self, method: str, **params: Any) -> int:
        result = await self.invoke(method, params)
        if isinstance(result, bool) or not isinstance(result, int):
            raise TelegramAPIError(
                method, f"expected an integer result, got {type(result).__name__}"
            )
        return result

    async def _message_or_bool(
        self, method: str, **params: Any
    ) -> dict[str, Any] | bool:
        # Inline-message edits return True instead of the edited message.
        result = await self.invoke(method, params)
        if isinstance(result, (dict, bool)):
            return result
        raise TelegramAPIError(
            method, f"unexpected result type {type(result).__name__}"
        )

    # Bot

    async def get_me(self) -> User:
        result = await self._object("getMe")
        try:
            return msgspec.convert(result, type=User)
        except msgspec.ValidationError as exc:
            raise TelegramAPIError("getMe", f"invalid user: {exc}") from exc

    async def log_out(self) -> bool:
        return await self._bool("logOut")

    async def close_instance(self) -> bool:
        # Bot API `close`; named apart from closing the HTTP transport.
        return await self._bool("close")

    async def set_my_commands(
        self, commands: Sequence[BotCommand | Mapping[str, str]], **params: Any
    ) -> bool:
        return await self._bool(
            "setMyCommands", commands=msgspec.to_builtins(list(commands)), **params
        )

    async def get_my_commands(self, **params: Any) -> list[BotCommand]:
        result = await self._array("getMyCommands", **params)
        return msgspec.convert(result, type=list[BotCommand])

    # Updates

    async def get_updates(
        self,
        offset: int | None = None,
        timeout: int | None = None,
        allowed_updates: Sequence[str] | None = None,
        **params: Any,
    ) -> list[Any]:
        return await self._array(
            "getUpdates",
            offset=offset,
            timeout=timeout,
            allowed_updates=(
                list(allowed_updates) if allowed_updates is not None else None
            ),
            **params,
        )

    async def set_webhook(self, url: str, **params: Any) -> bool:
        return await self._bool("setWebhook", url=url, **params)

    async def delete_webhook(self, **params: Any) -> bool:
        return await self._bool("deleteWebhook", **params)

    async def get_webhook_info(self) -> WebhookInfo:
        result = await self._object("getWebhookInfo")
        return msgspec.convert(result, type=WebhookInfo)

    # Messages

    async def send_message(
        self, chat_id: ChatId, text: str, **params: Any
    ) -> dict[str, Any]:
        return await self._object("sendMessage", chat_id=chat_id, text=text, **params)

    async def forward_message(
        self, chat_id: ChatId, from_chat_id: ChatId, message_id: int, **params: Any
    ) -> dict[str, Any]:
        return await self._object(
            "forwardMessage",
            chat_id=chat_id,
            from_chat_id=from_chat_id,
            message_id=message_id,
            **params,
        )

    async def copy_message(
        self, chat_id: ChatId, from_chat_id: ChatId, message_id: int, **params: Any
    ) -> dict[str, Any]:
        return await self._object(
            "copyMessage",
            chat_id=chat_id,
            from_chat_id=from_chat_id,
            message_id=message_id,
            **params,
        )

    async def send_photo(
        self, chat_id: ChatId, photo: Media, **params: Any
    ) -> dict[str, Any]:
        return await self._object("sendPhoto", chat_id=chat_id, photo=photo, **params)

    async def send_audio(
        self, chat_id: ChatId, audio: Media, **params: Any
    ) -> dict[str, Any]:
        return await self._object("sendAudio", chat_id=chat_id, audio=audio, **params)

    async def send_document(
        self, chat_id: ChatId, document: Media, **params: Any
    ) -> dict[str, Any]:
        return await self._object(
            "sendDocument", chat_id=chat_id, document=document, **params
        )

    async def send_video(
        self, chat_id: ChatId, video: Media, **params: Any
    ) -> dict[str, Any]:
        return await self._object("sendVideo", chat_id=chat_id, video=video, **params)

    async def send_animation(
        self, chat_id: ChatId, animation: Media, **params: Any
    ) -> dict[str, Any]:
        return await self._object(
            "sendAnimation", chat_id=chat_id, animation=animation, **params
        )

    async def send_voice(
        self, chat_id: ChatId, voice: Media, **params: Any
    ) -> dict[str, Any]:
        return await self._object("sendVoice", chat_id=chat_id, voice=voice, **params)

    async def send_video_note(
        self, chat_id: ChatId, video_note: Media, **params: Any
    ) -> dict[str, Any]:
        return await self._object(
            "sendVideoNote", chat_id=chat_id, video_note=video_note, **params
        )

    async def send_media_group(
        self, chat_id: ChatId, media: Sequence[Mapping[str, Any]], **params: Any
    ) -> list[Any]:
        return await self._array(
            "sendMediaGroup", chat_id=chat_id, media=list(media), **params
        )

    async def send_location(
        self, chat_id: ChatId, latitude: float, longitude: float, **params: Any
    ) -> dict[str, Any]:
        return await self._object(
            "sendLocation",
            chat_id=chat_id,
            latitude=latitude,
            longitude=longitude,
            **params,
        )

    async def edit_message_live_location(
        self, latitude: float, longitude: float, **params: Any
    ) -> dict[str, Any] | bool:
        return await self._message_or_bool(
            "editMessageLiveLocation", latitude=latitude, longitude=longitude, **params
        )

    async def stop_message_live_location(self, **params: Any) -> dict[str, Any] | bool:
        return await self._message_or_bool("stopMessageLiveLocation", **params)

    async def send_venue(
        self,
        chat_id: ChatId,
        latitude: float,
        longitude: float,
        title: str,
        address: str,
        **params: Any,
    ) -> dict[str, Any]:
        return await self._object(
            "sendVenue",
            chat_id=chat_id,
            latitude=latitude,
            longitude=longitude,
            title=title,
            address=address,
            **params,
        )

    async def send_contact(
        self, chat_id: ChatId, phone_number: str, first_name: str, **params: Any
    ) -> dict[str, Any]:
        return await self._object(
            "sendContact",
            chat_id=chat_id,
            phone_number=phone_number,
            first_name=first_name,
            **params,
        )

    async def send_poll(
        self, chat_id: ChatId, question: str, options: Sequence[Any], **params: Any
    ) -> dict[str, Any]:
        return await self._object(
            "sendPoll",
            chat_id=chat_id,
            question=question,
            options=list(options),
            **params,
        )

    async def send_dice(self, chat_id: ChatId, **params: Any) -> dict[str, Any]:
        return await self._object("sendDice", chat_id=chat_id, **params)

    async def send_chat_action(
        self, chat_id: ChatId, action: str, **params: Any
    ) -> bool:
        return await self._bool(
            "sendChatAction", chat_id=chat_id, action=action, **params
        )

    async def edit_message_text(
        self, text: str, **params: Any
    ) -> dict[str, Any] | bool:
        return await self._message_or_bool("editMessageText", text=text, **params)

    async def delete_message(self, chat_id: ChatId, message_id: int) -> bool:
        return await self._bool("deleteMessage", chat_id=chat_id, message_id=message_id)

    async def answer_callback_query(
        self, callback_query_id: str, **params: Any
    ) -> bool:
        return await self._bool(
            "answerCallbackQuery", callback_query_id=callback_query_id, **params
        )

    # Users and files

    async def get_user_profile_photos(
        self, user_id: int, **params: Any
    ) -> dict[str, Any]:
        return await self._object("getUserProfilePhotos", user_id=user_id, **params)

    async def get_file(self, file_id: str) -> dict[str, Any]:
        return await self._object("getFile", file_id=file_id)

    # Chat management

    async def ban_chat_member(
        self, chat_id: ChatId, user_id: int, **params: Any
    ) -> bool:
        return await self._bool(
            "banChatMember", chat_id=chat_id, user_id=user_id, **params
        )

    async def kick_chat_member(
        self, chat_id: ChatId, user_id: int, **params: Any
    ) -> bool:
        return await self._bool(
            "kickChatMember", chat_id=chat_id, user_id=user_id, **params
        )

    async def unban_chat_member(
        self, chat_id: ChatId, user_id: int, **params: Any
    ) -> bool:
        return await self._bool(
            "unbanChatMember", chat_id=chat_id, user_id=user_id, **params
        )

    async def restrict_chat_member(
        self,
        chat_id: ChatId,
        user_id: int,
        permissions: Mapping[str, Any],
        **params: Any,
    ) -> bool:
        return await self._bool(
            "restrictChatMember",
            chat_id=chat_id,
            user_id=user_id,
            permissions=dict(permissions),
            **params,
        )

    async def promote_chat_member(
        self, chat_id: ChatId, user_id: int, **params: Any
    ) -> bool:
        return await self._bool(
            "promoteChatMember", chat_id=chat_id, user_id=user_id, **params
        )

    async def pin_chat_message(
        self, chat_id: ChatId, message_id: int, **params: Any
    ) -> bool:
        return await self._bool(
            "pinChatMessage", chat_id=chat_id, message_id=message_id, **params
        )

    async def unpin_chat_message(self, chat_id: ChatId, **params: Any) -> bool:
        return await self._bool("unpinChatMessage", chat_id=chat_id, **params)

    async def unpin_all_chat_messages(self, chat_id: ChatId) -> bool:
        return await self._bool("unpinAllChatMessages", chat_id=chat_id)

    async def leave_chat(self, chat_id: ChatId) -> bool:
        return await self._bool("leaveChat", chat_id=chat_id)

    async def get_chat(self, chat_id: ChatId) -> dict[str, Any]:
        return await self._object("getChat", chat_id=chat_id)

    async def get_chat_administrators(self, chat_id: ChatId) -> list[Any]:
        return await self._array("getChatAdministrators", chat_id=chat_id)

    async def get_chat_member_count(self, chat_id: ChatId) -> int:
        return await self._int("getChatMemberCount", chat_id=chat_id)

    async def get_chat_member(self, chat_id: ChatId, user_id: int) -> dict[str, Any]:
        return await self._object("getChatMember", chat_id=chat_id, user_id=user_id)

    async def set_chat_sticker_set(
        self, chat_id: ChatId, sticker_set_name: str
    ) -> bool:
        return await self._bool(
            "setChatStickerSet", chat_id=chat_id, sticker_set_name=sticker_set_name
        )

    async def delete_chat_sticker_set(self, chat_id: ChatId) -> bool:
        return await self._bool("deleteChatStickerSet", chat_id=chat_id)
