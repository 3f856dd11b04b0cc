import json
import logging

import pytest

from ubot.logging import get_logger, redact_token, redact_token_processor, setup_logging
from ubot.matchers import always
from tests.fakes import list_source, make_bot, message_update


class TestRedaction:
    def test_redacts_bot_token_in_url(self) -> None:
        text = "https://api.telegram.org/bot123456789:ABCdefGHI_jkl/sendMessage"
        redacted = redact_token(text)

        assert "123456789" not in redacted
        assert "bot[REDACTED]" in redacted

    def test_redacts_bare_token(self) -> None:
        redacted = redact_token("Token is 123456789:ABCDEFGHIJ_klmnop")

        assert "123456789" not in redacted
        assert "[REDACTED_TOKEN]" in redacted

    def test_plain_text_unchanged(self) -> None:
        assert redact_token("update 12:30 done") == "update 12:30 done"

    def test_processor_redacts_string_fields_only(self) -> None:
        event = {
            "event": "telegram.network_error",
            "error": "POST https://api.telegram.org/bot1:abc/getMe failed",
            "status": 500,
        }

        result = redact_token_processor(None, "error", event)

        assert result["error"] == (
            "POST https://api.telegram.org/bot[REDACTED]/getMe failed"
        )
        assert result["status"] == 500
        assert result["event"] == "telegram.network_error"


class TestSetupLogging:
    def test_setup_debug_mode(self) -> None:
        setup_logging(debug=True)
        assert logging.getLogger().level == logging.DEBUG

    def test_setup_info_mode(self) -> None:
        setup_logging(debug=False)
        assert logging.getLogger().level == logging.INFO

    def test_silences_noisy_loggers(self) -> None:
        setup_logging()
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING
        assert logging.getLogger("uvicorn.access").level == logging.WARNING

    def test_json_output_is_redacted(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging()
        get_logger("ubot.test").info("bot.started", url="/bot42:secret_token")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "bot.started"
        assert record["level"] == "info"
        assert record["logger"] == "ubot.test"
        assert record["url"] == "/bot[REDACTED]"


@pytest.mark.anyio
async def test_dispatch_events_carry_update_id(
    capsys: pytest.CaptureFixture[str],
) -> None:
    setup_logging()
    bot = make_bot()

    async def broken(bot, payload) -> bool:
        raise RuntimeError("boom")

    bot.add_handler("message", always, broken)
    await bot.run(list_source([message_update(7)]))

    records = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    failed = [
        record for record in records if record["event"] == "dispatch.handler_failed"
    ]
    assert len(failed) == 1
    assert failed[0]["update_id"] == 7
    assert failed[0]["error"] == "boom"
    assert "RuntimeError: boom" in failed[0]["exception"]
    started = [record for record in records if record["event"] == "bot.started"]
    assert "update_id" not in started[0]
