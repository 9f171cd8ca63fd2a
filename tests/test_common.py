"""
Tests for shared helpers: JSON extraction, retries, errors and settings.
"""

from unittest.mock import Mock

import pytest
from pydantic import ValidationError as PydanticValidationError

from taleweaver.common import (
    ErrorKind,
    GenerationError,
    GenerationService,
    SessionConflictError,
    SessionNotFoundError,
    Settings,
    StorageError,
    ValidationError,
    build_messages,
    call_chat_completion,
    call_with_retries,
    parse_json_payload,
)


class TestParseJsonPayload:
    """Tests for parse_json_payload."""

    def test_strict_json(self):
        assert parse_json_payload('{"story_text": "Once"}') == {"story_text": "Once"}

    def test_fenced_json_block(self):
        reply = 'Here you go:\n```json\n{"story_prompt": "A dragon"}\n```\nEnjoy!'
        assert parse_json_payload(reply) == {"story_prompt": "A dragon"}

    def test_plain_fence(self):
        reply = '```\n{"a": 1}\n```'
        assert parse_json_payload(reply) == {"a": 1}

    @pytest.mark.parametrize("reply", ["", "not json at all", "```json\n{broken\n```"])
    def test_invalid_reply(self, reply):
        with pytest.raises(ValueError):
            parse_json_payload(reply)

    def test_requires_object(self):
        with pytest.raises(ValueError):
            parse_json_payload("[1, 2, 3]")


class TestCallWithRetries:
    """Tests for the bounded retry helper."""

    def test_returns_first_success(self):
        operation = Mock(return_value="ok")

        assert call_with_retries(operation, service=GenerationService.TEXT) == "ok"
        operation.assert_called_once_with(0)

    def test_retries_once_with_delay(self):
        operation = Mock(side_effect=[RuntimeError("flaky"), "ok"])
        sleep = Mock()

        result = call_with_retries(
            operation,
            service=GenerationService.SPEECH,
            max_retries=1,
            delay_seconds=0.5,
            sleep=sleep,
        )

        assert result == "ok"
        assert [call.args[0] for call in operation.call_args_list] == [0, 1]
        sleep.assert_called_once_with(0.5)

    def test_wraps_final_failure(self):
        operation = Mock(side_effect=RuntimeError("down"))

        with pytest.raises(GenerationError) as excinfo:
            call_with_retries(
                operation, service=GenerationService.IMAGE, max_retries=1, sleep=Mock()
            )

        assert excinfo.value.service is GenerationService.IMAGE
        assert "down" in excinfo.value.message
        assert operation.call_count == 2


class TestCallChatCompletion:
    """Tests for the LiteLLM chat completion wrapper."""

    @pytest.fixture
    def fake_completion(self, monkeypatch):
        fake = Mock()
        monkeypatch.setattr("taleweaver.common.llm.completion", fake)
        return fake

    @staticmethod
    def _reply(content, finish_reason="stop"):
        return {
            "choices": [{"message": {"content": content}, "finish_reason": finish_reason}],
            "usage": {"total_tokens": 321},
        }

    def test_json_mode_payload(self, fake_completion):
        fake_completion.return_value = self._reply('  {"story_text": "Once"}  \n')

        result = call_chat_completion(
            model="test-model",
            messages=build_messages("system", "user"),
            max_tokens=200,
            json_mode=True,
        )

        kwargs = fake_completion.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["max_tokens"] == 200
        assert kwargs["messages"][1] == {"role": "user", "content": "user"}
        assert result.text == '{"story_text": "Once"}'
        assert result.finish_reason == "stop"
        assert result.total_tokens == 321

    def test_plain_payload(self, fake_completion):
        fake_completion.return_value = self._reply("Once upon a time")

        call_chat_completion(model="test-model", messages=build_messages("s", "u"))

        assert "response_format" not in fake_completion.call_args.kwargs
        assert "temperature" not in fake_completion.call_args.kwargs

    @pytest.mark.parametrize(
        "reply",
        [
            {"choices": []},
            {"choices": [{"message": {"content": "   "}, "finish_reason": "stop"}]},
            {"choices": [{"message": {"content": '{"story_text": "Once up'}, "finish_reason": "length"}]},
        ],
    )
    def test_unusable_reply(self, fake_completion, reply):
        fake_completion.return_value = reply

        with pytest.raises(RuntimeError):
            call_chat_completion(model="test-model", messages=build_messages("s", "u"), max_tokens=10)


class TestErrors:
    """Tests for the error taxonomy."""

    @pytest.mark.parametrize(
        "error, kind, status",
        [
            (ValidationError("bad"), ErrorKind.VALIDATION, 400),
            (SessionNotFoundError("abc"), ErrorKind.SESSION_EXPIRED, 410),
            (SessionConflictError("abc", 3), ErrorKind.SESSION_CONFLICT, 409),
            (GenerationError("speech", "boom"), ErrorKind.GENERATION, 502),
            (StorageError("disk"), ErrorKind.STORAGE, 500),
        ],
    )
    def test_kind_and_status(self, error, kind, status):
        assert error.kind is kind
        assert error.status_code == status
        assert error.to_dict()["error"] == kind.value

    def test_session_not_found_message(self):
        assert SessionNotFoundError("abc").message == "Session abc not found or expired"

    def test_generation_error_names_service(self):
        payload = GenerationError(GenerationService.TEXT, "timeout").to_dict()

        assert payload["service"] == "text"
        assert "timeout" in payload["message"]


class TestSettings:
    """Tests for Settings resolution from the environment."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch, tmp_path):
        for name in [
            "SESSION_TTL_HOURS",
            "SESSION_STORE_URL",
            "REDIS_URL",
            "TALEWEAVER_DISABLE_GENERATION",
            "DISABLE_TTS",
            "DISABLE_IMAGES",
            "DISABLE_TEXT_GENERATION",
            "IMAGE_ASPECT_RATIO",
            "BRANCH_WORKERS",
            "BRANCH_JOB_MAX_ATTEMPTS",
        ]:
            monkeypatch.delenv(name, raising=False)
        monkeypatch.chdir(tmp_path)

    def test_defaults(self):
        settings = Settings()

        assert settings.session_ttl_seconds == 12 * 3600
        assert settings.session_store_url == "memory://"
        assert settings.image_aspect_ratio == "4:3"
        assert settings.branch_workers == 4
        assert not (settings.disable_text or settings.disable_speech or settings.disable_images)

    def test_global_disable_switch(self, monkeypatch):
        monkeypatch.setenv("TALEWEAVER_DISABLE_GENERATION", "true")

        settings = Settings()

        assert settings.disable_text and settings.disable_speech and settings.disable_images

    def test_service_specific_names(self, monkeypatch):
        monkeypatch.setenv("DISABLE_TTS", "1")
        monkeypatch.setenv("DISABLE_TEXT_GENERATION", "yes")
        monkeypatch.setenv("SESSION_TTL_HOURS", "0.5")

        settings = Settings()

        assert settings.disable_speech and settings.disable_text
        assert not settings.disable_images
        assert settings.session_ttl_seconds == 1800

    def test_redis_url_fallback(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/0")

        assert Settings().session_store_url == "redis://cache:6379/0"

    def test_session_store_url_wins(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/0")
        monkeypatch.setenv("SESSION_STORE_URL", "memory://")

        assert Settings().session_store_url == "memory://"

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("BRANCH_WORKERS=7\nIMAGE_ASPECT_RATIO=16:9\n")

        settings = Settings()

        assert settings.branch_workers == 7
        assert settings.image_aspect_ratio == "16:9"

    def test_keyword_overrides(self, monkeypatch):
        monkeypatch.setenv("DISABLE_IMAGES", "true")

        settings = Settings(disable_images=False, branch_workers=2)

        assert not settings.disable_images
        assert settings.branch_workers == 2

    @pytest.mark.parametrize(
        "name, value",
        [("BRANCH_WORKERS", "many"), ("BRANCH_WORKERS", "0"), ("BRANCH_JOB_MAX_ATTEMPTS", "0")],
    )
    def test_invalid_values(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        with pytest.raises(PydanticValidationError):
            Settings()
