from __future__ import annotations

import asyncio
import base64
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.app.domain.models import TranscriptEntry, TranscriptRole
from src.services.errors import ApiRequestError, OrchestratorStateError
from src.services.voice.avatar import SpeakerAudioStream, SpeakerAvatarClient, _PcmBuffer
from src.services.voice.orchestrator import OrchestratorSnapshot, OrchestratorState
from workers.voice.config import VoiceClientConfig
from workers.voice.main import VoiceClient, create_default_client


def _config(**overrides) -> VoiceClientConfig:
    values = {
        "api_url": "http://localhost:8000",
        "access_token": "token",
        "agent_ws_url": "wss://api.elevenlabs.io/v1/convai/conversation",
        "sample_rate": 16000,
        "input_device": None,
        "output_device": None,
    }
    values.update(overrides)
    return VoiceClientConfig(**values)


def _snapshot(**overrides) -> OrchestratorSnapshot:
    values = {
        "state": OrchestratorState.IDLE,
        "transcript": (TranscriptEntry(TranscriptRole.USER, "Hi chef", datetime.now()),),
        "error": None,
        "recipe_error": None,
        "recipe_error_retryable": False,
        "generated_recipe_id": None,
    }
    values.update(overrides)
    return OrchestratorSnapshot(**values)


def _client(orchestrator: MagicMock) -> tuple[VoiceClient, list[str]]:
    lines: list[str] = []
    api = MagicMock()
    api.list_conversations = AsyncMock(return_value=[{"id": "c1", "title": "Dinner", "messageCount": 4}])
    return VoiceClient(_config(), api, orchestrator, output=lines.append), lines


def _orchestrator(**snapshot) -> MagicMock:
    orchestrator = MagicMock()
    for name in ("start", "stop", "save", "generate_recipe", "load"):
        setattr(orchestrator, name, AsyncMock())
    orchestrator.snapshot.return_value = _snapshot(**snapshot)
    orchestrator.recipe_retry = None
    return orchestrator


class TestVoiceClientConfig:
    def test_valid_config(self) -> None:
        assert _config().validate() == []

    def test_reports_each_problem(self) -> None:
        errors = _config(api_url="", agent_ws_url="https://nope", sample_rate=0).validate()
        assert errors == [
            "CHEFFY_API_URL is required",
            "ELEVENLABS_WS_URL must be a ws:// or wss:// URL",
            "VOICE_SAMPLE_RATE must be positive",
        ]

    def test_default_client_shares_sample_rate(self) -> None:
        client = create_default_client(_config(sample_rate=24000))

        assert client.orchestrator.sample_rate == 24000
        asyncio.run(client.api.aclose())


class TestVoiceClient:
    def test_commands_drive_orchestrator(self) -> None:
        orchestrator = _orchestrator()
        client, lines = _client(orchestrator)

        async def run() -> None:
            for command in ("start", "stop", "save", "generate", "load c1"):
                assert await client.handle_command(command) is True

        asyncio.run(run())

        orchestrator.start.assert_awaited_once()
        orchestrator.stop.assert_awaited_once()
        orchestrator.save.assert_awaited_once()
        orchestrator.generate_recipe.assert_awaited_once()
        orchestrator.load.assert_awaited_once_with("c1")
        assert "  [user] Hi chef" in lines

    def test_quit_returns_false(self) -> None:
        client, _ = _client(_orchestrator())
        assert asyncio.run(client.handle_command("quit")) is False

    def test_state_errors_are_printed(self) -> None:
        orchestrator = _orchestrator()
        orchestrator.save.side_effect = OrchestratorStateError("Please sign in to save conversations", 401)
        client, lines = _client(orchestrator)

        asyncio.run(client.handle_command("save"))

        assert "Please sign in to save conversations" in lines

    def test_api_errors_are_printed(self) -> None:
        orchestrator = _orchestrator()
        orchestrator.load.side_effect = ApiRequestError(404, "Conversation not found: c9")
        client, lines = _client(orchestrator)

        asyncio.run(client.handle_command("load c9"))

        assert "Conversation not found: c9" in lines

    def test_retry_hint_and_retry(self) -> None:
        orchestrator = _orchestrator(recipe_error="Overloaded", recipe_error_retryable=True)
        retry = AsyncMock()
        orchestrator.recipe_retry = retry
        client, lines = _client(orchestrator)

        asyncio.run(client.handle_command("retry"))

        retry.assert_awaited_once()
        assert "recipe error: Overloaded (type 'retry')" in lines

    def test_list_conversations(self) -> None:
        client, lines = _client(_orchestrator())

        asyncio.run(client.handle_command("list"))

        assert "c1  Dinner  (4 messages)" in lines

    def test_navigation_prints_recipe_url(self) -> None:
        orchestrator = ConversationListenerRecorder()
        lines: list[str] = []
        VoiceClient(_config(), MagicMock(), orchestrator, output=lines.append)

        orchestrator.navigate("recipe-7")

        assert lines == ["Recipe ready: http://localhost:8000/recipes/recipe-7"]


class ConversationListenerRecorder:
    def __init__(self) -> None:
        self._navigate = None

    def on_conversation_saved(self, listener) -> None:
        pass

    def on_navigate(self, listener) -> None:
        self._navigate = listener

    def navigate(self, recipe_id: str) -> None:
        self._navigate(recipe_id)


class TestSpeakerAudio:
    def test_buffer_pads_with_silence(self) -> None:
        buffer = _PcmBuffer()
        buffer.push(b"\x01\x02")

        assert buffer.pull(4) == b"\x01\x02\x00\x00"
        assert len(buffer) == 0

    def test_stream_decodes_base64(self) -> None:
        buffer = _PcmBuffer()
        stream = SpeakerAudioStream(buffer)

        stream.send_audio_chunk(base64.b64encode(b"\x10\x20\x30\x40").decode("ascii"))
        stream.send_audio_chunk("***not base64***")
        stream.end_sequence()

        assert buffer.pull(4) == b"\x10\x20\x30\x40"
        assert stream.utterances == 1

    def test_stream_requires_started_session(self) -> None:
        avatar = SpeakerAvatarClient()

        with pytest.raises(RuntimeError):
            avatar.create_agent_audio_input_stream("pcm_s16le", 16000, 1)

    def test_rejects_unknown_encoding(self) -> None:
        avatar = SpeakerAvatarClient()
        asyncio.run(avatar.start("token"))

        with pytest.raises(ValueError):
            avatar.create_agent_audio_input_stream("mp3_44100", 44100, 1)
