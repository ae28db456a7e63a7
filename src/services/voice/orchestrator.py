from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import httpx

from src.app.domain.models import MessageRole, TranscriptEntry, TranscriptRole
from src.services.api_client import CheffyApiClient
from src.services.errors import ApiRequestError, OrchestratorStateError
from src.services.voice.avatar import PCM_S16LE, AgentAudioInputStream, AvatarClient
from src.services.voice.microphone import CHANNELS, SAMPLE_RATE
from src.services.voice.relay import RelayCallbacks, Teardown, connect_voice_agent

logger = logging.getLogger(__name__)

NAVIGATE_DELAY_SECONDS = 0.5
TITLE_PREFIX = "Conversation with AI"

RelayConnector = Callable[[str, RelayCallbacks], Awaitable[Teardown]]


class OrchestratorState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SAVING = "saving"
    GENERATING_RECIPE = "generating_recipe"


@dataclass(frozen=True)
class OrchestratorSnapshot:
    state: OrchestratorState
    transcript: tuple[TranscriptEntry, ...]
    error: Optional[str]
    recipe_error: Optional[str]
    recipe_error_retryable: bool
    generated_recipe_id: Optional[str]

    @property
    def is_connected(self) -> bool:
        return self.state is OrchestratorState.CONNECTED


def conversation_title(now: datetime | None = None) -> str:
    stamp = (now or datetime.now()).strftime("%x, %X")
    return f"{TITLE_PREFIX} - {stamp}"


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime.now()


class ConversationOrchestrator:
    """
    Drives one voice conversation at a time and the actions on its transcript.

    ``sample_rate`` applies to the agent audio stream and should match the rate
    the microphone captures at.

    Resources (avatar session, relay teardown) are acquired in ``start`` and
    released in ``stop``. Save and generation only run while idle.
    """

    def __init__(
        self,
        api: CheffyApiClient,
        avatar: AvatarClient,
        *,
        connect_relay: RelayConnector = connect_voice_agent,
        navigate_delay: float = NAVIGATE_DELAY_SECONDS,
        sample_rate: int = SAMPLE_RATE,
    ) -> None:
        self._api = api
        self._avatar = avatar
        self._connect_relay = connect_relay
        self._navigate_delay = navigate_delay
        self.sample_rate = sample_rate

        self.state = OrchestratorState.IDLE
        self.transcript: list[TranscriptEntry] = []
        self.error: Optional[str] = None
        self.recipe_error: Optional[str] = None
        self.recipe_error_retryable = False
        self.generated_recipe_id: Optional[str] = None

        self._teardown: Optional[Teardown] = None
        self._avatar_started = False
        self._audio_stream: Optional[AgentAudioInputStream] = None
        self._saved_listeners: list[Callable[[dict[str, Any]], None]] = []
        self._navigate_listeners: list[Callable[[str], None]] = []

    # ---------- listeners ----------

    def on_conversation_saved(self, listener: Callable[[dict[str, Any]], None]) -> None:
        self._saved_listeners.append(listener)

    def on_navigate(self, listener: Callable[[str], None]) -> None:
        self._navigate_listeners.append(listener)

    def snapshot(self) -> OrchestratorSnapshot:
        return OrchestratorSnapshot(
            state=self.state,
            transcript=tuple(self.transcript),
            error=self.error,
            recipe_error=self.recipe_error,
            recipe_error_retryable=self.recipe_error_retryable,
            generated_recipe_id=self.generated_recipe_id,
        )

    # ---------- relay callbacks ----------

    def _append(self, role: TranscriptRole, text: str) -> None:
        self.transcript.append(TranscriptEntry(role=role, text=text, timestamp=datetime.now()))

    def _on_ready(self) -> None:
        logger.info("Voice agent connected")
        self.state = OrchestratorState.CONNECTED

    def _on_audio(self, chunk: str) -> None:
        if self._audio_stream is not None:
            self._audio_stream.send_audio_chunk(chunk)

    def _on_user_transcript(self, text: str) -> None:
        self._append(TranscriptRole.USER, text)

    def _on_agent_response(self, text: str) -> None:
        self._append(TranscriptRole.AGENT, text)
        if self._audio_stream is not None:
            self._audio_stream.end_sequence()

    def _on_interrupt(self) -> None:
        if self._audio_stream is not None:
            self._audio_stream.end_sequence()

    def _on_disconnect(self) -> None:
        logger.info("Voice agent disconnected")
        if self.state in (OrchestratorState.CONNECTING, OrchestratorState.CONNECTED):
            self.state = OrchestratorState.IDLE

    def _on_error(self, error: Exception) -> None:
        logger.error("Voice agent error: %s", error)
        self.error = str(error)

    def _relay_callbacks(self) -> RelayCallbacks:
        return RelayCallbacks(
            on_ready=self._on_ready,
            on_audio=self._on_audio,
            on_user_transcript=self._on_user_transcript,
            on_agent_response=self._on_agent_response,
            on_interrupt=self._on_interrupt,
            on_disconnect=self._on_disconnect,
            on_error=self._on_error,
        )

    # ---------- lifecycle ----------

    async def start(self) -> None:
        if self.state is not OrchestratorState.IDLE:
            raise OrchestratorStateError(f"Cannot start while {self.state.value}")

        self.state = OrchestratorState.CONNECTING
        self.error = None
        try:
            config = await self._api.get_session_config()
            await self._avatar.start(config.anam_session_token)
            self._avatar_started = True
            self._audio_stream = self._avatar.create_agent_audio_input_stream(
                PCM_S16LE, self.sample_rate, CHANNELS
            )
            self._teardown = await self._connect_relay(
                config.elevenlabs_agent_id, self._relay_callbacks()
            )
        except Exception as error:
            logger.exception("Failed to start conversation")
            self.error = error.full_message if isinstance(error, ApiRequestError) else str(error)
            try:
                await self._release()
            except Exception as release_error:
                logger.exception("Error releasing conversation after failed start")
                self.error = f"{self.error} (cleanup failed: {release_error})"
            finally:
                self.state = OrchestratorState.IDLE

    async def _release(self) -> None:
        teardown, self._teardown = self._teardown, None
        avatar_started, self._avatar_started = self._avatar_started, False
        self._audio_stream = None
        if teardown is not None:
            await teardown()
        if avatar_started:
            await self._avatar.stop()

    async def stop(self) -> None:
        try:
            await self._release()
        except Exception as error:
            logger.exception("Error stopping conversation")
            self.error = str(error)
        finally:
            if self.state in (OrchestratorState.CONNECTING, OrchestratorState.CONNECTED):
                self.state = OrchestratorState.IDLE

    # ---------- transcript actions ----------

    def _require_idle_transcript(self, action: str) -> None:
        if not self._api.is_signed_in:
            raise OrchestratorStateError(f"Please sign in to {action}", 401)
        if self.state is not OrchestratorState.IDLE:
            raise OrchestratorStateError(f"Stop the conversation before you {action}")
        if not self.transcript:
            raise OrchestratorStateError(
                f"No conversation messages to {action}. Start a conversation first.", 400
            )

    def _history(self) -> list[dict[str, str]]:
        return [
            {"role": MessageRole.from_transcript_role(entry.role).value, "content": entry.text}
            for entry in self.transcript
        ]

    async def save(self) -> Optional[dict[str, Any]]:
        self._require_idle_transcript("save conversations")

        self.state = OrchestratorState.SAVING
        try:
            conversation = await self._api.save_conversation(self._history(), conversation_title())
        except ApiRequestError as error:
            logger.error("Error saving conversation: status=%s", error.status_code)
            self.error = f"Failed to save conversation: {error.full_message}"
            return None
        except httpx.HTTPError as error:
            logger.error("Error saving conversation: %s", error)
            self.error = f"Failed to save conversation: {error}"
            return None
        finally:
            self.state = OrchestratorState.IDLE

        logger.info("Conversation saved: %s", conversation.get("id"))
        self.transcript = []
        for listener in self._saved_listeners:
            listener(conversation)
        return conversation

    async def generate_recipe(self) -> Optional[dict[str, Any]]:
        self._require_idle_transcript("generate recipes")

        self.state = OrchestratorState.GENERATING_RECIPE
        self.generated_recipe_id = None
        self.recipe_error = None
        self.recipe_error_retryable = False
        try:
            recipe = await self._api.generate_recipe(self._history(), conversation_title())
        except ApiRequestError as error:
            logger.error("Error generating recipe: status=%s", error.status_code)
            self.recipe_error = str(error)
            self.recipe_error_retryable = error.retryable
            return None
        except httpx.HTTPError as error:
            logger.error("Error generating recipe: %s", error)
            self.recipe_error = str(error) or "Failed to generate recipe"
            return None
        finally:
            self.state = OrchestratorState.IDLE

        recipe_id = recipe.get("id")
        if recipe_id:
            self.generated_recipe_id = recipe_id
            asyncio.get_running_loop().call_later(self._navigate_delay, self._navigate, recipe_id)
        return recipe

    @property
    def recipe_retry(self) -> Optional[Callable[[], Awaitable[Optional[dict[str, Any]]]]]:
        if self.recipe_error and self.recipe_error_retryable:
            return self._retry_recipe
        return None

    async def _retry_recipe(self) -> Optional[dict[str, Any]]:
        self.recipe_error = None
        self.recipe_error_retryable = False
        return await self.generate_recipe()

    def _navigate(self, recipe_id: str) -> None:
        for listener in self._navigate_listeners:
            listener(recipe_id)

    async def load(self, conversation_id: str) -> list[TranscriptEntry]:
        """Replace the transcript with a stored conversation's messages."""
        if self.state is not OrchestratorState.IDLE:
            raise OrchestratorStateError(f"Cannot load a conversation while {self.state.value}")

        conversation = await self._api.get_conversation(conversation_id)
        self.transcript = [
            TranscriptEntry(
                role=MessageRole(item["role"]).to_transcript_role(),
                text=item["content"],
                timestamp=_parse_timestamp(item.get("createdAt")),
            )
            for item in conversation.get("messages") or []
        ]
        self.error = None
        logger.info("Loaded conversation %s (%d messages)", conversation_id, len(self.transcript))
        return list(self.transcript)
