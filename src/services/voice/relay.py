"""
Websocket relay between the local microphone and a remote conversational agent.

Outbound frames carry base64 PCM (``{"user_audio_chunk": ...}``). Inbound frames
are JSON objects discriminated by ``type``; each kind is handed to one of the
caller's callbacks. The ``type`` field is the only one consulted.
"""
from __future__ import annotations

import asyncio
import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol
from urllib.parse import urlencode

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException

from src.services.errors import RelayConnectionError, RelayProtocolError
from src.services.voice.microphone import SAMPLE_RATE, MicrophoneCapture

logger = logging.getLogger("voice.relay")

DEFAULT_AGENT_URL = "wss://api.elevenlabs.io/v1/convai/conversation"

Teardown = Callable[[], Awaitable[None]]


@dataclass
class RelayCallbacks:
    on_ready: Optional[Callable[[], None]] = None
    on_audio: Optional[Callable[[str], None]] = None
    on_user_transcript: Optional[Callable[[str], None]] = None
    on_agent_response: Optional[Callable[[str], None]] = None
    on_interrupt: Optional[Callable[[], None]] = None
    on_disconnect: Optional[Callable[[], None]] = None
    on_error: Optional[Callable[[Exception], None]] = None


class Microphone(Protocol):
    @property
    def active(self) -> bool: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...


MicrophoneFactory = Callable[[Callable[[bytes], None]], Microphone]
Connector = Callable[[str], Awaitable[Any]]


def default_microphone(on_data: Callable[[bytes], None]) -> Microphone:
    return MicrophoneCapture(on_data, sample_rate=SAMPLE_RATE)


def _event(message: dict[str, Any], key: str) -> dict[str, Any]:
    payload = message.get(key)
    return payload if isinstance(payload, dict) else {}


class VoiceAgentRelay:
    def __init__(
        self,
        agent_id: str,
        callbacks: RelayCallbacks,
        *,
        base_url: str = DEFAULT_AGENT_URL,
        microphone_factory: MicrophoneFactory = default_microphone,
        connector: Connector = ws_connect,
    ) -> None:
        self.agent_id = agent_id
        self.url = f"{base_url}?{urlencode({'agent_id': agent_id})}"
        self._callbacks = callbacks
        self._microphone_factory = microphone_factory
        self._connector = connector
        self._ws: Any = None
        self._mic: Optional[Microphone] = None
        self._outbound: "asyncio.Queue[Optional[bytes]]" = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._sender: Optional[asyncio.Task[None]] = None
        self._receiver: Optional[asyncio.Task[None]] = None
        self._closed = False
        self._disconnected = False

    def _emit_error(self, error: Exception) -> None:
        if self._callbacks.on_error:
            self._callbacks.on_error(error)

    async def open(self) -> None:
        self._loop = asyncio.get_running_loop()
        try:
            self._ws = await self._connector(self.url)
        except (OSError, TimeoutError, asyncio.TimeoutError, WebSocketException) as error:
            logger.error("WebSocket error connecting to agent %s: %s", self.agent_id, error)
            relay_error = RelayConnectionError(f"WebSocket error: {error}")
            self._emit_error(relay_error)
            raise relay_error from error
        logger.info("Connected to voice agent %s", self.agent_id)

        try:
            self._mic = self._microphone_factory(self._enqueue_audio)
            self._mic.start()
        except Exception as error:
            logger.error("Microphone failed to start: %s", error)
            relay_error = RelayConnectionError(f"Microphone unavailable: {error}")
            self._emit_error(relay_error)
            await self.teardown()
            raise relay_error from error

        self._sender = asyncio.create_task(self._send_audio(), name="relay-sender")
        self._receiver = asyncio.create_task(self._receive(), name="relay-receiver")
        if self._callbacks.on_ready:
            self._callbacks.on_ready()

    def _enqueue_audio(self, chunk: bytes) -> None:
        # runs on the capture thread
        if self._closed or self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._outbound.put_nowait, chunk)

    async def _send_audio(self) -> None:
        while True:
            chunk = await self._outbound.get()
            if chunk is None or self._closed:
                return
            frame = json.dumps({"user_audio_chunk": base64.b64encode(chunk).decode("ascii")})
            try:
                await self._ws.send(frame)
            except ConnectionClosed:
                return

    async def _receive(self) -> None:
        try:
            async for raw in self._ws:
                try:
                    await self._dispatch(raw)
                except RelayProtocolError as error:
                    logger.warning("Dropped inbound frame: %s", error)
                    self._emit_error(error)
                except Exception as error:
                    logger.exception("Relay callback failed")
                    self._emit_error(error)
        except ConnectionClosedError as error:
            logger.warning("Voice agent connection lost: %s", error)
            self._emit_error(RelayConnectionError(f"WebSocket closed abnormally: {error}"))
        finally:
            self._handle_close()

    async def _dispatch(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as error:
            raise RelayProtocolError("Failed to parse WebSocket message") from error
        if not isinstance(message, dict):
            raise RelayProtocolError("Failed to parse WebSocket message")

        kind = message.get("type")
        callbacks = self._callbacks

        if kind == "audio":
            audio = _event(message, "audio_event").get("audio_base_64")
            if audio and callbacks.on_audio:
                callbacks.on_audio(audio)
        elif kind == "agent_response":
            text = _event(message, "agent_response_event").get("agent_response")
            if text and callbacks.on_agent_response:
                callbacks.on_agent_response(text)
        elif kind == "user_transcript":
            text = _event(message, "user_transcription_event").get("user_transcript")
            if text and callbacks.on_user_transcript:
                callbacks.on_user_transcript(text)
        elif kind == "interruption":
            if callbacks.on_interrupt:
                callbacks.on_interrupt()
        elif kind == "ping":
            event_id = _event(message, "ping_event").get("event_id")
            if event_id is not None:
                await self._ws.send(json.dumps({"type": "pong", "event_id": event_id}))

    def _stop_microphone(self) -> None:
        mic, self._mic = self._mic, None
        if mic is not None:
            mic.stop()

    def _handle_close(self) -> None:
        self._closed = True
        self._stop_microphone()
        self._outbound.put_nowait(None)
        if not self._disconnected:
            self._disconnected = True
            logger.info("Voice agent %s disconnected", self.agent_id)
            if self._callbacks.on_disconnect:
                self._callbacks.on_disconnect()

    async def teardown(self) -> None:
        """Stop the microphone and close the socket. Safe to call repeatedly."""
        self._stop_microphone()
        if self._closed:
            return
        self._closed = True
        self._outbound.put_nowait(None)
        if self._ws is not None:
            await self._ws.close()
        receiver = self._receiver
        if receiver is not None and receiver is not asyncio.current_task():
            await asyncio.gather(receiver, return_exceptions=True)
        if self._sender is not None:
            await asyncio.gather(self._sender, return_exceptions=True)
        self._handle_close()


async def connect_voice_agent(
    agent_id: str,
    callbacks: RelayCallbacks,
    *,
    base_url: str = DEFAULT_AGENT_URL,
    microphone_factory: MicrophoneFactory = default_microphone,
    connector: Connector = ws_connect,
) -> Teardown:
    """
    Open the relay and start streaming microphone audio.

    Returns:
        The idempotent teardown coroutine function

    Raises:
        RelayConnectionError: the socket or the microphone could not be opened
    """
    relay = VoiceAgentRelay(
        agent_id,
        callbacks,
        base_url=base_url,
        microphone_factory=microphone_factory,
        connector=connector,
    )
    await relay.open()
    return relay.teardown
