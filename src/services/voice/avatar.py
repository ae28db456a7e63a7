"""
Avatar rendering adapters.

The orchestrator only needs two things from an avatar session: somewhere to push
the agent's synthesized audio, and a way to mark the end of an utterance so the
renderer can settle. ``SpeakerAvatarClient`` renders that audio to the local
output device. It keeps the avatar session token but never sends it anywhere,
since no video avatar is rendered.
"""
from __future__ import annotations

import base64
import binascii
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Optional

logger = logging.getLogger(__name__)

PCM_S16LE = "pcm_s16le"
BYTES_PER_SAMPLE = 2


class AgentAudioInputStream(ABC):
    @abstractmethod
    def send_audio_chunk(self, audio_base64: str) -> None:
        """Queue one base64 PCM chunk for rendering."""

    @abstractmethod
    def end_sequence(self) -> None:
        """Mark the end of the current agent utterance."""


class AvatarClient(ABC):
    @abstractmethod
    async def start(self, session_token: str) -> None:
        ...

    @abstractmethod
    def create_agent_audio_input_stream(
        self,
        encoding: str,
        sample_rate: int,
        channels: int,
    ) -> AgentAudioInputStream:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...


class _PcmBuffer:
    """Byte FIFO shared between the event loop and the PortAudio thread."""

    def __init__(self) -> None:
        self._data = bytearray()
        self._lock = threading.Lock()

    def push(self, chunk: bytes) -> None:
        with self._lock:
            self._data.extend(chunk)

    def pull(self, size: int) -> bytes:
        with self._lock:
            chunk = bytes(self._data[:size])
            del self._data[:size]
        return chunk.ljust(size, b"\x00")

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class SpeakerAudioStream(AgentAudioInputStream):
    def __init__(self, buffer: _PcmBuffer) -> None:
        self._buffer = buffer
        self.utterances = 0

    def send_audio_chunk(self, audio_base64: str) -> None:
        try:
            pcm = base64.b64decode(audio_base64, validate=True)
        except (binascii.Error, ValueError):
            logger.warning("Dropped undecodable agent audio chunk")
            return
        self._buffer.push(pcm)

    def end_sequence(self) -> None:
        self.utterances += 1
        logger.debug("Agent utterance %d ended", self.utterances)


class SpeakerAvatarClient(AvatarClient):
    """
    Renders agent audio on the local speaker.

    The session token is accepted for interface parity; the speaker renderer
    never contacts the avatar service with it.
    """

    def __init__(self, device: Optional[int | str] = None) -> None:
        self.device = device
        self.session_token: Optional[str] = None
        self._buffer = _PcmBuffer()
        self._stream: Any = None

    async def start(self, session_token: str) -> None:
        self.session_token = session_token
        logger.info("Avatar session started (speaker output, device=%s)", self.device)

    def _callback(self, outdata, frames, time_info, status) -> None:
        if status:
            logger.warning("Speaker status: %s", status)
        outdata[:] = self._buffer.pull(len(outdata))

    def create_agent_audio_input_stream(
        self,
        encoding: str,
        sample_rate: int,
        channels: int,
    ) -> AgentAudioInputStream:
        if encoding != PCM_S16LE:
            raise ValueError(f"Unsupported agent audio encoding: {encoding}")
        if self.session_token is None:
            raise RuntimeError("Avatar session has not been started")
        import sounddevice as sd

        if self._stream is None:
            stream = sd.RawOutputStream(
                samplerate=sample_rate,
                channels=channels,
                dtype="int16",
                device=self.device,
                callback=self._callback,
            )
            stream.start()
            self._stream = stream
        return SpeakerAudioStream(self._buffer)

    async def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.stop()
            finally:
                stream.close()
        self._buffer.clear()
        self.session_token = None
        logger.info("Avatar session stopped")
