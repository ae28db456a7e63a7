from __future__ import annotations

import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000
CHANNELS = 1
SAMPLE_FORMAT = "int16"
BLOCK_MS = 100


class MicrophoneCapture:
    """
    Captures mono 16-bit PCM from the default (or given) input device.

    Each captured block is handed to ``on_data`` as raw bytes, on the
    PortAudio thread. Callers hop back to their event loop themselves.
    """

    def __init__(
        self,
        on_data: Callable[[bytes], None],
        *,
        sample_rate: int = SAMPLE_RATE,
        device: Optional[int | str] = None,
    ) -> None:
        self._on_data = on_data
        self.sample_rate = sample_rate
        self.device = device
        self._stream: Any = None

    @property
    def active(self) -> bool:
        return self._stream is not None

    def _callback(self, indata, frames, time_info, status) -> None:
        if status:
            logger.warning("Microphone status: %s", status)
        self._on_data(bytes(indata))

    def start(self) -> None:
        if self._stream is not None:
            return
        import sounddevice as sd

        stream = sd.RawInputStream(
            samplerate=self.sample_rate,
            channels=CHANNELS,
            dtype=SAMPLE_FORMAT,
            blocksize=self.sample_rate * BLOCK_MS // 1000,
            device=self.device,
            callback=self._callback,
        )
        stream.start()
        self._stream = stream
        logger.info("Microphone started: rate=%d device=%s", self.sample_rate, self.device)

    def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
        logger.info("Microphone stopped")
