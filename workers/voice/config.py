# workers/voice/config.py
"""
Configuration for the local voice client.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv(usecwd=True))


def _device(value: Optional[str]) -> Optional[int | str]:
    """PortAudio accepts a device index or a name substring."""
    if not value:
        return None
    return int(value) if value.isdigit() else value


@dataclass
class VoiceClientConfig:
    """Configuration for the voice client."""

    # Cheffy API
    api_url: str = os.getenv("CHEFFY_API_URL", "http://localhost:8000")
    access_token: str = os.getenv("CHEFFY_ACCESS_TOKEN", "")

    # Voice agent
    agent_ws_url: str = os.getenv(
        "ELEVENLABS_WS_URL", "wss://api.elevenlabs.io/v1/convai/conversation"
    )

    # Audio devices
    sample_rate: int = int(os.getenv("VOICE_SAMPLE_RATE", "16000"))
    input_device: Optional[int | str] = _device(os.getenv("VOICE_INPUT_DEVICE"))
    output_device: Optional[int | str] = _device(os.getenv("VOICE_OUTPUT_DEVICE"))

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.api_url:
            errors.append("CHEFFY_API_URL is required")
        if not self.agent_ws_url.startswith(("ws://", "wss://")):
            errors.append("ELEVENLABS_WS_URL must be a ws:// or wss:// URL")
        if self.sample_rate <= 0:
            errors.append("VOICE_SAMPLE_RATE must be positive")

        return errors


def get_config() -> VoiceClientConfig:
    """Get voice client configuration from environment."""
    return VoiceClientConfig()
