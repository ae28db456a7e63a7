from __future__ import annotations

import asyncio
import functools
import logging
import sys
from pathlib import Path
from typing import Any, Callable

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import httpx

from src.app.domain.errors import WorkerConfigurationError
from src.services.api_client import CheffyApiClient
from src.services.errors import ApiRequestError, OrchestratorStateError
from src.services.voice.avatar import SpeakerAvatarClient
from src.services.voice.microphone import MicrophoneCapture
from src.services.voice.orchestrator import ConversationOrchestrator
from src.services.voice.relay import connect_voice_agent
from workers.voice.config import VoiceClientConfig, get_config

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("voice-client")

PROMPT = "cheffy> "
HELP_TEXT = (
    "commands: start | stop | save | generate | retry | list | load <id> | status | help | quit"
)


class VoiceClient:
    """Line-oriented front end over the conversation orchestrator."""

    def __init__(
        self,
        config: VoiceClientConfig,
        api: CheffyApiClient,
        orchestrator: ConversationOrchestrator,
        output: Callable[[str], None] = print,
    ) -> None:
        self.config = config
        self.api = api
        self.orchestrator = orchestrator
        self.output = output
        orchestrator.on_conversation_saved(self._conversation_saved)
        orchestrator.on_navigate(self._navigate)

    def _conversation_saved(self, conversation: dict[str, Any]) -> None:
        self.output(f"Saved conversation {conversation.get('id')}")

    def _navigate(self, recipe_id: str) -> None:
        self.output(f"Recipe ready: {self.config.api_url.rstrip('/')}/recipes/{recipe_id}")

    def _print_status(self) -> None:
        snap = self.orchestrator.snapshot()
        self.output(f"state: {snap.state.value}")
        for entry in snap.transcript:
            self.output(f"  [{entry.role.value}] {entry.text}")
        if snap.error:
            self.output(f"error: {snap.error}")
        if snap.recipe_error:
            hint = " (type 'retry')" if snap.recipe_error_retryable else ""
            self.output(f"recipe error: {snap.recipe_error}{hint}")

    async def _list_conversations(self) -> None:
        conversations = await self.api.list_conversations()
        if not conversations:
            self.output("No saved conversations")
        for item in conversations:
            self.output(f"{item.get('id')}  {item.get('title') or '(untitled)'}  ({item.get('messageCount', 0)} messages)")

    async def handle_command(self, line: str) -> bool:
        """Run one command. Returns False when the client should exit."""
        command, _, argument = line.strip().partition(" ")
        command = command.lower()
        orchestrator = self.orchestrator

        try:
            if command in ("quit", "exit"):
                return False
            if command == "start":
                await orchestrator.start()
            elif command == "stop":
                await orchestrator.stop()
            elif command == "save":
                await orchestrator.save()
            elif command == "generate":
                await orchestrator.generate_recipe()
            elif command == "retry":
                retry = orchestrator.recipe_retry
                if retry is None:
                    self.output("Nothing to retry")
                else:
                    await retry()
            elif command == "list":
                await self._list_conversations()
            elif command == "load":
                if not argument:
                    self.output("usage: load <conversation id>")
                else:
                    await orchestrator.load(argument.strip())
            elif command in ("status", ""):
                pass
            elif command == "help":
                self.output(HELP_TEXT)
                return True
            else:
                self.output(f"Unknown command: {command}")
                return True
        except OrchestratorStateError as error:
            self.output(str(error))
        except ApiRequestError as error:
            logger.error("API request failed: status=%d", error.status_code)
            self.output(error.full_message)
        except httpx.HTTPError as error:
            logger.error("API unreachable: %s", error)
            self.output(f"API unreachable: {error}")

        self._print_status()
        return True

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        self.output(HELP_TEXT)
        try:
            while True:
                try:
                    line = await loop.run_in_executor(None, input, PROMPT)
                except EOFError:
                    break
                if not await self.handle_command(line):
                    break
        finally:
            await self.orchestrator.stop()
            await self.api.aclose()
            logger.info("Voice client shut down")


def create_default_client(config: VoiceClientConfig) -> VoiceClient:
    api = CheffyApiClient(config.api_url, access_token=config.access_token or None)
    avatar = SpeakerAvatarClient(device=config.output_device)

    def microphone_factory(on_data: Callable[[bytes], None]) -> MicrophoneCapture:
        return MicrophoneCapture(on_data, sample_rate=config.sample_rate, device=config.input_device)

    connect_relay = functools.partial(
        connect_voice_agent,
        base_url=config.agent_ws_url,
        microphone_factory=microphone_factory,
    )
    orchestrator = ConversationOrchestrator(
        api, avatar, connect_relay=connect_relay, sample_rate=config.sample_rate
    )
    return VoiceClient(config, api, orchestrator)


def main() -> None:
    config = get_config()
    errors = config.validate()
    if errors:
        raise WorkerConfigurationError(errors)

    logger.info("Starting voice client: api=%s signed_in=%s", config.api_url, bool(config.access_token))
    client = create_default_client(config)
    try:
        asyncio.run(client.run())
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
