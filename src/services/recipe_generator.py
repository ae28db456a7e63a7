from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping, Optional, Protocol

from src.app.domain.errors import RecipeValidationError
from src.app.domain.models import Recipe
from src.app.infra.db.base import RecipeRepository
from src.services.errors import GenerationParseError, NoInputError
from src.services.recipe_parser import parse_recipe_response

RECIPE_SYSTEM_PROMPT = Path(__file__).resolve().parents[2] / "data" / "prompts" / "RECIPE_SYSTEM_PROMPT.txt"
TEMPERATURE = 0.7
MAX_OUTPUT_TOKENS = 2000

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    def generate_content(
        self,
        user_prompt: str,
        system_prompt_path: Path,
        *,
        temperature: float = ...,
        max_output_tokens: int = ...,
    ) -> str:
        ...


def build_transcript(messages: Iterable[Mapping[str, str]]) -> str:
    lines: list[str] = []
    for item in messages:
        role = (item.get("role") or "").strip().lower()
        content = (item.get("content") or "").strip()
        if not content:
            continue
        speaker = "User" if role == "user" else "Assistant"
        lines.append(f"{speaker}: {content}")
    return "\n".join(lines)


class RecipeGenerator:
    """Generates a recipe from a conversation transcript and stores it."""

    def __init__(
        self,
        client: TextGenerator,
        repository: RecipeRepository,
        system_prompt_path: Path = RECIPE_SYSTEM_PROMPT,
    ) -> None:
        self._client = client
        self._repo = repository
        self._system_prompt_path = system_prompt_path

    def generate(
        self,
        owner_id: str,
        messages: list[Mapping[str, str]],
        conversation_title: Optional[str] = None,
    ) -> Recipe:
        transcript = build_transcript(messages)
        if not transcript:
            raise NoInputError("No messages provided")

        logger.info(
            "Generating recipe: user=%s, messages=%d, conversation=%s",
            owner_id, len(messages), conversation_title,
        )
        user_prompt = f"Based on this conversation, create a recipe:\n\n{transcript}"
        raw = self._client.generate_content(
            user_prompt,
            self._system_prompt_path,
            temperature=TEMPERATURE,
            max_output_tokens=MAX_OUTPUT_TOKENS,
        )

        try:
            draft = parse_recipe_response(raw)
        except GenerationParseError:
            logger.error("Failed to parse recipe JSON for user=%s. Raw response: %s", owner_id, raw)
            raise
        except RecipeValidationError as error:
            logger.warning("Generated recipe rejected for user=%s: %s", owner_id, error)
            raise

        recipe = self._repo.create_recipe(owner_id, draft)
        logger.info("Recipe generated: id=%s, title=%s", recipe.id, recipe.title)
        return recipe
