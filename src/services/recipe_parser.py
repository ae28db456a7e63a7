from __future__ import annotations

import json
import math
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.app.domain.errors import RecipeValidationError
from src.app.domain.models import (
    DEFAULT_DIFFICULTY,
    DEFAULT_SERVINGS,
    DEFAULT_TIME_MINUTES,
    RecipeDraft,
)
from src.services.errors import GenerationParseError

LEADING_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
TRAILING_FENCE_PATTERN = re.compile(r"\s*```$")
REQUIRED_FIELDS = ("title", "ingredients", "instructions")


def _positive_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value if value > 0 else default
    if isinstance(value, float):
        return int(value) if math.isfinite(value) and value > 0 else default
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return default
        return int(number) if math.isfinite(number) and number > 0 else default
    return default


def _clean_strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    out: list[str] = []
    for item in value:
        if isinstance(item, (str, int, float)) and not isinstance(item, bool):
            text = str(item).strip()
            if text:
                out.append(text)
    return out


class GeneratedRecipe(BaseModel):
    """Schema of the JSON object the model is instructed to return."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = ""
    description: str = ""
    ingredients: list[str] = Field(default_factory=list)
    instructions: list[str] = Field(default_factory=list)
    prep_time: int = Field(default=DEFAULT_TIME_MINUTES, alias="prepTime")
    cook_time: int = Field(default=DEFAULT_TIME_MINUTES, alias="cookTime")
    servings: int = DEFAULT_SERVINGS
    difficulty: str = DEFAULT_DIFFICULTY
    tags: list[str] = Field(default_factory=list)
    image_url: Optional[str] = Field(default=None, alias="imageUrl")

    @field_validator("title", "description", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return value.strip() if isinstance(value, str) else ""

    @field_validator("ingredients", "instructions", "tags", mode="before")
    @classmethod
    def _string_list(cls, value: Any) -> list[str]:
        return _clean_strings(value)

    @field_validator("prep_time", "cook_time", mode="before")
    @classmethod
    def _minutes(cls, value: Any) -> int:
        return _positive_int(value, DEFAULT_TIME_MINUTES)

    @field_validator("servings", mode="before")
    @classmethod
    def _servings(cls, value: Any) -> int:
        return _positive_int(value, DEFAULT_SERVINGS)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _difficulty(cls, value: Any) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip().lower()
        return DEFAULT_DIFFICULTY

    @field_validator("image_url", mode="before")
    @classmethod
    def _image_url(cls, value: Any) -> Optional[str]:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    def to_draft(self) -> RecipeDraft:
        return RecipeDraft(
            title=self.title,
            ingredients=list(self.ingredients),
            instructions=list(self.instructions),
            description=self.description,
            prep_time=self.prep_time,
            cook_time=self.cook_time,
            servings=self.servings,
            difficulty=self.difficulty,
            tags=list(self.tags),
            image_url=self.image_url,
        )


def strip_code_fence(text: str) -> str:
    stripped = text.strip()
    stripped = LEADING_FENCE_PATTERN.sub("", stripped)
    return TRAILING_FENCE_PATTERN.sub("", stripped)


def extract_json_object(text: str) -> Optional[str]:
    """Return the first balanced {...} span, skipping braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]
        start = text.find("{", start + 1)
    return None


def parse_recipe_response(text: str) -> RecipeDraft:
    """
    Turn raw model output into a validated RecipeDraft.

    Raises:
        GenerationParseError: the output holds no parseable JSON object
        RecipeValidationError: title, ingredients or instructions is missing
    """
    json_text = strip_code_fence(text or "")
    candidate = extract_json_object(json_text)
    if candidate is not None:
        json_text = candidate

    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as error:
        raise GenerationParseError(str(error)) from error

    if not isinstance(data, dict):
        raise GenerationParseError(f"expected a JSON object, got {type(data).__name__}")

    recipe = GeneratedRecipe.model_validate(data)
    for field_name in REQUIRED_FIELDS:
        if not getattr(recipe, field_name):
            raise RecipeValidationError(field_name)

    return recipe.to_draft()
