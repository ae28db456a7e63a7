from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.app.domain.models import Recipe
from src.app.schemas.conversations import MessageIn


class RecipeOut(BaseModel):
    id: str
    userId: str
    title: str
    description: str = ""
    ingredients: list[str]
    instructions: list[str]
    prepTime: int = 0
    cookTime: int = 0
    servings: int = 1
    difficulty: str = "medium"
    tags: list[str] = Field(default_factory=list)
    imageUrl: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_domain(cls, recipe: Recipe) -> "RecipeOut":
        return cls(
            id=recipe.id,
            userId=recipe.owner_id,
            title=recipe.title,
            description=recipe.description,
            ingredients=recipe.ingredients,
            instructions=recipe.instructions,
            prepTime=recipe.prep_time,
            cookTime=recipe.cook_time,
            servings=recipe.servings,
            difficulty=recipe.difficulty,
            tags=recipe.tags,
            imageUrl=recipe.image_url,
            createdAt=recipe.created_at,
            updatedAt=recipe.updated_at,
        )


class GenerateRecipeRequest(BaseModel):
    messages: list[MessageIn] = Field(default_factory=list)
    conversationTitle: Optional[str] = None


class RecipeResponse(BaseModel):
    success: bool = True
    recipe: RecipeOut


class RecipeListResponse(BaseModel):
    success: bool = True
    recipes: list[RecipeOut]
