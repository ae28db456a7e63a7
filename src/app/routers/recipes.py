from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from starlette.concurrency import run_in_threadpool

from src.app.deps import (
    CurrentUser,
    get_current_user,
    get_optional_user,
    get_recipe_generator,
    get_recipe_repository,
)
from src.app.domain.errors import DomainError, ForbiddenError, NotFoundError
from src.app.infra.db.base import RecipeRepository
from src.app.schemas.recipes import (
    GenerateRecipeRequest,
    RecipeListResponse,
    RecipeOut,
    RecipeResponse,
)
from src.services.errors import NoInputError, ServiceError
from src.services.gemini_client import classify_upstream_error
from src.services.recipe_generator import RecipeGenerator

log = logging.getLogger("recipes")
router = APIRouter(prefix="/recipes", tags=["recipes"])


@router.post("/generate", response_model=RecipeResponse, status_code=status.HTTP_201_CREATED)
async def generate_recipe(
    payload: GenerateRecipeRequest,
    user: CurrentUser = Depends(get_current_user),
    generator: RecipeGenerator = Depends(get_recipe_generator),
) -> RecipeResponse:
    if not payload.messages:
        raise NoInputError("No messages provided")

    messages = [item.model_dump() for item in payload.messages]
    try:
        recipe = await run_in_threadpool(
            generator.generate,
            user.id,
            messages,
            payload.conversationTitle,
        )
    except (ServiceError, DomainError):
        raise
    except Exception as exc:
        log.exception("Error generating recipe for user=%s", user.id)
        raise classify_upstream_error(exc) from exc

    return RecipeResponse(recipe=RecipeOut.from_domain(recipe))


@router.get("", response_model=RecipeListResponse)
async def list_recipes(
    mine: bool = Query(default=False),
    user: CurrentUser | None = Depends(get_optional_user),
    repo: RecipeRepository = Depends(get_recipe_repository),
) -> RecipeListResponse:
    owner_id = None
    if mine:
        if user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
        owner_id = user.id

    recipes = await run_in_threadpool(repo.list_recipes, owner_id)
    return RecipeListResponse(recipes=[RecipeOut.from_domain(item) for item in recipes])


@router.get("/{recipe_id}", response_model=RecipeResponse)
async def get_recipe(
    recipe_id: str,
    repo: RecipeRepository = Depends(get_recipe_repository),
) -> RecipeResponse:
    recipe = await run_in_threadpool(repo.get_recipe, recipe_id)
    if recipe is None:
        raise NotFoundError("recipe", recipe_id)
    return RecipeResponse(recipe=RecipeOut.from_domain(recipe))


@router.delete("/{recipe_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recipe(
    recipe_id: str,
    user: CurrentUser = Depends(get_current_user),
    repo: RecipeRepository = Depends(get_recipe_repository),
) -> None:
    recipe = await run_in_threadpool(repo.get_recipe, recipe_id)
    if recipe is None:
        raise NotFoundError("recipe", recipe_id)
    if recipe.owner_id != user.id:
        raise ForbiddenError("recipe", recipe_id)
    await run_in_threadpool(repo.delete_recipe, recipe_id)
