# src/app/infra/db/base.py
"""
Abstract base classes for conversation and recipe persistence.
This interface allows easy swapping between different datastores.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from src.app.domain.models import (
    Conversation,
    ConversationSummary,
    NewMessage,
    Recipe,
    RecipeDraft,
)


class ConversationRepository(ABC):
    """
    Abstract interface for conversation storage.

    Implementations:
    - SupabaseConversationRepository: Postgres tables behind Supabase
    """

    @abstractmethod
    def create_conversation(
        self,
        owner_id: str,
        messages: Sequence[NewMessage],
        title: Optional[str] = None,
    ) -> Conversation:
        """
        Create a conversation and all of its messages in one transaction.

        Args:
            owner_id: Owner of the conversation
            messages: Messages in transcript order
            title: Optional display title

        Returns:
            The created Conversation with its messages
        """
        pass

    @abstractmethod
    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """
        Get a conversation with its messages ordered oldest first.

        Returns:
            The conversation, or None if not found
        """
        pass

    @abstractmethod
    def list_conversations(self, owner_id: str) -> list[ConversationSummary]:
        """
        List a user's conversations, most recently updated first.
        """
        pass

    @abstractmethod
    def update_title(self, conversation_id: str, title: str) -> Conversation:
        pass

    @abstractmethod
    def delete_conversation(self, conversation_id: str) -> None:
        pass


class RecipeRepository(ABC):
    """
    Abstract interface for recipe storage.
    """

    @abstractmethod
    def create_recipe(self, owner_id: str, recipe: RecipeDraft) -> Recipe:
        """
        Persist a generated recipe.

        Args:
            owner_id: Owner of the recipe
            recipe: Validated recipe fields

        Returns:
            The stored Recipe with id and timestamps
        """
        pass

    @abstractmethod
    def get_recipe(self, recipe_id: str) -> Optional[Recipe]:
        pass

    @abstractmethod
    def list_recipes(self, owner_id: Optional[str] = None) -> list[Recipe]:
        """
        List recipes, most recent first.

        Args:
            owner_id: If provided, only return recipes owned by this user
        """
        pass

    @abstractmethod
    def delete_recipe(self, recipe_id: str) -> None:
        pass
