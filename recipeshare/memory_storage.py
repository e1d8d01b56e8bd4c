from __future__ import annotations

import copy
import itertools
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from .filters import RecipeFilter
from .likes import toggle_like
from .models import LikeState, OwnerSummary, Recipe

IMMUTABLE_FIELDS = frozenset({"id", "owner", "created_at"})


class InMemoryRecipeStorage:
    """Process-local recipe storage used for development and tests.

    Every read-modify-write runs under a single lock so concurrent like
    toggles cannot overwrite each other.
    """

    def __init__(self) -> None:
        self._recipes: Dict[str, Recipe] = {}
        self._sequence: Dict[str, int] = {}
        self._profiles: Dict[str, OwnerSummary] = {}
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def register_profile(self, user_id: str, *, name: str, profile_image: str = "") -> None:
        with self._lock:
            self._profiles[user_id] = OwnerSummary(id=user_id, name=name, profile_image=profile_image)

    def add_recipe(self, recipe: Recipe) -> Recipe:
        stored = copy.deepcopy(recipe)
        stored.id = stored.id or uuid.uuid4().hex
        now = datetime.now(timezone.utc)
        stored.created_at = stored.created_at or now
        stored.updated_at = now
        stored.owner_summary = None
        with self._lock:
            self._recipes[stored.id] = stored
            self._sequence[stored.id] = next(self._counter)
            return self._export(stored)

    def get_recipe(self, recipe_id: str) -> Recipe:
        with self._lock:
            return self._export(self._get(recipe_id))

    def update_recipe(self, recipe_id: str, changes: Mapping[str, Any]) -> Recipe:
        with self._lock:
            recipe = self._get(recipe_id)
            for name, value in changes.items():
                if name in IMMUTABLE_FIELDS:
                    continue
                setattr(recipe, name, copy.deepcopy(value))
            recipe.updated_at = datetime.now(timezone.utc)
            return self._export(recipe)

    def delete_recipe(self, recipe_id: str) -> None:
        with self._lock:
            self._get(recipe_id)
            del self._recipes[recipe_id]
            del self._sequence[recipe_id]

    def query_recipes(
        self, recipe_filter: RecipeFilter, *, offset: int, limit: int
    ) -> Tuple[Sequence[Recipe], int]:
        with self._lock:
            matches = [recipe for recipe in self._newest_first() if recipe_filter.matches(recipe)]
            start = max(offset, 0)
            page = matches[start : start + limit]
            return [self._export(recipe) for recipe in page], len(matches)

    def list_recipes_by_owner(self, owner: str) -> List[Recipe]:
        with self._lock:
            return [self._export(recipe) for recipe in self._newest_first() if recipe.owner == owner]

    def toggle_like(self, recipe_id: str, user_id: str) -> LikeState:
        with self._lock:
            recipe = self._get(recipe_id)
            state = toggle_like(recipe.likes, user_id)
            recipe.likes = list(state.likes)
            return state

    def _get(self, recipe_id: str) -> Recipe:
        try:
            return self._recipes[recipe_id]
        except KeyError:
            raise KeyError(f"Recipe '{recipe_id}' does not exist.") from None

    def _newest_first(self) -> List[Recipe]:
        return sorted(
            self._recipes.values(),
            key=lambda recipe: (recipe.created_at, self._sequence[recipe.id]),
            reverse=True,
        )

    def _export(self, recipe: Recipe) -> Recipe:
        exported = copy.deepcopy(recipe)
        exported.owner_summary = self._profiles.get(recipe.owner)
        return exported


__all__ = ["InMemoryRecipeStorage"]
