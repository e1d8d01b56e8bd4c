"""Recipe catalog operations.

:class:`RecipeService` is the only entry point the HTTP layer talks to. It
validates request fields, enforces ownership before any mutation and routes
every read and write through a :class:`~recipeshare.storage.RecipeRepository`.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from .auth import ensure_owner
from .errors import NotFound, StorageError, ValidationError
from .filters import RecipeFilter
from .models import DEFAULT_CATEGORY, DEFAULT_DIFFICULTY, Category, Difficulty, LikeState, Recipe, RecipePage
from .pagination import PAGE_SIZE, parse_page_number, total_pages, window
from .storage import ImageStore, RecipeRepository

logger = logging.getLogger(__name__)

TEXT_FIELDS = ("title", "description")
QUANTITY_FIELDS = {"prepTime": "prep_time", "cookTime": "cook_time", "servings": "servings"}
STEP_FIELDS = ("ingredients", "instructions")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return not normalize_steps(value)
    return False


def normalize_steps(value: Any) -> List[str]:
    """Collapse a single value or a sequence of values into a list of step strings."""

    if value is None:
        return []
    items = value if isinstance(value, (list, tuple)) else [value]
    steps = []
    for item in items:
        if item is None:
            continue
        text = str(item).strip()
        if text:
            steps.append(text)
    return steps


def parse_quantity(field: str, value: Any) -> float:
    """Return ``value`` as a non-negative number, keeping integers as ``int``."""

    if isinstance(value, bool):
        raise ValidationError(field, f"'{field}' must be a number.")
    if isinstance(value, (int, float)):
        number = value
    else:
        text = str(value).strip()
        try:
            number = int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                raise ValidationError(field, f"'{field}' must be a number.") from None

    if (isinstance(number, float) and not math.isfinite(number)) or number < 0:
        raise ValidationError(field, f"'{field}' must be a non-negative number.")
    return number


def _parse_choice(field: str, value: Any, choices: Any) -> Any:
    try:
        return choices(str(value).strip())
    except ValueError:
        allowed = ", ".join(choice.value for choice in choices)
        raise ValidationError(field, f"'{field}' must be one of: {allowed}.") from None


class RecipeService:
    def __init__(
        self,
        storage: RecipeRepository,
        *,
        image_store: Optional[ImageStore] = None,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self.storage = storage
        self.image_store = image_store
        self.page_size = page_size

    # Reads

    def list_recipes(self, recipe_filter: RecipeFilter, page_number: Any = None) -> RecipePage:
        page = parse_page_number(page_number)
        page_window = window(page, self.page_size)
        items, total = self.storage.query_recipes(
            recipe_filter, offset=page_window.offset, limit=page_window.limit
        )
        return RecipePage(
            items=list(items),
            page=page,
            total_pages=total_pages(total, self.page_size),
            total_count=total,
        )

    def get_recipe(self, recipe_id: str) -> Recipe:
        try:
            return self.storage.get_recipe(recipe_id)
        except KeyError:
            raise NotFound() from None

    def get_owned_recipe(self, recipe_id: str, caller: str, action: str) -> Recipe:
        """Return the recipe if ``caller`` owns it, else raise :class:`Unauthorized`."""

        recipe = self.get_recipe(recipe_id)
        ensure_owner(caller, recipe, action)
        return recipe

    def list_user_recipes(self, owner: str) -> List[Recipe]:
        return self.storage.list_recipes_by_owner(owner)

    # Writes

    def create_recipe(
        self, owner: str, fields: Mapping[str, Any], image_ref: Optional[str] = None
    ) -> Recipe:
        values: Dict[str, Any] = {}

        for name in TEXT_FIELDS:
            if _is_blank(fields.get(name)):
                raise ValidationError(name, f"Please add a {name}")
            values[name] = str(fields[name]).strip()

        for name, attr in QUANTITY_FIELDS.items():
            if _is_blank(fields.get(name)):
                raise ValidationError(name, f"Please add '{name}'")
            values[attr] = parse_quantity(name, fields[name])

        for name in STEP_FIELDS:
            steps = normalize_steps(fields.get(name))
            if not steps:
                raise ValidationError(name, f"Please add at least one entry to '{name}'")
            values[name] = steps

        category = fields.get("category")
        values["category"] = (
            DEFAULT_CATEGORY if _is_blank(category) else _parse_choice("category", category, Category)
        )
        difficulty = fields.get("difficulty")
        values["difficulty"] = (
            DEFAULT_DIFFICULTY
            if _is_blank(difficulty)
            else _parse_choice("difficulty", difficulty, Difficulty)
        )

        recipe = Recipe(
            id="",
            owner=owner,
            image=image_ref or "",
            likes=[],
            created_at=datetime.now(timezone.utc),
            **values,
        )
        created = self.storage.add_recipe(recipe)
        logger.info("User %s created recipe %s", owner, created.id)
        return created

    def update_recipe(
        self,
        recipe_id: str,
        caller: str,
        fields: Mapping[str, Any],
        image_ref: Optional[str] = None,
    ) -> Recipe:
        recipe = self.get_owned_recipe(recipe_id, caller, "update")

        changes = self._collect_changes(fields)
        if image_ref:
            changes["image"] = image_ref

        try:
            updated = self.storage.update_recipe(recipe_id, changes)
        except KeyError:
            raise NotFound() from None

        if image_ref and recipe.image and recipe.image != image_ref:
            self._release_image(recipe.image)
        return updated

    def delete_recipe(self, recipe_id: str, caller: str) -> None:
        recipe = self.get_owned_recipe(recipe_id, caller, "delete")

        try:
            self.storage.delete_recipe(recipe_id)
        except KeyError:
            raise NotFound() from None

        logger.info("User %s deleted recipe %s", caller, recipe_id)
        if recipe.image:
            self._release_image(recipe.image)

    def like_recipe(self, recipe_id: str, caller: str) -> LikeState:
        try:
            return self.storage.toggle_like(recipe_id, caller)
        except KeyError:
            raise NotFound() from None

    def _collect_changes(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        # Absent or empty fields mean "leave unchanged"; nothing can be cleared here.
        changes: Dict[str, Any] = {}

        for name in TEXT_FIELDS:
            if not _is_blank(fields.get(name)):
                changes[name] = str(fields[name]).strip()

        for name, attr in QUANTITY_FIELDS.items():
            if not _is_blank(fields.get(name)):
                changes[attr] = parse_quantity(name, fields[name])

        for name in STEP_FIELDS:
            steps = normalize_steps(fields.get(name))
            if steps:
                changes[name] = steps

        if not _is_blank(fields.get("category")):
            changes["category"] = _parse_choice("category", fields["category"], Category)
        if not _is_blank(fields.get("difficulty")):
            changes["difficulty"] = _parse_choice("difficulty", fields["difficulty"], Difficulty)

        return changes

    def _release_image(self, image_ref: str) -> None:
        if self.image_store is None:
            return
        # Runs after the recipe write has committed; a leftover file is not a failed request.
        try:
            self.image_store.delete_image(image_ref)
        except StorageError:
            logger.warning("Could not release image %s", image_ref, exc_info=True)


__all__ = ["RecipeService", "normalize_steps", "parse_quantity"]
