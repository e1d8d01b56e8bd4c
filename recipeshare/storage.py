from __future__ import annotations

from typing import Any, List, Mapping, Protocol, Sequence, Tuple

from werkzeug.datastructures import FileStorage

from .filters import RecipeFilter
from .models import LikeState, Recipe


class RecipeRepository(Protocol):
    """Protocol describing the persistence behaviour required by the service layer."""

    def add_recipe(self, recipe: Recipe) -> Recipe:
        """Persist a new recipe, assigning ``id`` and ``created_at``, and return it."""

    def get_recipe(self, recipe_id: str) -> Recipe:
        """Return a single recipe or raise :class:`KeyError` if missing."""

    def update_recipe(self, recipe_id: str, changes: Mapping[str, Any]) -> Recipe:
        """Overwrite the given attributes of a stored recipe and return it.

        Raises :class:`KeyError` if the recipe does not exist.
        """

    def delete_recipe(self, recipe_id: str) -> None:
        """Remove a recipe or raise :class:`KeyError` if missing."""

    def query_recipes(
        self, recipe_filter: RecipeFilter, *, offset: int, limit: int
    ) -> Tuple[Sequence[Recipe], int]:
        """Return one window of matching recipes, newest first, and the total match count."""

    def list_recipes_by_owner(self, owner: str) -> List[Recipe]:
        """Return every recipe created by ``owner``, newest first."""

    def toggle_like(self, recipe_id: str, user_id: str) -> LikeState:
        """Atomically toggle ``user_id`` in the recipe's like set.

        Concurrent toggles from different users must all be reflected.
        Raises :class:`KeyError` if the recipe does not exist.
        """


class ImageStore(Protocol):
    """Resolves uploaded files into opaque image references."""

    def save_image(self, image: FileStorage) -> str:
        """Store an uploaded image and return a reference to it."""

    def delete_image(self, image_ref: str) -> None:
        """Release a stored image. Unknown references are ignored."""


__all__ = ["ImageStore", "RecipeRepository"]
