from dataclasses import dataclass
from typing import Optional

from .models import Recipe


@dataclass(frozen=True)
class RecipeFilter:
    """Catalog match criteria. ``None`` fields impose no constraint."""

    keyword: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.keyword is None and self.category is None and self.difficulty is None

    def matches(self, recipe: Recipe) -> bool:
        # Plain substring scan; the keyword is never interpreted as a pattern.
        if self.keyword is not None and self.keyword.lower() not in recipe.title.lower():
            return False
        if self.category is not None and recipe.category.value != self.category:
            return False
        if self.difficulty is not None and recipe.difficulty.value != self.difficulty:
            return False
        return True


def build_filter(
    keyword: Optional[str] = None,
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
) -> RecipeFilter:
    """Compose the supplied criteria into a single filter.

    Empty strings count as absent. Unknown category or difficulty values are
    kept as-is and simply match nothing.
    """

    return RecipeFilter(
        keyword=keyword or None,
        category=category or None,
        difficulty=difficulty or None,
    )


__all__ = ["RecipeFilter", "build_filter"]
