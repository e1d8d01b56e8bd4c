from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class Category(str, Enum):
    BREAKFAST = "Breakfast"
    LUNCH = "Lunch"
    DINNER = "Dinner"
    DESSERT = "Dessert"
    SNACK = "Snack"
    OTHER = "Other"


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


DEFAULT_CATEGORY = Category.OTHER
DEFAULT_DIFFICULTY = Difficulty.MEDIUM


@dataclass(frozen=True)
class OwnerSummary:
    """Public projection of a recipe owner."""

    id: str
    name: str = ""
    profile_image: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"_id": self.id, "name": self.name, "profileImage": self.profile_image}


@dataclass
class Recipe:
    """Domain object representing a stored recipe."""

    id: str
    owner: str
    title: str
    description: str
    prep_time: float
    cook_time: float
    servings: float
    ingredients: List[str]
    instructions: List[str]
    category: Category = DEFAULT_CATEGORY
    difficulty: Difficulty = DEFAULT_DIFFICULTY
    image: str = ""
    likes: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    owner_summary: Optional[OwnerSummary] = None

    @property
    def total_time(self) -> float:
        return self.prep_time + self.cook_time

    @property
    def likes_count(self) -> int:
        return len(self.likes)

    def to_dict(self) -> Dict[str, Any]:
        user: Any = self.owner_summary.to_dict() if self.owner_summary else self.owner
        return {
            "_id": self.id,
            "user": user,
            "title": self.title,
            "description": self.description,
            "prepTime": self.prep_time,
            "cookTime": self.cook_time,
            "totalTime": self.total_time,
            "servings": self.servings,
            "ingredients": list(self.ingredients),
            "instructions": list(self.instructions),
            "category": self.category.value,
            "difficulty": self.difficulty.value,
            "image": self.image,
            "likes": list(self.likes),
            "likesCount": self.likes_count,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class LikeState:
    """Outcome of a like toggle."""

    likes: List[str]
    likes_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"likes": list(self.likes), "likesCount": self.likes_count}


@dataclass
class RecipePage:
    """A single page of catalog results."""

    items: List[Recipe]
    page: int
    total_pages: int
    total_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipes": [recipe.to_dict() for recipe in self.items],
            "page": self.page,
            "pages": self.total_pages,
            "total": self.total_count,
        }


__all__ = [
    "Category",
    "DEFAULT_CATEGORY",
    "DEFAULT_DIFFICULTY",
    "Difficulty",
    "LikeState",
    "OwnerSummary",
    "Recipe",
    "RecipePage",
]
