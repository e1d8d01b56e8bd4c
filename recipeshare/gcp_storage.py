from __future__ import annotations

import contextlib
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from google.api_core import exceptions as gcloud_exceptions
from google.cloud import firestore, storage
from google.cloud.firestore_v1.base_query import FieldFilter
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from .errors import StorageError
from .filters import RecipeFilter
from .likes import toggle_like
from .models import Category, Difficulty, LikeState, OwnerSummary, Recipe
from .storage import ImageStore, RecipeRepository

logger = logging.getLogger(__name__)

# Recipe attribute -> Firestore field. ``id`` is the document id.
FIELD_NAMES = {
    "owner": "user",
    "title": "title",
    "description": "description",
    "prep_time": "prepTime",
    "cook_time": "cookTime",
    "servings": "servings",
    "ingredients": "ingredients",
    "instructions": "instructions",
    "category": "category",
    "difficulty": "difficulty",
    "image": "image",
    "likes": "likes",
}
IMMUTABLE_FIELDS = frozenset({"id", "owner", "created_at"})


@contextlib.contextmanager
def _backend_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (gcloud_exceptions.GoogleAPICallError, gcloud_exceptions.RetryError) as exc:
        logger.error("Firestore failure while trying to %s: %s", action, exc)
        raise StorageError(f"Failed to {action}.") from exc


def _to_field_value(value: Any) -> Any:
    if isinstance(value, (Category, Difficulty)):
        return value.value
    return value


class FirestoreRecipeStorage(RecipeRepository):
    """GCP backed recipe storage using Firestore."""

    def __init__(
        self,
        *,
        project: Optional[str] = None,
        collection_name: str = "recipes",
        users_collection_name: str = "users",
        client: Optional[firestore.Client] = None,
    ) -> None:
        self._project = project
        self._firestore_client = client or firestore.Client(project=project)
        self._collection = self._firestore_client.collection(collection_name)
        self._users = self._firestore_client.collection(users_collection_name)

    def add_recipe(self, recipe: Recipe) -> Recipe:
        doc = {field: _to_field_value(getattr(recipe, attr)) for attr, field in FIELD_NAMES.items()}
        doc["created_at"] = recipe.created_at or firestore.SERVER_TIMESTAMP
        doc["updated_at"] = firestore.SERVER_TIMESTAMP

        with _backend_errors("create recipe"):
            doc_ref = self._collection.document()
            doc_ref.set(doc)
            snapshot = doc_ref.get()

        return self._with_owners([self._doc_to_recipe(snapshot.id, snapshot.to_dict() or {})])[0]

    def get_recipe(self, recipe_id: str) -> Recipe:
        with _backend_errors("load recipe"):
            snapshot = self._collection.document(recipe_id).get()

        if not snapshot.exists:
            raise KeyError(f"Recipe '{recipe_id}' does not exist.")

        data = snapshot.to_dict() or {}
        return self._with_owners([self._doc_to_recipe(snapshot.id, data)])[0]

    def update_recipe(self, recipe_id: str, changes: Mapping[str, Any]) -> Recipe:
        update_doc: Dict[str, Any] = {
            FIELD_NAMES[name]: _to_field_value(value)
            for name, value in changes.items()
            if name not in IMMUTABLE_FIELDS and name in FIELD_NAMES
        }
        update_doc["updated_at"] = firestore.SERVER_TIMESTAMP

        with _backend_errors("update recipe"):
            doc_ref = self._collection.document(recipe_id)
            try:
                doc_ref.update(update_doc)
            except gcloud_exceptions.NotFound:
                raise KeyError(f"Recipe '{recipe_id}' does not exist.") from None
            snapshot = doc_ref.get()

        return self._with_owners([self._doc_to_recipe(snapshot.id, snapshot.to_dict() or {})])[0]

    def delete_recipe(self, recipe_id: str) -> None:
        with _backend_errors("delete recipe"):
            doc_ref = self._collection.document(recipe_id)
            if not doc_ref.get().exists:
                raise KeyError(f"Recipe '{recipe_id}' does not exist.")
            doc_ref.delete()

    def query_recipes(
        self, recipe_filter: RecipeFilter, *, offset: int, limit: int
    ) -> Tuple[Sequence[Recipe], int]:
        query = self._collection
        if recipe_filter.category is not None:
            query = query.where(filter=FieldFilter("category", "==", recipe_filter.category))
        if recipe_filter.difficulty is not None:
            query = query.where(filter=FieldFilter("difficulty", "==", recipe_filter.difficulty))
        query = query.order_by("created_at", direction=firestore.Query.DESCENDING)

        start = max(offset, 0)
        with _backend_errors("query recipes"):
            if recipe_filter.keyword is None:
                total = self._count(query)
                docs = query.offset(start).limit(limit).stream()
                recipes = [self._doc_to_recipe(doc.id, doc.to_dict() or {}) for doc in docs]
            else:
                # Firestore has no substring operator; the title match runs while streaming.
                matches = [
                    recipe
                    for recipe in self._stream(query)
                    if recipe_filter.matches(recipe)
                ]
                total = len(matches)
                recipes = matches[start : start + limit]

            return self._with_owners(recipes), total

    def list_recipes_by_owner(self, owner: str) -> List[Recipe]:
        query = self._collection.where(filter=FieldFilter("user", "==", owner)).order_by(
            "created_at", direction=firestore.Query.DESCENDING
        )
        with _backend_errors("list user recipes"):
            return self._with_owners(list(self._stream(query)))

    def toggle_like(self, recipe_id: str, user_id: str) -> LikeState:
        doc_ref = self._collection.document(recipe_id)

        @firestore.transactional
        def _toggle_in_transaction(transaction: firestore.Transaction) -> LikeState:
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise KeyError(f"Recipe '{recipe_id}' does not exist.")
            data = snapshot.to_dict() or {}
            state = toggle_like(data.get("likes") or [], user_id)
            transaction.update(doc_ref, {"likes": state.likes})
            return state

        with _backend_errors("toggle like"):
            return _toggle_in_transaction(self._firestore_client.transaction())

    def _count(self, query: firestore.Query) -> int:
        results = query.count(alias="total").get()
        for row in results:
            for aggregation in row:
                return int(aggregation.value)
        return 0

    def _stream(self, query: firestore.Query) -> Iterable[Recipe]:
        for doc in query.stream():
            yield self._doc_to_recipe(doc.id, doc.to_dict() or {})

    def _with_owners(self, recipes: List[Recipe]) -> List[Recipe]:
        owner_ids = sorted({recipe.owner for recipe in recipes if recipe.owner})
        if not owner_ids:
            return recipes

        summaries: Dict[str, OwnerSummary] = {}
        with _backend_errors("load recipe owners"):
            refs = [self._users.document(owner_id) for owner_id in owner_ids]
            for snapshot in self._firestore_client.get_all(refs):
                if not snapshot.exists:
                    continue
                data = snapshot.to_dict() or {}
                summaries[snapshot.id] = OwnerSummary(
                    id=snapshot.id,
                    name=data.get("name", ""),
                    profile_image=data.get("profileImage", ""),
                )

        for recipe in recipes:
            recipe.owner_summary = summaries.get(recipe.owner)
        return recipes

    def _doc_to_recipe(self, doc_id: str, data: dict) -> Recipe:
        created_at = data.get("created_at")
        updated_at = data.get("updated_at")

        try:
            category = Category(data.get("category"))
        except ValueError:
            category = Category.OTHER
        try:
            difficulty = Difficulty(data.get("difficulty"))
        except ValueError:
            difficulty = Difficulty.MEDIUM

        return Recipe(
            id=doc_id,
            owner=str(data.get("user", "")),
            title=data.get("title", ""),
            description=data.get("description", ""),
            prep_time=data.get("prepTime", 0),
            cook_time=data.get("cookTime", 0),
            servings=data.get("servings", 0),
            ingredients=list(data.get("ingredients") or []),
            instructions=list(data.get("instructions") or []),
            category=category,
            difficulty=difficulty,
            image=data.get("image") or "",
            likes=list(data.get("likes") or []),
            created_at=created_at if isinstance(created_at, datetime) else None,
            updated_at=updated_at if isinstance(updated_at, datetime) else None,
        )


class CloudStorageImageStore(ImageStore):
    """Stores uploaded recipe images in a Cloud Storage bucket."""

    def __init__(
        self,
        *,
        bucket_name: str,
        project: Optional[str] = None,
        client: Optional[storage.Client] = None,
    ) -> None:
        self._storage_client = client or storage.Client(project=project)
        self._bucket = self._storage_client.bucket(bucket_name)

    def save_image(self, image: FileStorage) -> str:
        blob = self._bucket.blob(self._build_blob_name(image.filename or "image"))

        with _backend_errors("upload image"):
            image.stream.seek(0)
            blob.upload_from_file(image.stream, content_type=image.mimetype)

        return blob.public_url

    def delete_image(self, image_ref: str) -> None:
        blob_name = self._blob_name_from_ref(image_ref)
        if not blob_name:
            return

        blob = self._bucket.blob(blob_name)
        with _backend_errors("delete image"):
            try:
                blob.delete()
            except gcloud_exceptions.NotFound:
                # The blob may already have been removed manually; ignore.
                pass

    def _build_blob_name(self, filename: str) -> str:
        safe = secure_filename(filename)
        unique = uuid.uuid4().hex
        return f"recipes/{unique}_{safe}"

    def _blob_name_from_ref(self, image_ref: str) -> Optional[str]:
        marker = f"/{self._bucket.name}/"
        if not image_ref or marker not in image_ref:
            return None
        return image_ref.split(marker, 1)[1] or None


__all__ = ["CloudStorageImageStore", "FirestoreRecipeStorage"]
