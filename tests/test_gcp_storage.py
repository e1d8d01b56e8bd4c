from __future__ import annotations

from pathlib import Path
import io
import sys
from datetime import datetime, timezone
from unittest import mock

import pytest
from google.api_core import exceptions as gcloud_exceptions
from werkzeug.datastructures import FileStorage

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from recipeshare.errors import StorageError
from recipeshare.filters import build_filter
from recipeshare.gcp_storage import CloudStorageImageStore, FirestoreRecipeStorage
from recipeshare.models import Category, Difficulty, Recipe


def fake_doc(doc_id, data, exists=True):
    doc = mock.MagicMock()
    doc.id = doc_id
    doc.exists = exists
    doc.to_dict.return_value = data
    return doc


def recipe_data(title, **overrides):
    data = {
        "user": "alice",
        "title": title,
        "description": "Tasty",
        "prepTime": 5,
        "cookTime": 10,
        "servings": 2,
        "ingredients": ["flour"],
        "instructions": ["Bake."],
        "category": "Dessert",
        "difficulty": "Easy",
        "image": "",
        "likes": ["bob"],
        "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return data


def create_storage():
    client = mock.MagicMock()
    client.get_all.return_value = []
    storage = FirestoreRecipeStorage(client=client)
    return storage, client


def test_get_recipe_maps_document_and_owner_projection():
    storage, client = create_storage()
    client.collection.return_value.document.return_value.get.return_value = fake_doc(
        "r1", recipe_data("Chocolate Cake")
    )
    client.get_all.return_value = [
        fake_doc("alice", {"name": "Alice", "profileImage": "/uploads/profiles/alice.png"})
    ]

    recipe = storage.get_recipe("r1")

    assert recipe.id == "r1"
    assert recipe.owner == "alice"
    assert recipe.category is Category.DESSERT
    assert recipe.difficulty is Difficulty.EASY
    assert recipe.likes_count == 1
    assert recipe.total_time == 15
    assert recipe.owner_summary.name == "Alice"


def test_get_missing_recipe_raises_key_error():
    storage, client = create_storage()
    client.collection.return_value.document.return_value.get.return_value = fake_doc(
        "r1", None, exists=False
    )

    with pytest.raises(KeyError):
        storage.get_recipe("r1")


def test_backend_failures_become_storage_errors():
    storage, client = create_storage()
    client.collection.return_value.document.return_value.get.side_effect = (
        gcloud_exceptions.ServiceUnavailable("backend down")
    )

    with pytest.raises(StorageError) as excinfo:
        storage.get_recipe("r1")

    assert "backend down" not in excinfo.value.to_dict()["message"]


def test_keyword_query_filters_titles_while_streaming():
    storage, client = create_storage()
    ordered = client.collection.return_value.order_by.return_value
    ordered.stream.return_value = [
        fake_doc("r3", recipe_data("Carrot cake")),
        fake_doc("r2", recipe_data("Waffles")),
        fake_doc("r1", recipe_data("Chocolate Cake")),
    ]

    items, total = storage.query_recipes(build_filter(keyword="CAKE"), offset=1, limit=9)

    assert total == 2
    assert [recipe.id for recipe in items] == ["r1"]


def test_unfiltered_query_counts_on_server():
    storage, client = create_storage()
    ordered = client.collection.return_value.order_by.return_value
    aggregation = mock.MagicMock(value=12)
    ordered.count.return_value.get.return_value = [[aggregation]]
    ordered.offset.return_value.limit.return_value.stream.return_value = [
        fake_doc("r1", recipe_data("Soup", category="Unknown"))
    ]

    items, total = storage.query_recipes(build_filter(), offset=9, limit=9)

    assert total == 12
    assert items[0].category is Category.OTHER
    ordered.offset.assert_called_once_with(9)
    ordered.offset.return_value.limit.assert_called_once_with(9)


def test_update_of_missing_document_raises_key_error():
    storage, client = create_storage()
    client.collection.return_value.document.return_value.update.side_effect = (
        gcloud_exceptions.NotFound("no document")
    )

    with pytest.raises(KeyError):
        storage.update_recipe("r1", {"title": "New"})


def test_update_never_writes_owner():
    storage, client = create_storage()
    doc_ref = client.collection.return_value.document.return_value
    doc_ref.get.return_value = fake_doc("r1", recipe_data("New"))

    storage.update_recipe("r1", {"title": "New", "owner": "bob", "category": Category.SNACK})

    written = doc_ref.update.call_args[0][0]
    assert written["title"] == "New"
    assert written["category"] == "Snack"
    assert "user" not in written


def test_add_recipe_writes_owner_and_enum_values():
    storage, client = create_storage()
    doc_ref = client.collection.return_value.document.return_value
    doc_ref.get.return_value = fake_doc("r9", recipe_data("Granola", category="Breakfast"))

    recipe = storage.add_recipe(
        Recipe(
            id="",
            owner="alice",
            title="Granola",
            description="Crunchy",
            prep_time=5,
            cook_time=20,
            servings=4,
            ingredients=["oats"],
            instructions=["Toast."],
            category=Category.BREAKFAST,
            difficulty=Difficulty.EASY,
        )
    )

    written = doc_ref.set.call_args[0][0]
    assert written["user"] == "alice"
    assert written["category"] == "Breakfast"
    assert written["difficulty"] == "Easy"
    assert written["prepTime"] == 5
    assert recipe.id == "r9"


def test_delete_recipe_removes_existing_document():
    storage, client = create_storage()
    doc_ref = client.collection.return_value.document.return_value
    doc_ref.get.return_value = fake_doc("r1", recipe_data("Soup"))

    storage.delete_recipe("r1")

    doc_ref.delete.assert_called_once_with()


def test_delete_missing_recipe_raises_key_error():
    storage, client = create_storage()
    doc_ref = client.collection.return_value.document.return_value
    doc_ref.get.return_value = fake_doc("r1", None, exists=False)

    with pytest.raises(KeyError):
        storage.delete_recipe("r1")

    doc_ref.delete.assert_not_called()


def test_list_recipes_by_owner_attaches_owner_projection():
    storage, client = create_storage()
    ordered = client.collection.return_value.where.return_value.order_by.return_value
    ordered.stream.return_value = [
        fake_doc("r2", recipe_data("Waffles")),
        fake_doc("r1", recipe_data("Chocolate Cake")),
    ]
    client.get_all.return_value = [fake_doc("alice", {"name": "Alice", "profileImage": ""})]

    recipes = storage.list_recipes_by_owner("alice")

    assert [recipe.id for recipe in recipes] == ["r2", "r1"]
    assert all(recipe.owner_summary.name == "Alice" for recipe in recipes)
    assert client.collection.return_value.where.call_count == 1


def test_toggle_like_reads_and_writes_inside_transaction():
    storage, client = create_storage()
    doc_ref = client.collection.return_value.document.return_value
    doc_ref.get.return_value = fake_doc("r1", recipe_data("Soup", likes=["bob"]))
    transaction = client.transaction.return_value

    with mock.patch("recipeshare.gcp_storage.firestore.transactional", lambda fn: fn):
        state = storage.toggle_like("r1", "alice")

    assert state.likes == ["bob", "alice"]
    assert state.likes_count == 2
    doc_ref.get.assert_called_once_with(transaction=transaction)
    transaction.update.assert_called_once_with(doc_ref, {"likes": ["bob", "alice"]})


def test_toggle_like_removes_existing_like():
    storage, client = create_storage()
    doc_ref = client.collection.return_value.document.return_value
    doc_ref.get.return_value = fake_doc("r1", recipe_data("Soup", likes=["bob", "alice"]))
    transaction = client.transaction.return_value

    with mock.patch("recipeshare.gcp_storage.firestore.transactional", lambda fn: fn):
        state = storage.toggle_like("r1", "alice")

    assert state.likes == ["bob"]
    transaction.update.assert_called_once_with(doc_ref, {"likes": ["bob"]})


def test_toggle_like_on_missing_document_raises_key_error():
    storage, client = create_storage()
    doc_ref = client.collection.return_value.document.return_value
    doc_ref.get.return_value = fake_doc("r1", None, exists=False)
    transaction = client.transaction.return_value

    with mock.patch("recipeshare.gcp_storage.firestore.transactional", lambda fn: fn):
        with pytest.raises(KeyError):
            storage.toggle_like("r1", "alice")

    transaction.update.assert_not_called()


def create_image_store():
    client = mock.MagicMock()
    bucket = client.bucket.return_value
    bucket.name = "recipe-images"
    return CloudStorageImageStore(bucket_name="recipe-images", client=client), bucket


def test_save_image_uploads_blob_and_returns_url():
    store, bucket = create_image_store()
    blob = bucket.blob.return_value
    blob.public_url = "https://storage.googleapis.com/recipe-images/recipes/abc_cake.png"
    upload = FileStorage(stream=io.BytesIO(b"png"), filename="my cake.png", content_type="image/png")

    ref = store.save_image(upload)

    assert ref == blob.public_url
    blob_name = bucket.blob.call_args[0][0]
    assert blob_name.startswith("recipes/")
    assert blob_name.endswith("_my_cake.png")
    blob.upload_from_file.assert_called_once()


def test_delete_image_resolves_blob_from_reference():
    store, bucket = create_image_store()
    bucket.blob.return_value.delete.side_effect = gcloud_exceptions.NotFound("gone")

    store.delete_image("https://storage.googleapis.com/recipe-images/recipes/abc_cake.png")
    store.delete_image("/uploads/recipes/local.png")

    bucket.blob.assert_called_once_with("recipes/abc_cake.png")
