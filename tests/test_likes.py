from __future__ import annotations

from pathlib import Path
import sys
import threading

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from recipeshare.likes import toggle_like
from recipeshare.memory_storage import InMemoryRecipeStorage
from recipeshare.models import Recipe


def stored_recipe(storage: InMemoryRecipeStorage) -> Recipe:
    return storage.add_recipe(
        Recipe(
            id="",
            owner="alice",
            title="Chocolate Cake",
            description="Rich",
            prep_time=10,
            cook_time=20,
            servings=4,
            ingredients=["flour"],
            instructions=["Bake."],
        )
    )


def test_toggle_adds_missing_caller():
    state = toggle_like([], "bob")

    assert state.likes == ["bob"]
    assert state.likes_count == 1


def test_toggle_removes_existing_caller():
    state = toggle_like(["alice", "bob"], "alice")

    assert state.likes == ["bob"]
    assert state.likes_count == 1


def test_double_toggle_restores_original_set():
    original = ["alice", "carol"]

    for caller in ("alice", "bob"):
        once = toggle_like(original, caller)
        twice = toggle_like(once.likes, caller)
        assert set(twice.likes) == set(original)
        assert twice.likes_count == len(original)


def test_toggle_does_not_mutate_input_or_keep_duplicates():
    likes = ["bob", "bob", "carol"]

    state = toggle_like(likes, "dave")

    assert likes == ["bob", "bob", "carol"]
    assert state.likes == ["bob", "carol", "dave"]
    assert state.likes_count == 3


def test_owner_may_like_own_recipe():
    storage = InMemoryRecipeStorage()
    recipe = stored_recipe(storage)

    state = storage.toggle_like(recipe.id, "alice")

    assert state.likes == ["alice"]


def test_concurrent_toggles_from_different_users_are_all_kept():
    storage = InMemoryRecipeStorage()
    recipe = stored_recipe(storage)
    users = [f"user-{n}" for n in range(50)]
    start = threading.Barrier(len(users))

    def like(user_id: str) -> None:
        start.wait()
        storage.toggle_like(recipe.id, user_id)

    threads = [threading.Thread(target=like, args=(user_id,)) for user_id in users]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    stored = storage.get_recipe(recipe.id)
    assert sorted(stored.likes) == sorted(users)
    assert stored.likes_count == len(users)
