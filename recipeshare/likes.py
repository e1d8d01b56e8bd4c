from typing import Iterable, List

from .models import LikeState


def toggle_like(likes: Iterable[str], caller: str) -> LikeState:
    """Add ``caller`` to the like set, or remove it if already present.

    Two consecutive toggles by the same caller restore the original set.
    """

    current: List[str] = []
    for user_id in likes:
        if user_id not in current:
            current.append(user_id)

    if caller in current:
        current.remove(caller)
    else:
        current.append(caller)

    return LikeState(likes=current, likes_count=len(current))


__all__ = ["toggle_like"]
