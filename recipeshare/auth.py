from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Optional, Protocol, TypeVar

import firebase_admin
from firebase_admin import auth as firebase_auth
from flask import current_app, g, request

from .errors import AuthenticationError, Unauthorized
from .models import Recipe

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def check_owner(caller: Any, owner: Any) -> bool:
    """Return ``True`` when ``caller`` is the owning identity."""

    return caller is not None and str(caller) == str(owner)


def ensure_owner(caller: str, recipe: Recipe, action: str) -> None:
    if not check_owner(caller, recipe.owner):
        logger.warning("User %s denied %s on recipe %s", caller, action, recipe.id)
        raise Unauthorized(f"Not authorized to {action} this recipe")


class IdentityProvider(Protocol):
    def verify(self, token: str) -> str:
        """Return the user id for a valid token or raise :class:`AuthenticationError`."""


class FirebaseIdentityProvider:
    """Verifies Firebase ID tokens issued to signed-in users."""

    def __init__(self, app: Any = None) -> None:
        self._app = app

    @classmethod
    def from_env(cls) -> "FirebaseIdentityProvider":
        # Credentials come from GOOGLE_APPLICATION_CREDENTIALS or the runtime.
        if not firebase_admin._apps:
            firebase_admin.initialize_app()
        return cls(app=firebase_admin.get_app())

    def verify(self, token: str) -> str:
        try:
            decoded = firebase_auth.verify_id_token(token, app=self._app)
        except (ValueError, firebase_auth.InvalidIdTokenError) as exc:
            logger.info("Rejected identity token: %s", exc)
            raise AuthenticationError("Not authorized, token failed") from exc

        uid = decoded.get("uid")
        if not uid:
            raise AuthenticationError("Not authorized, token failed")
        return uid


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def login_required(view: F) -> F:
    """Resolve the caller identity into ``g.user_id`` before running ``view``."""

    @functools.wraps(view)
    def wrapped(*args: Any, **kwargs: Any) -> Any:
        token = _bearer_token()
        if token is None:
            raise AuthenticationError()

        provider: IdentityProvider = current_app.config["IDENTITY_PROVIDER"]
        g.user_id = provider.verify(token)
        return view(*args, **kwargs)

    return wrapped  # type: ignore[return-value]


__all__ = [
    "FirebaseIdentityProvider",
    "IdentityProvider",
    "check_owner",
    "ensure_owner",
    "login_required",
]
