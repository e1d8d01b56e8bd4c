from typing import Any, Dict, Optional


class RecipeError(Exception):
    """Base class for failures surfaced to API callers."""

    kind = "error"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.message}


class ValidationError(RecipeError):
    """A required field is missing or malformed."""

    kind = "validation_error"
    status_code = 400

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Invalid value for '{field}'.")
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        return data


class NotFound(RecipeError):
    kind = "not_found"
    status_code = 404

    def __init__(self, message: str = "Recipe not found") -> None:
        super().__init__(message)


class Unauthorized(RecipeError):
    """The caller does not own the recipe it tried to mutate."""

    kind = "unauthorized"
    status_code = 403

    def __init__(self, message: str = "Not authorized for this recipe") -> None:
        super().__init__(message)


class AuthenticationError(RecipeError):
    kind = "unauthenticated"
    status_code = 401

    def __init__(self, message: str = "Not authorized, no valid token") -> None:
        super().__init__(message)


class StorageError(RecipeError):
    """Backend failure. The wrapped detail is never sent to clients."""

    kind = "storage_error"
    status_code = 500

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": "Internal server error"}


__all__ = [
    "AuthenticationError",
    "NotFound",
    "RecipeError",
    "StorageError",
    "Unauthorized",
    "ValidationError",
]
