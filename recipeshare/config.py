import logging
import os
from typing import Any, Dict, Mapping, Optional

DEFAULT_MAX_CONTENT_LENGTH = 16 * 1024 * 1024


def load_config(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Read application settings from environment variables."""

    env = os.environ if environ is None else environ
    return {
        "SECRET_KEY": env.get("FLASK_SECRET_KEY", "development-secret-change-me"),
        "MAX_CONTENT_LENGTH": int(env.get("MAX_CONTENT_LENGTH", DEFAULT_MAX_CONTENT_LENGTH)),
        "RECIPE_STORAGE_BACKEND": env.get("RECIPE_STORAGE_BACKEND", "firestore").lower(),
        "GCP_PROJECT": env.get("GCP_PROJECT"),
        "RECIPES_COLLECTION": env.get("RECIPES_COLLECTION", "recipes"),
        "USERS_COLLECTION": env.get("USERS_COLLECTION", "users"),
        "GCS_BUCKET": env.get("GCS_BUCKET"),
        "LOG_LEVEL": env.get("LOG_LEVEL", "INFO").upper(),
    }


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = ["DEFAULT_MAX_CONTENT_LENGTH", "configure_logging", "load_config"]
