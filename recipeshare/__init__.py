import logging
from typing import Any, Dict, Optional

from flask import Flask, current_app, g, jsonify, request
from werkzeug.datastructures import FileStorage
from werkzeug.exceptions import HTTPException

from .auth import FirebaseIdentityProvider, IdentityProvider, login_required
from .config import load_config
from .errors import RecipeError, StorageError, ValidationError
from .filters import build_filter
from .gcp_storage import CloudStorageImageStore, FirestoreRecipeStorage
from .memory_storage import InMemoryRecipeStorage
from .models import Recipe
from .service import RecipeService
from .storage import ImageStore, RecipeRepository

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
STEP_FIELDS = ("ingredients", "instructions")


def create_app(
    storage: Optional[RecipeRepository] = None,
    *,
    image_store: Optional[ImageStore] = None,
    identity_provider: Optional[IdentityProvider] = None,
    config: Optional[Dict[str, Any]] = None,
) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    storage:
        Optional recipe repository. When ``None`` the backend named by
        ``RECIPE_STORAGE_BACKEND`` is built from environment variables.
    image_store:
        Optional upload resolver. When ``None`` a Cloud Storage bucket is used
        if ``GCS_BUCKET`` is set; otherwise image uploads are rejected.
    identity_provider:
        Optional token verifier. Defaults to Firebase ID token verification.
    """

    app = Flask(__name__)
    app.config.from_mapping(load_config())
    if config:
        app.config.from_mapping(config)

    if storage is None:
        storage = _storage_from_config(app.config)
    if image_store is None and app.config.get("GCS_BUCKET"):
        image_store = CloudStorageImageStore(
            bucket_name=app.config["GCS_BUCKET"], project=app.config.get("GCP_PROJECT")
        )
    if identity_provider is None:
        identity_provider = FirebaseIdentityProvider.from_env()

    app.config["RECIPE_STORAGE"] = storage
    app.config["IMAGE_STORE"] = image_store
    app.config["IDENTITY_PROVIDER"] = identity_provider
    app.config["RECIPE_SERVICE"] = RecipeService(storage, image_store=image_store)

    @app.errorhandler(RecipeError)
    def handle_recipe_error(error: RecipeError):
        if isinstance(error, StorageError):
            logger.error(
                "Storage failure while handling %s %s", request.method, request.path, exc_info=error
            )
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        message = error.description
        if error.code == 404:
            message = f"Not Found - {request.path}"
        return jsonify({"error": error.name.lower().replace(" ", "_"), "message": message}), error.code

    @app.get("/")
    def index() -> str:
        return "API is running..."

    @app.get("/api/recipes")
    def list_recipes():
        recipe_filter = build_filter(
            keyword=request.args.get("keyword"),
            category=request.args.get("category"),
            difficulty=request.args.get("difficulty"),
        )
        page = _service().list_recipes(recipe_filter, request.args.get("pageNumber"))
        return jsonify(page.to_dict())

    @app.post("/api/recipes")
    @login_required
    def create_recipe():
        fields = _request_fields()
        image_ref = _save_upload(request.files.get("image"))
        try:
            recipe = _service().create_recipe(g.user_id, fields, image_ref)
        except RecipeError:
            _discard_upload(image_ref)
            raise
        return jsonify(recipe.to_dict()), 201

    @app.get("/api/recipes/user")
    @login_required
    def user_recipes():
        recipes = _service().list_user_recipes(g.user_id)
        return jsonify([recipe.to_dict() for recipe in recipes])

    @app.get("/api/recipes/<recipe_id>")
    def get_recipe(recipe_id: str):
        recipe: Recipe = _service().get_recipe(recipe_id)
        return jsonify(recipe.to_dict())

    @app.put("/api/recipes/<recipe_id>")
    @login_required
    def update_recipe(recipe_id: str):
        fields = _request_fields()
        service = _service()
        # Ownership is settled before the upload is stored.
        service.get_owned_recipe(recipe_id, g.user_id, "update")
        image_ref = _save_upload(request.files.get("image"))
        try:
            recipe = service.update_recipe(recipe_id, g.user_id, fields, image_ref)
        except RecipeError:
            _discard_upload(image_ref)
            raise
        return jsonify(recipe.to_dict())

    @app.delete("/api/recipes/<recipe_id>")
    @login_required
    def delete_recipe(recipe_id: str):
        _service().delete_recipe(recipe_id, g.user_id)
        return jsonify({"message": "Recipe removed"})

    @app.put("/api/recipes/<recipe_id>/like")
    @login_required
    def like_recipe(recipe_id: str):
        state = _service().like_recipe(recipe_id, g.user_id)
        return jsonify(state.to_dict())

    return app


def _storage_from_config(config: Any) -> RecipeRepository:
    backend = config.get("RECIPE_STORAGE_BACKEND", "firestore")
    if backend == "memory":
        logger.warning("Using in-memory recipe storage; data is lost on restart.")
        return InMemoryRecipeStorage()
    if backend == "firestore":
        return FirestoreRecipeStorage(
            project=config.get("GCP_PROJECT"),
            collection_name=config.get("RECIPES_COLLECTION", "recipes"),
            users_collection_name=config.get("USERS_COLLECTION", "users"),
        )
    raise RuntimeError(f"Unknown RECIPE_STORAGE_BACKEND '{backend}'.")


def _service() -> RecipeService:
    return current_app.config["RECIPE_SERVICE"]


def _request_fields() -> Dict[str, Any]:
    if request.is_json:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("body", "Request body must be a JSON object.")
        return data

    fields: Dict[str, Any] = {key: request.form.get(key) for key in request.form}
    for name in STEP_FIELDS:
        if name in request.form:
            fields[name] = request.form.getlist(name)
    return fields


def _save_upload(image: Optional[FileStorage]) -> Optional[str]:
    if not image or not image.filename:
        return None
    if not _allowed_image(image.filename):
        raise ValidationError(
            "image", "Unsupported image format. Allowed formats: PNG, JPG, JPEG, GIF, WEBP."
        )

    image_store: Optional[ImageStore] = current_app.config["IMAGE_STORE"]
    if image_store is None:
        raise ValidationError("image", "Image uploads are not configured.")
    return image_store.save_image(image)


def _discard_upload(image_ref: Optional[str]) -> None:
    image_store: Optional[ImageStore] = current_app.config["IMAGE_STORE"]
    if image_ref and image_store is not None:
        image_store.delete_image(image_ref)


def _allowed_image(filename: str) -> bool:
    if not filename or "." not in filename:
        return False
    ext = filename.rsplit(".", 1)[1].lower()
    return ext in ALLOWED_IMAGE_EXTENSIONS


__all__ = ["create_app", "Recipe", "RecipeService"]
