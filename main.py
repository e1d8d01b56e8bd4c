"""WSGI entrypoint for the recipe sharing API.

The Flask development server is intentionally not started from this module so
that containerized deployments rely on Gunicorn. Local development can still
use ``flask --app main run`` which imports the ``app`` object defined below.
"""

from recipeshare import create_app
from recipeshare.config import configure_logging, load_config

configure_logging(load_config()["LOG_LEVEL"])

app = create_app()


__all__ = ["app"]
