"""ASGI entrypoint: ``uvicorn accommodation.api.app:app``."""

from accommodation.api.factory import create_app

app = create_app()
