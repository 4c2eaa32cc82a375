"""ASGI entrypoint: ``uvicorn agenda.api.main:app``. Settings come from the environment."""

from .app import create_app

app = create_app()
