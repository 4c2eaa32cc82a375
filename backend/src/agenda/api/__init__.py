from .app import create_app
from .methods import routes

__all__ = ["create_app", "routes"]
