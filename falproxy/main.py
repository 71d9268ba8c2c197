"""Module-level application instance for ``uvicorn falproxy.main:app``."""

from falproxy.api.app import create_app


app = create_app()
