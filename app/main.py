"""ASGI entrypoint.

Run with: uvicorn app.main:app --host 0.0.0.0 --port 8080
"""

from app.core.app_factory import create_app

app = create_app()
