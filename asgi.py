"""
asgi.py -- ASGI entry point for ProjectHub.

Kept separate from api/main.py so servers and the CLI reference one stable
import path, whatever the api/ package grows into.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import app

__all__ = ["app"]
