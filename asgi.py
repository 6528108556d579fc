"""
asgi.py -- ASGI entry point for queryhub.

Run with:  uvicorn asgi:app --reload
           uvicorn asgi:app --host 0.0.0.0 --port 8000 --workers 2

Sessions live in the database, so running several workers behind one
DATABASE_URL is safe. Rate-limit counters are per worker.
"""

from api.main import app

__all__ = ["app"]
