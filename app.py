"""
App assembly entry point.

Re-exports the FastAPI `app` from `crud6.api.main` so it can be served with
``uvicorn app:app``.
"""

from crud6.api.main import app  # noqa: F401
