"""
Let's Meet API module.

Provides FastAPI HTTP endpoints for availability, matches and users.
"""

from letsmeet.api.main import app, create_app, run_server

__all__ = ["app", "create_app", "run_server"]
