"""Web API for Sprintflow.

Thin FastAPI routers over the orchestration services.
"""

from sprintflow.web.app import create_app

__all__ = ["create_app"]
