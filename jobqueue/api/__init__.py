"""
API module.
Contains the FastAPI job submission application.
"""

from jobqueue.api.main import create_app, run

__all__ = ["create_app", "run"]
