"""
API module.
Contains the FastAPI application, routes, and error mapping.
"""

from leasequeue.api.main import create_app, run

__all__ = ["create_app", "run"]
