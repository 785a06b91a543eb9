"""
FastAPI dependencies.

The queue and database are built once in create_app and kept on app.state;
routes reach them through these dependencies.
"""

from typing import Annotated

from fastapi import Depends, Request

from leasequeue.config import Settings
from leasequeue.db import Database
from leasequeue.service import MessageQueue


def get_queue(request: Request) -> MessageQueue:
    """Return the application's MessageQueue."""
    return request.app.state.queue


def get_database(request: Request) -> Database:
    """Return the application's Database handle."""
    return request.app.state.database


def get_app_settings(request: Request) -> Settings:
    """Return the settings the application was built with."""
    return request.app.state.settings


# Type aliases for dependency injection
QueueDep = Annotated[MessageQueue, Depends(get_queue)]
DatabaseDep = Annotated[Database, Depends(get_database)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
