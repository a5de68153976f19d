"""FastAPI integration for the notification engine.

Provides the intake router (send, schedule, status).

Example:
    ```python
    from fastapi import FastAPI
    from herald_notifications.contrib.fastapi import create_notifications_router

    app = FastAPI()
    app.include_router(create_notifications_router(service))
    ```
"""

from __future__ import annotations

from .router import create_notifications_router, validation_error_body

__all__ = ["create_notifications_router", "validation_error_body"]
