"""Dependencies injected through FastAPI ``Depends``.

Realtime objects live on ``app.state`` and are created by :func:`main.create_app`.
"""

from fastapi import Request

from .realtime.registry import ConnectionRegistry
from .services.notification_fanout import NotificationFanout


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_fanout(request: Request) -> NotificationFanout:
    """Fan-out engine shared by every task mutation endpoint."""
    return request.app.state.fanout
