"""
FastAPI dependencies shared by the routers.
"""

from typing import Optional

from fastapi import Header, Request

from ..core.container import ServiceContainer


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_user_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """Caller identity for per-user filtering; authentication happens upstream."""
    return x_user_id or None
