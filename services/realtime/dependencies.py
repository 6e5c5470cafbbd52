"""
services/realtime/dependencies.py
FastAPI dependency resolving the connection registry owned by the app.
"""

from typing import Optional

from fastapi import Request

from services.realtime.manager import ConnectionManager


def get_realtime(request: Request) -> Optional[ConnectionManager]:
    return getattr(request.app.state, "realtime", None)
