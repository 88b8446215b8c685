"""FastAPI dependencies for the Simmer API.

Provides:
- The process-wide SessionControl (installed on ``app.state`` at startup)
- The per-IP rate limiter shared by routers and the app
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from .services.session_control import SessionControl

limiter = Limiter(key_func=get_remote_address)


def get_session_control(request: Request) -> SessionControl:
    """Resolve the SessionControl owned by the running app."""
    return request.app.state.session_control
