"""API controllers package."""

from .proxy_controller import router as proxy_router

__all__ = [
    "proxy_router",
]
