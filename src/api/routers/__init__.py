"""API routers for the studio homework engine."""

from src.api.routers import (
    flows_router,
    homework_router,
    tracking_router,
)

__all__ = [
    "homework_router",
    "flows_router",
    "tracking_router",
]
