"""
API package for Scriber.
Contains all API routers and endpoint definitions.
"""

from .admin import router as admin_router
from .auth import router as auth_router
from .meetings import router as meetings_router
from .minutes import router as minutes_router
from .notifications import router as notifications_router
from .segments import router as segments_router
from .shares import router as shares_router
from .speakers import router as speakers_router
from .templates import router as templates_router
from .uploads import router as uploads_router
from .usage import router as usage_router
from .users import router as users_router

__all__ = [
    "admin_router",
    "auth_router",
    "meetings_router",
    "minutes_router",
    "notifications_router",
    "segments_router",
    "shares_router",
    "speakers_router",
    "templates_router",
    "uploads_router",
    "usage_router",
    "users_router",
]
