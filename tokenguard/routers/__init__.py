"""API routers."""

from tokenguard.routers.tokens import router as tokens_router
from tokenguard.routers.users import router as users_router

__all__ = ["tokens_router", "users_router"]
