from .auth import router as auth_router
from .member import router as member_router
from .school import router as school_router, resources_router
from .user import router as user_router
from .orders import router as orders_router

__all__ = [
    "auth_router",
    "member_router",
    "school_router",
    "resources_router",
    "user_router",
    "orders_router",
]
