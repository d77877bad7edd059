from .router import admin_router, webhooks_router
from .router import router as public_router

__all__ = ["admin_router", "public_router", "webhooks_router"]
