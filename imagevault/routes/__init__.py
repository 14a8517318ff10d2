"""API routes package."""

from imagevault.routes.upload_routes import router as upload_router
from imagevault.routes.image_routes import router as image_router

__all__ = ["upload_router", "image_router"]
