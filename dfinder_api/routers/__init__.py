from .health import router as health_router
from .pictures import router as pictures_router

__all__ = [
    "health_router",
    "pictures_router",
]
