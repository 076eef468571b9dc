from deltadoc.api.http.health import router as health_router
from deltadoc.api.http.versions import router as versions_router

__all__ = [
    "health_router",
    "versions_router"
]
