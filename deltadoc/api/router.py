from fastapi import APIRouter
from deltadoc.api.http import health_router, versions_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(versions_router)
