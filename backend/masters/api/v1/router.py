from fastapi import APIRouter

from masters.api.v1 import imports

api_router = APIRouter()

api_router.include_router(imports.router, prefix="/imports", tags=["imports"])
