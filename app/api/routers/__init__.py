"""
app/api/routers package marker.
"""

from app.api.routers.geocoding import router as geocoding_router
from app.api.routers.imports import router as imports_router

__all__ = [
    "geocoding_router",
    "imports_router",
]
