"""
app/api/routers package marker.
"""

from app.api.routers.data import router as data_router
from app.api.routers.insights import router as insights_router
from app.api.routers.upload import router as upload_router

__all__ = [
    "data_router",
    "insights_router",
    "upload_router",
]
