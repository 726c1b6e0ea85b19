"""
API routers.
"""
from .contacts import router as contacts_router
from .pipeline import router as pipeline_router

__all__ = ["contacts_router", "pipeline_router"]
