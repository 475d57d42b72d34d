"""FastAPI routers and dependencies."""

from docfiller.api.deps import get_app_settings, get_component_factory, read_upload
from docfiller.api.documents import router as documents_router
from docfiller.api.templates import router as templates_router

__all__ = [
    "get_app_settings",
    "get_component_factory",
    "read_upload",
    "documents_router",
    "templates_router",
]
