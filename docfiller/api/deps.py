"""FastAPI dependencies for dependency injection.

Provides reusable dependencies for routes including:
- Application settings
- The component factory
- Upload reading with a size limit
"""

import logging

from fastapi import HTTPException, Request, UploadFile, status

from docfiller.core.config import Settings
from docfiller.core.factory import ComponentFactory

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    """Return the settings the application was created with."""
    return request.app.state.settings


def get_component_factory(request: Request) -> ComponentFactory:
    """Return the application's component factory."""
    return request.app.state.factory


async def read_upload(file: UploadFile, settings: Settings) -> bytes:
    """Read an uploaded file, enforcing the configured size limit.

    Raises:
        HTTPException: If the file is empty or too large.
    """
    content = await file.read(settings.max_upload_bytes + 1)
    if len(content) > settings.max_upload_bytes:
        logger.warning(f"Rejected upload {file.filename}: larger than {settings.max_upload_bytes} bytes")
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {settings.max_upload_bytes} byte upload limit",
        )
    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is empty",
        )
    return content
