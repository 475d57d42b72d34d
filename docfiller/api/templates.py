"""Template API routes.

Handles the template library, placeholder extraction, rendering of
filled templates and AI template generation.
"""

import json
import logging
from pathlib import PurePath
from typing import Any

from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import FileResponse, Response
from pydantic import TypeAdapter, ValidationError

from docfiller.api.deps import get_app_settings, get_component_factory, read_upload
from docfiller.api.schemas import (
    ExtractPlaceholdersResponse,
    GenerateTemplateRequest,
    TemplateInfo,
    TemplateListResponse,
)
from docfiller.core.config import Settings
from docfiller.core.factory import ComponentFactory
from docfiller.interfaces.completion import CompletionError
from docfiller.interfaces.parser import ParsingError
from docfiller.interfaces.template import TemplateError
from docfiller.strategies.template_engine import FilledPlaceholder, to_render_data

logger = logging.getLogger(__name__)

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_filled_adapter = TypeAdapter(list[FilledPlaceholder])


# =============================================================================
# Helper Functions
# =============================================================================


def _require_docx(filename: str | None) -> str:
    if not filename or not filename.lower().endswith(".docx"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only .docx files are supported",
        )
    return filename


def _parse_render_data(raw: str) -> dict[str, Any]:
    """Decode the `placeholders` form field.

    Accepts either the filled placeholder list returned by the fill
    endpoint or a plain ``{key: value}`` object.
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid placeholders JSON: {e.msg}",
        ) from e

    if isinstance(payload, dict):
        return payload
    if isinstance(payload, list):
        try:
            return to_render_data(_filled_adapter.validate_python(payload))
        except ValidationError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid placeholders: {e.error_count()} validation error(s)",
            ) from e
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Placeholders must be a JSON object or a list of filled placeholders",
    )


def _attachment(content: bytes, filename: str, status_code: int = status.HTTP_200_OK) -> Response:
    return Response(
        content=content,
        status_code=status_code,
        media_type=DOCX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


router = APIRouter(prefix="/templates", tags=["templates"])


# =============================================================================
# Template Library
# =============================================================================


@router.get(
    "",
    response_model=TemplateListResponse,
    status_code=status.HTTP_200_OK,
)
async def list_templates(
    settings: Settings = Depends(get_app_settings),
) -> TemplateListResponse:
    """List the .docx templates in the template library."""
    template_dir = settings.template_dir
    if not template_dir.is_dir():
        logger.warning(f"Template directory does not exist: {template_dir}")
        return TemplateListResponse(templates=[], total=0)

    templates = [
        TemplateInfo(filename=path.name, size=path.stat().st_size)
        for path in sorted(template_dir.iterdir())
        if path.is_file() and path.suffix.lower() == ".docx" and not path.name.startswith("~$")
    ]
    return TemplateListResponse(templates=templates, total=len(templates))


@router.get("/{filename}")
async def download_template(
    filename: str,
    settings: Settings = Depends(get_app_settings),
) -> FileResponse:
    """Download a template from the library.

    Raises:
        HTTPException: 400 for unsafe or non-docx names, 404 when missing.
    """
    if PurePath(filename).name != filename or "\\" in filename or filename in {".", ".."}:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid template name",
        )
    _require_docx(filename)

    template_path = settings.template_dir / filename
    if not template_path.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Template not found: {filename}",
        )

    logger.info(f"Serving template: {template_path}")
    return FileResponse(
        path=str(template_path),
        media_type=DOCX_MEDIA_TYPE,
        filename=filename,
    )


# =============================================================================
# Extraction and Rendering
# =============================================================================


@router.post(
    "/placeholders",
    response_model=ExtractPlaceholdersResponse,
    status_code=status.HTTP_200_OK,
)
async def extract_placeholders(
    file: UploadFile = File(...),
    settings: Settings = Depends(get_app_settings),
    factory: ComponentFactory = Depends(get_component_factory),
) -> ExtractPlaceholdersResponse:
    """Extract the placeholder fields of an uploaded template.

    Raises:
        HTTPException: If the upload is not a readable .docx file.
        TemplateValidationError: If loop tags are unbalanced or empty.
    """
    try:
        filename = _require_docx(file.filename)
        content = await read_upload(file, settings)
        logger.info(f"Extracting placeholders from: {filename}")

        document = factory.get_parser(filename).parse(content, filename)
        result = factory.get_extractor().extract_or_raise(document.content)

        return ExtractPlaceholdersResponse(
            filename=filename,
            placeholders=result.fields,
            warnings=result.warnings,
        )

    except (HTTPException, TemplateError):
        raise
    except (ParsingError, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Placeholder extraction failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Placeholder extraction failed: {str(e)}",
        ) from e


@router.post("/render")
async def render_template(
    file: UploadFile = File(...),
    placeholders: str = Form(..., description="Filled placeholders or a {key: value} object, as JSON"),
    settings: Settings = Depends(get_app_settings),
    factory: ComponentFactory = Depends(get_component_factory),
) -> Response:
    """Render an uploaded template with filled values.

    Returns:
        The rendered .docx as an attachment.

    Raises:
        HTTPException: For unreadable uploads or malformed placeholder JSON.
        TemplateRenderError: If the template cannot be rendered.
        UnsupportedTemplateError: If a table row mixes loop families.
    """
    try:
        filename = _require_docx(file.filename)
        content = await read_upload(file, settings)
        data = _parse_render_data(placeholders)
        logger.info(f"Rendering {filename} with {len(data)} values")

        rendered = factory.get_renderer().render(content, data)
        return _attachment(rendered, f"filled-{filename}")

    except (HTTPException, TemplateError):
        raise
    except Exception as e:
        logger.error(f"Template rendering failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Template rendering failed: {str(e)}",
        ) from e


# =============================================================================
# AI Generation
# =============================================================================


@router.post("/generate", status_code=status.HTTP_201_CREATED)
async def generate_template(
    request: GenerateTemplateRequest = Body(...),
    factory: ComponentFactory = Depends(get_component_factory),
) -> Response:
    """Design a placeholder template with AI and return it as .docx.

    Raises:
        HTTPException: 400 if the provider has no API key.
        CredentialError: If the provider rejects the key.
        CompletionError: If the call fails or the design is unusable.
    """
    try:
        generator = factory.get_template_generator(request.provider, request.api_key)
        template = await generator.generate(request.request, request.file_name)
        return _attachment(template.content, template.file_name, status.HTTP_201_CREATED)

    except (HTTPException, TemplateError, CompletionError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Template generation failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Template generation failed: {str(e)}",
        ) from e
