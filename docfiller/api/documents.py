"""Document API routes.

Turns uploaded source documents into text and fills template
placeholders from that text with AI.
"""

import logging

from fastapi import APIRouter, Body, Depends, File, HTTPException, UploadFile, status

from docfiller.api.deps import get_app_settings, get_component_factory, read_upload
from docfiller.api.schemas import FillRequest, FillResponse, TextResponse
from docfiller.core.config import Settings
from docfiller.core.factory import ComponentFactory
from docfiller.interfaces.completion import CompletionError, SourceDocument
from docfiller.interfaces.parser import ParsingError
from docfiller.interfaces.template import TemplateError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post(
    "/text",
    response_model=TextResponse,
    status_code=status.HTTP_200_OK,
)
async def extract_text(
    file: UploadFile = File(...),
    settings: Settings = Depends(get_app_settings),
    factory: ComponentFactory = Depends(get_component_factory),
) -> TextResponse:
    """Return the plain text of an uploaded .docx or text file.

    Raises:
        HTTPException: 400 for unsupported or unreadable files.
    """
    try:
        filename = file.filename or ""
        parser = factory.get_parser(filename)
        content = await read_upload(file, settings)

        document = parser.parse(content, filename)
        return TextResponse(filename=filename, text=document.content, metadata=document.metadata)

    except HTTPException:
        raise
    except (ParsingError, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Text extraction failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Text extraction failed: {str(e)}",
        ) from e


@router.post(
    "/fill",
    response_model=FillResponse,
    status_code=status.HTTP_200_OK,
)
async def fill_placeholders(
    request: FillRequest = Body(...),
    factory: ComponentFactory = Depends(get_component_factory),
) -> FillResponse:
    """Fill placeholders with values found in the source documents.

    Sources are taken from `sources`; `data_content` is used as a single
    source when no named sources are given.

    Raises:
        HTTPException: 400 when there is no source data or no API key.
        CredentialError: If the provider rejects the key.
        CompletionError: If the AI call fails.
        FillShapeError: If a returned value cannot take its field's shape.
    """
    try:
        sources = [SourceDocument(name=s.name, content=s.content) for s in request.sources]
        if not sources and request.data_content and request.data_content.strip():
            sources = [SourceDocument(name="data_content", content=request.data_content)]
        if request.placeholders and not sources:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No source data provided: send data_content or sources",
            )

        filler = factory.get_filler(request.provider, request.api_key)
        result = await filler.fill(request.placeholders, sources)

        logger.info(
            f"Filled {len(result.placeholders)} placeholders "
            f"(fallback={result.processing.used_fallback}, evidence={len(result.evidence)})"
        )
        return FillResponse(
            filled_placeholders=result.placeholders,
            evidence=result.evidence,
            processing=result.processing,
        )

    except (HTTPException, TemplateError, CompletionError):
        raise
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Placeholder filling failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Placeholder filling failed: {str(e)}",
        ) from e
