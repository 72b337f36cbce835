"""HTTP routes for docgate.

Admission control runs as middleware, ahead of these handlers. Protected
handlers declare :func:`require_capability` as a route dependency and read
their body themselves, so nothing is parsed for a caller that holds no
capability.
"""

import logging

import pydantic
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import PlainTextResponse

from docgate.auth.service import AuthorizationManager
from docgate.core.settings import DocGateSettings
from docgate.fastapi.dependencies import (
    get_authorization_manager,
    get_settings,
    get_upload_pipeline,
    require_capability,
)
from docgate.fastapi.forms import read_upload
from docgate.fastapi.schemas import DeleteRequest, SessionResponse, UploadResponse
from docgate.storage.uploads import UploadPipeline

logger = logging.getLogger(__name__)

HEALTH_MESSAGE = "Secure file upload service is running."

router = APIRouter()


@router.get("/health", response_class=PlainTextResponse)
async def health() -> str:
    return HEALTH_MESSAGE


@router.post("/session", response_model=SessionResponse, response_model_exclude_none=True)
async def begin_session(
    response: Response,
    settings: DocGateSettings = Depends(get_settings),
    manager: AuthorizationManager = Depends(get_authorization_manager),
) -> SessionResponse:
    """Issue a short-lived upload capability."""
    issued = await manager.begin_session()
    capability = issued.capability

    if issued.token_type == "cookie":
        response.set_cookie(
            settings.session_cookie_name,
            issued.credential,
            max_age=capability.ttl_seconds,
            httponly=True,
            secure=settings.session_cookie_secure,
            samesite="strict",
        )
        token = None
    else:
        token = issued.credential

    logger.info(f"Issued upload capability expiring at {capability.expires_at.isoformat()}")
    return SessionResponse(
        token=token,
        token_type=issued.token_type,
        expires_in=capability.ttl_seconds,
        expires_at=capability.expires_at,
    )


@router.post(
    "/upload",
    response_model=UploadResponse,
    dependencies=[Depends(require_capability)],
)
async def upload(
    request: Request,
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
) -> UploadResponse:
    """Validate a PDF from the ``file`` form field and store it."""
    file = await read_upload(request, pipeline)
    artifact = await pipeline.upload_file(file)

    return UploadResponse(**artifact.to_dict())


@router.delete("/delete", dependencies=[Depends(require_capability)])
async def delete(
    request: Request,
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
) -> dict:
    """Remove a stored document; the backend's result is returned as-is."""
    body = await request.body()
    try:
        payload = DeleteRequest.model_validate_json(body or b"{}")
    except pydantic.ValidationError:
        # An unreadable body carries no usable reference
        payload = DeleteRequest()

    return await pipeline.delete(payload.public_id)
