"""FastAPI dependencies shared by the docgate routes."""

from fastapi import Depends, Request

from docgate.auth.models import Capability, Scope
from docgate.auth.service import AuthorizationManager
from docgate.core.exceptions import ConfigurationError
from docgate.core.settings import DocGateSettings
from docgate.storage.uploads import UploadPipeline


def get_settings(request: Request) -> DocGateSettings:
    return request.app.state.settings


def get_authorization_manager(request: Request) -> AuthorizationManager:
    return request.app.state.authorization_manager


def get_upload_pipeline(request: Request) -> UploadPipeline:
    pipeline = getattr(request.app.state, "upload_pipeline", None)
    if pipeline is None:
        raise ConfigurationError("Storage backend is not initialized")
    return pipeline


def extract_credential(request: Request, settings: DocGateSettings) -> str | None:
    """Find the credential a client presented.

    A ``Bearer`` authorization header wins; in cookie mode the session
    cookie is used when no header is sent.
    """
    authorization = request.headers.get("Authorization", "")
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()

    if settings.session_mode == "cookie":
        return request.cookies.get(settings.session_cookie_name)
    return None


async def require_capability(
    request: Request,
    settings: DocGateSettings = Depends(get_settings),
    manager: AuthorizationManager = Depends(get_authorization_manager),
) -> Capability:
    """Dependency that admits only holders of a valid upload capability.

    Example:
        @router.post("/upload", dependencies=[Depends(require_capability)])
        async def upload(...):
            ...
    """
    capability = await manager.verify(
        extract_credential(request, settings), action=Scope.UPLOAD
    )
    request.state.capability = capability
    return capability
