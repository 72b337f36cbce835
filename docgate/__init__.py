"""docgate: an authorizing gateway for document uploads to object storage."""

__version__ = "0.1.0"

# Core components
from docgate.core.clock import Clock, SystemClock
from docgate.core.exceptions import (
    BackendError,
    ConfigurationError,
    DocGateError,
    RateLimitedError,
    SigningError,
    UnauthorizedError,
    ValidationError,
    ValidationReason,
)
from docgate.core.locks import StripedLocks
from docgate.core.settings import DocGateSettings

# Auth components
from docgate.auth.models import Capability, IssuedCapability, Scope
from docgate.auth.rate_limit import RateLimitConfig, RateLimiter, RateLimitMiddleware
from docgate.auth.service import (
    AuthorizationManager,
    SessionAuthorizationManager,
    SessionStore,
    TokenAuthorizationManager,
    create_authorization_manager,
)

# Storage components
from docgate.storage import S3StorageBackend, StorageBackend, UploadArtifact, UploadPipeline

# FastAPI components
from docgate.fastapi.app import create_app
from docgate.fastapi.error_handlers import register_error_handlers

__all__ = [
    # Version
    "__version__",
    # Core
    "Clock",
    "SystemClock",
    "StripedLocks",
    "DocGateSettings",
    "DocGateError",
    "RateLimitedError",
    "UnauthorizedError",
    "ValidationError",
    "ValidationReason",
    "BackendError",
    "SigningError",
    "ConfigurationError",
    # Auth
    "Capability",
    "IssuedCapability",
    "Scope",
    "RateLimitConfig",
    "RateLimiter",
    "RateLimitMiddleware",
    "AuthorizationManager",
    "TokenAuthorizationManager",
    "SessionAuthorizationManager",
    "SessionStore",
    "create_authorization_manager",
    # Storage
    "StorageBackend",
    "S3StorageBackend",
    "UploadArtifact",
    "UploadPipeline",
    # FastAPI
    "create_app",
    "register_error_handlers",
]
