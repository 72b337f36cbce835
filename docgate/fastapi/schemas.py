"""Request and response bodies for the docgate HTTP API."""

from datetime import datetime

from pydantic import BaseModel


class SessionResponse(BaseModel):
    """Body returned when a client begins an upload session."""

    token: str | None = None
    token_type: str
    expires_in: int
    expires_at: datetime

    model_config = {
        "json_schema_extra": {
            "example": {
                "token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                "token_type": "bearer",
                "expires_in": 300,
                "expires_at": "2025-01-01T12:05:00Z",
            }
        }
    }


class UploadResponse(BaseModel):
    url: str
    public_id: str


class DeleteRequest(BaseModel):
    public_id: str | None = None
