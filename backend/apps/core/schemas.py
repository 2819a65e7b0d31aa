"""
Core schemas - shared Pydantic models for API responses.
"""

from typing import Any

from pydantic import BaseModel, Field


class ErrorBody(BaseModel):
    """Error payload carried inside the envelope."""

    message: str = Field(..., description="Human-readable error message")
    code: str = Field(..., description="Machine-readable error code, e.g. 'NOT_FOUND'")
    status_code: int = Field(..., description="HTTP status code")
    request_id: str | None = Field(None, description="Request id for support and log lookup")
    details: Any = Field(None, description="Structured details, e.g. field validation errors")


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: ErrorBody

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": {
                    "message": "Invalid email or password",
                    "code": "UNAUTHORIZED",
                    "status_code": 401,
                    "request_id": "0b6f1a52-93d4-4a4e-9a8c-3f0e2b7c1d11",
                    "details": None,
                }
            }
        }
    }


class MessageResponse(BaseModel):
    """Generic acknowledgement."""

    message: str
