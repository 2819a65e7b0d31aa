"""
Client API schemas.
"""

from datetime import datetime
from uuid import UUID

from ninja import Schema
from pydantic import EmailStr, Field


class CreateClientRequest(Schema):
    name: str = Field(..., min_length=1, max_length=255, examples=["Globex"])
    email: EmailStr | None = None


class ClientResponse(Schema):
    id: UUID
    name: str
    email: str
    created_at: datetime


class ClientListResponse(Schema):
    clients: list[ClientResponse]
