"""Authenticated caller model."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class AuthenticatedUser(BaseModel):
    """The identity carried by a verified access token."""

    id: UUID
    email: Optional[str] = None
    role: str = "authenticated"
