"""JWT token payload schemas."""

from datetime import datetime

from pydantic import BaseModel


class TokenPayload(BaseModel):
    """JWT token payload structure."""

    sub: str  # user_id (standard JWT claim)
    email: str  # snapshot of the user's email at login
    exp: datetime  # Expiration time (standard JWT claim)
