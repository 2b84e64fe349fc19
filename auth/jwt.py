"""JWT token creation and validation."""

from datetime import datetime, timedelta, UTC
from uuid import UUID

from jose import jwt, JWTError

import config
from auth.schemas import TokenPayload


def create_access_token(
    user_id: UUID,
    email: str,
    expires_in_hours: int | None = None,
) -> str:
    """
    Create a signed JWT access token.

    Args:
        user_id: User UUID
        email: User email (copied into the token for event author snapshots)
        expires_in_hours: Token expiration in hours (defaults to JWT_EXPIRES_HOURS)

    Returns:
        Encoded JWT token string
    """
    hours = expires_in_hours if expires_in_hours is not None else config.settings.JWT_EXPIRES_HOURS
    exp = datetime.now(UTC) + timedelta(hours=hours)

    payload = {
        "sub": str(user_id),
        "email": email,
        "exp": int(exp.timestamp()),  # JWT expects Unix timestamp
    }

    return jwt.encode(
        payload,
        config.settings.JWT_SECRET,
        algorithm=config.settings.JWT_ALGORITHM,
    )


def decode_token(token: str) -> TokenPayload:
    """
    Decode and validate a JWT token.

    Args:
        token: JWT token string

    Returns:
        TokenPayload with decoded claims

    Raises:
        JWTError: If token is invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            config.settings.JWT_SECRET,
            algorithms=[config.settings.JWT_ALGORITHM],
        )

        return TokenPayload(
            sub=payload["sub"],
            email=payload.get("email", ""),
            exp=datetime.fromtimestamp(payload["exp"], UTC),
        )
    except (JWTError, KeyError) as e:
        raise JWTError(f"Invalid token: {str(e)}") from e
