"""Maps AI adapter failures to HTTP errors."""

from contextlib import contextmanager

from fastapi import HTTPException, status

from services.ai_gateway import AIServiceError
from services.ai_service import InvalidAIResponse


@contextmanager
def translate_ai_errors():
    """
    Raise 502 for AI failures, with distinct details for an unreachable
    provider and a malformed reply.
    """
    try:
        yield
    except AIServiceError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"AI service unavailable: {str(e)}",
        )
    except InvalidAIResponse:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Invalid AI response format",
        )
