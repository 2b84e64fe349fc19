"""Request/response schemas for the AI assistant endpoints."""

from typing import Literal

from pydantic import BaseModel, Field


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    text: str


class StageDescriptionRequest(BaseModel):
    """One chat turn; the client resends the whole history every time."""

    message: str = Field(min_length=1)
    history: list[ChatTurn] = Field(default_factory=list)


class InterviewAnalysisRequest(BaseModel):
    context: str = Field(min_length=1)


class TextResponse(BaseModel):
    text: str


class RecognizedTextResponse(TextResponse):
    event_id: str | None = None


class ReportResponse(BaseModel):
    report: str
