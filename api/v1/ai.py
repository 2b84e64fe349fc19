"""AI assistant endpoints: stage reports, note OCR, interview analysis and
the stage-description chat."""

from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_ai_gateway, get_change_bus, get_current_user, get_db
from models.ai import (
    InterviewAnalysisRequest,
    RecognizedTextResponse,
    ReportResponse,
    StageDescriptionRequest,
    TextResponse,
)
from models.user import User
from services import assistant_service
from services.ai_gateway import AIGateway
from services.realtime import ChangeBus

router = APIRouter()


@router.post("/weeks/{week_id}/report", response_model=ReportResponse)
async def generate_report_endpoint(
    week_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: AIGateway = Depends(get_ai_gateway),
):
    """
    Generate a Markdown report on a completed stage (auditor only).
    """
    try:
        report = await assistant_service.generate_week_report(
            db,
            user=current_user,
            week_id=week_id,
            gateway=gateway,
        )
        return ReportResponse(report=report)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to generate report: {str(e)}",
        )


@router.post("/ai/recognize-text", response_model=RecognizedTextResponse)
async def recognize_text_endpoint(
    image: UploadFile = File(...),
    week_id: UUID | None = Form(None),
    task_id: str | None = Form(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: AIGateway = Depends(get_ai_gateway),
    bus: ChangeBus = Depends(get_change_bus),
):
    """
    Recognize text on a photo of notes.

    With week_id and task_id the text is also added to that item's feed.
    """
    try:
        text, event_id = await assistant_service.recognize_notes(
            db,
            user=current_user,
            image=image,
            gateway=gateway,
            week_id=week_id,
            task_id=task_id,
            bus=bus,
        )
        return RecognizedTextResponse(text=text, event_id=str(event_id) if event_id else None)
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to recognize text: {str(e)}",
        )


@router.post("/ai/interview-analysis", response_model=TextResponse)
async def interview_analysis_endpoint(
    request: InterviewAnalysisRequest,
    current_user: User = Depends(get_current_user),
    gateway: AIGateway = Depends(get_ai_gateway),
):
    """Draft an interview analysis from its textual context."""
    try:
        text = await assistant_service.analyze_interview(gateway, context=request.context)
        return TextResponse(text=text)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to analyze interview: {str(e)}",
        )


@router.post("/ai/stage-description", response_model=TextResponse)
async def stage_description_endpoint(
    request: StageDescriptionRequest,
    current_user: User = Depends(get_current_user),
    gateway: AIGateway = Depends(get_ai_gateway),
):
    """One chat turn with the stage-description assistant."""
    try:
        text = await assistant_service.describe_stage(
            gateway,
            message=request.message,
            history=request.history,
        )
        return TextResponse(text=text)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to generate stage description: {str(e)}",
        )
