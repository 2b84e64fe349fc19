"""AI-backed generation: audit plans, stage reports, OCR and chat helpers.

Every function takes an AIGateway and returns plain values. Gateway failures
propagate as AIServiceError; replies that do not match the expected shape
raise InvalidAIResponse.
"""

import json
import logging
import math
from datetime import date, timedelta
from typing import Any, Sequence

from pydantic import BaseModel, ValidationError, model_validator

from models.plan import DayPlan, Plan, new_item_id
from models.project import ApprovalPeriod
from services import plan_tree
from services.ai_gateway import AIGateway, ChatMessage, InlineImage

logger = logging.getLogger(__name__)


class InvalidAIResponse(Exception):
    """The model replied, but not in the expected format."""


class GeneratedWeek(BaseModel):
    title: str
    start_date: date
    end_date: date
    plan: dict[date, DayPlan]

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be earlier than start_date")
        outside = plan_tree.dates_outside_range(self.plan, self.start_date, self.end_date)
        if outside:
            raise ValueError(f"plan has days outside the week: {outside}")
        return self


class GeneratedAuditPlan(BaseModel):
    weeks: list[GeneratedWeek]


PLAN_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "weeks": {
            "type": "ARRAY",
            "description": "Audit stages (weeks) in chronological order.",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "title": {"type": "STRING", "description": "Stage title."},
                    "start_date": {"type": "STRING", "description": "Stage start date, YYYY-MM-DD."},
                    "end_date": {"type": "STRING", "description": "Stage end date, YYYY-MM-DD."},
                    "plan": {
                        "type": "OBJECT",
                        "description": "Daily plan keyed by date (YYYY-MM-DD).",
                    },
                },
                "required": ["title", "plan", "start_date", "end_date"],
            },
        },
    },
    "required": ["weeks"],
}


def default_end_date(start_date: date, weeks: int) -> date:
    return start_date + timedelta(days=7 * weeks - 1)


def duration_in_weeks(start_date: date, end_date: date) -> int:
    """Whole weeks covering [start_date, end_date], inclusive."""
    return math.ceil(((end_date - start_date).days + 1) / 7)


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def _fresh_ids(plan: Plan) -> Plan:
    """New uuid for every item, with progress fields reset."""
    return {
        day: DayPlan(
            tasks=[
                item.model_copy(
                    update={"id": new_item_id(), "completed": False, "event_count": 0}
                )
                for item in day_plan.tasks
            ]
        )
        for day, day_plan in plan.items()
    }


def parse_generated_plan(text: str) -> GeneratedAuditPlan:
    """
    Parse and validate a generated plan reply.

    Raises:
        InvalidAIResponse: If the reply is not JSON or does not match the schema
    """
    try:
        parsed = json.loads(_strip_code_fence(text))
        generated = GeneratedAuditPlan.model_validate(parsed)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.error("Failed to parse AI plan response: %s", e)
        logger.error("Raw response: %s", text)
        raise InvalidAIResponse("Invalid AI response format") from e

    return GeneratedAuditPlan(
        weeks=[
            week.model_copy(update={"plan": _fresh_ids(week.plan)})
            for week in generated.weeks
        ]
    )


def build_plan_prompt(
    project_name: str,
    project_description: str,
    start_date: date,
    end_date: date,
    duration_weeks: int,
    approval_period: ApprovalPeriod,
    response_language: str,
) -> str:
    period = "weekly" if approval_period == ApprovalPeriod.WEEKLY else "monthly"
    return f"""
Create a detailed audit plan for a project.
Project name: "{project_name}"
Description / goals: "{project_description}"
Dates: from {start_date.isoformat()} to {end_date.isoformat()}.
Total duration: {duration_weeks} weeks.
Reporting period: {period}.

Split the plan into {duration_weeks} stages (weeks).
Give each stage a short, descriptive title (for example "Stage 1: Collecting and reviewing documents").
Give each stage exact start and end dates. The first week starts on {start_date.isoformat()}; each week lasts 7 days.
For each stage build a daily plan as a JSON object whose keys are dates in YYYY-MM-DD format
and whose values are objects with a "tasks" array. Every date must fall inside its stage.
Tasks must be concrete actions for the auditor.
Task types: "task" (general task), "meeting", "interview", "doc_review" (document review), "observation".
For "meeting" and "interview" items you may add "time", "location", "agenda", "participants"
or "interviewee" inside a "data" object.
Plan 5 working days per week (Monday to Friday).
Example item: {{"content": "Request the articles of association", "completed": false, "type": "task"}}

Write all titles and task texts in {response_language}. Return JSON only.
"""


async def generate_audit_plan(
    gateway: AIGateway,
    *,
    project_name: str,
    project_description: str,
    start_date: date,
    end_date: date,
    duration_weeks: int,
    approval_period: ApprovalPeriod,
) -> GeneratedAuditPlan:
    """
    Ask the model for a multi-week audit plan.

    Returns:
        GeneratedAuditPlan whose items all carry fresh ids and zero progress

    Raises:
        AIServiceError: If the provider call fails
        InvalidAIResponse: If the reply is malformed
    """
    prompt = build_plan_prompt(
        project_name,
        project_description,
        start_date,
        end_date,
        duration_weeks,
        approval_period,
        gateway.response_language,
    )
    text = await gateway.generate(
        prompt,
        response_schema=PLAN_RESPONSE_SCHEMA,
        purpose="audit_plan",
    )
    return parse_generated_plan(text)


def _event_digest(events: Sequence[Any]) -> list[dict[str, Any]]:
    digest = []
    for event in events:
        files = (event.data or {}).get("file_urls") or []
        digest.append(
            {
                "type": event.type,
                "content": event.content,
                "author": event.author_email,
                "date": event.created_at.isoformat() if event.created_at else None,
                "files": [f.get("name") for f in files],
            }
        )
    return digest


async def generate_comprehensive_report(
    gateway: AIGateway,
    *,
    project: Any,
    week: Any,
    plan: Plan,
    events: Sequence[Any],
) -> str:
    """Markdown progress report on one stage for the business owner."""
    stats = plan_tree.plan_stats(plan)
    events_json = json.dumps(_event_digest(events), ensure_ascii=False, indent=2)
    prompt = f"""
You are a professional business auditor. Write a comprehensive progress report on the
completed audit stage for the business owner. The report must be structured and formal,
yet clear. Use Markdown.

**Input data:**

1. **Project:**
   * Name: "{project.name}"
   * Goals: "{project.description}"

2. **Reporting stage:**
   * Title: "{week.title}"
   * Dates: from {week.start_date.isoformat()} to {week.end_date.isoformat()}

3. **Stage plan:**
   * **Planned items:** {stats.total}
   * **Completed items (with activity):** {stats.completed}
   * **Items in progress (no activity):** {stats.in_progress}

4. **Event log (comments, meetings, files):**
```json
{events_json}
```

**Sections to include:**

### 1. Stage summary
### 2. Key results and completed work
### 3. Difficulties, risks and open questions
### 4. Recommendations and next steps

Support every statement with facts from the data above. Write the report in {gateway.response_language}.
"""
    return await gateway.generate(prompt, purpose="stage_report")


async def recognize_text_from_image(
    gateway: AIGateway,
    image: bytes,
    mime_type: str = "image/jpeg",
) -> str:
    """OCR of handwritten or printed notes, formatting preserved."""
    prompt = (
        "Recognize and return all handwritten and printed text from this image. "
        "Preserve the original formatting, including line breaks and indentation, as far as possible. "
        "Return only the text, without any comments or explanations."
    )
    return await gateway.generate(
        prompt,
        images=[InlineImage(data=image, mime_type=mime_type)],
        purpose="recognize_text",
    )


async def process_interview_audio(gateway: AIGateway, interview_context: str) -> str:
    """
    Simulated interview analysis.

    The recording itself is not sent; the model drafts the analysis from the
    textual interview context.
    """
    prompt = f"""
You are an auditor's assistant. You are given the context of an interview.
Analyze it and produce a short summary, the key findings and the points that were likely discussed.

Interview context: "{interview_context}"

Write the report that an analysis of the recording would produce. Include:
1. **Summary:** 1-2 sentences on the topic of the conversation.
2. **Key points:** 3-5 of the most important statements or facts.
3. **Conclusions and risks:** what can be concluded, and any potential risks.
4. **Next steps:** what the auditor should do based on this interview.

Format the answer with Markdown and write it in {gateway.response_language}.
"""
    return await gateway.generate(prompt, purpose="interview_analysis")


STAGE_DESCRIPTION_INSTRUCTION = (
    "You help an auditor write the description of an audit stage. "
    "Reply with a concise, well-structured stage description (goals, scope, expected results) "
    "in Markdown. Refine the previous draft when the user asks for changes."
)


async def generate_stage_description(
    gateway: AIGateway,
    message: str,
    history: Sequence[ChatMessage] = (),
) -> str:
    """One turn of the stage-description assistant; history is oldest first."""
    return await gateway.generate(
        message,
        history=history,
        system_instruction=f"{STAGE_DESCRIPTION_INSTRUCTION} Answer in {gateway.response_language}.",
        purpose="stage_description",
    )
