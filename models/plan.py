"""Plan document schemas.

A week's plan is stored as a single JSON document shaped as::

    {"2024-01-01": {"tasks": [<plan item>, ...]}, ...}

Plan items are a tagged union keyed by ``type``; each variant carries its own
``data`` payload. Items persisted before ``type`` existed are read as tasks.
"""

from datetime import date
from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, Field, TypeAdapter, field_validator


class PlanItemType(str, Enum):
    TASK = "task"
    MEETING = "meeting"
    INTERVIEW = "interview"
    DOC_REVIEW = "doc_review"
    OBSERVATION = "observation"


def new_item_id() -> str:
    return str(uuid4())


# Type-specific payloads
class ChecklistEntry(BaseModel):
    id: str = Field(default_factory=new_item_id)
    text: str
    completed: bool = False


class TaskData(BaseModel):
    checklist: list[ChecklistEntry] = Field(default_factory=list)


class MeetingData(BaseModel):
    time: str | None = None
    location: str | None = None
    agenda: str | None = None
    participants: list[str] = Field(default_factory=list)
    summary: str | None = None
    decisions: str | None = None


class InterviewData(BaseModel):
    time: str | None = None
    interviewee: str | None = None


class DocumentRef(BaseModel):
    id: str = Field(default_factory=new_item_id)
    name: str


class DocReviewData(BaseModel):
    documents: list[DocumentRef] = Field(default_factory=list)
    findings: str | None = None


class ObservationData(BaseModel):
    process_observed: str | None = None
    strengths: str | None = None
    weaknesses: str | None = None
    recommendations: str | None = None


class PlanItemBase(BaseModel):
    """Fields shared by every plan item variant."""

    id: str = Field(default_factory=new_item_id)
    content: str
    completed: bool = False  # legacy flag, not used by the workflow
    event_count: int = Field(default=0, ge=0)

    @field_validator("data", mode="before", check_fields=False)
    @classmethod
    def empty_data(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("event_count", mode="before")
    @classmethod
    def missing_count(cls, value: Any) -> Any:
        return 0 if value is None else value


class TaskItem(PlanItemBase):
    type: Literal["task"] = "task"
    data: TaskData = Field(default_factory=TaskData)


class MeetingItem(PlanItemBase):
    type: Literal["meeting"] = "meeting"
    data: MeetingData = Field(default_factory=MeetingData)


class InterviewItem(PlanItemBase):
    type: Literal["interview"] = "interview"
    data: InterviewData = Field(default_factory=InterviewData)


class DocReviewItem(PlanItemBase):
    type: Literal["doc_review"] = "doc_review"
    data: DocReviewData = Field(default_factory=DocReviewData)


class ObservationItem(PlanItemBase):
    type: Literal["observation"] = "observation"
    data: ObservationData = Field(default_factory=ObservationData)


def _default_item_type(value: Any) -> Any:
    if isinstance(value, dict) and not value.get("type"):
        return {**value, "type": PlanItemType.TASK.value}
    return value


PlanItem = Annotated[
    Union[TaskItem, MeetingItem, InterviewItem, DocReviewItem, ObservationItem],
    Field(discriminator="type"),
]


class DayPlan(BaseModel):
    """Ordered work items for one calendar day."""

    tasks: list[PlanItem] = Field(default_factory=list)

    @field_validator("tasks", mode="before")
    @classmethod
    def legacy_tasks(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [_default_item_type(item) for item in value]
        return value


Plan = dict[date, DayPlan]

plan_adapter = TypeAdapter(Plan)
plan_item_adapter = TypeAdapter(PlanItem)


def load_plan(raw: dict | None) -> Plan:
    """Validate a stored/received plan document into typed form."""
    return plan_adapter.validate_python(raw or {})


def dump_plan(plan: Plan) -> dict:
    """Serialize a plan to its JSON document form with date keys sorted."""
    dumped = plan_adapter.dump_python(plan, mode="json")
    return {key: dumped[key] for key in sorted(dumped)}


def load_item(raw: dict) -> PlanItem:
    return plan_item_adapter.validate_python(_default_item_type(raw))


# Request schemas for item-level plan edits
class PlanItemInput(BaseModel):
    """Body for adding or editing a plan item.

    The id is never taken from the client on add; on edit it comes from the URL.
    """

    type: PlanItemType = PlanItemType.TASK
    content: str = Field(min_length=1)
    completed: bool = False
    data: dict[str, Any] = Field(default_factory=dict)
    expected_version: int | None = None

    @field_validator("content")
    @classmethod
    def strip_content(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("content must not be blank")
        return value

    def to_item(self, item_id: str | None = None, event_count: int = 0) -> PlanItem:
        return load_item(
            {
                "id": item_id or new_item_id(),
                "type": self.type.value,
                "content": self.content,
                "completed": self.completed,
                "event_count": event_count,
                "data": self.data,
            }
        )


class DayInput(BaseModel):
    date: date
    expected_version: int | None = None


class PlanReplace(BaseModel):
    """Whole-document plan replacement guarded by the stored row_version."""

    plan: dict[date, DayPlan]
    expected_version: int


class PlanStats(BaseModel):
    total: int
    completed: int
    in_progress: int
    progress: int  # percent, rounded
