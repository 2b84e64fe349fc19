"""Stage approval workflow.

The auditor (project owner) drafts a stage and submits it; the counterpart
(the business owner viewing the project) approves or rejects it. The stage's
status doubles as the lock on its plan: only a draft may be reshaped.

    draft --(auditor)--> pending_approval
    pending_approval --(counterpart)--> approved
    pending_approval --(counterpart, comment)--> rejected
    rejected --(auditor)--> draft
    approved --(auditor, confirmed)--> completed

``completed`` is terminal.
"""

from dataclasses import dataclass
from enum import Enum

from models.week import WeekStatus


class Role(str, Enum):
    AUDITOR = "auditor"
    COUNTERPART = "counterpart"


class WorkflowError(Exception):
    """Base class for rejected transition requests."""


class TransitionNotAllowed(WorkflowError):
    def __init__(self, current: WeekStatus, target: WeekStatus, role: Role):
        self.current = current
        self.target = target
        self.role = role
        super().__init__(
            f"Transition {current.value} -> {target.value} is not allowed for {role.value}"
        )


class RejectionCommentRequired(WorkflowError):
    def __init__(self):
        super().__init__("A rejection comment is required")


class ConfirmationRequired(WorkflowError):
    def __init__(self, current: WeekStatus):
        self.current = current
        super().__init__(
            f"Changing a stage in status '{current.value}' requires confirmation"
        )


@dataclass(frozen=True)
class Rule:
    role: Role
    requires_comment: bool = False
    requires_confirmation: bool = False


TRANSITIONS: dict[tuple[WeekStatus, WeekStatus], Rule] = {
    (WeekStatus.DRAFT, WeekStatus.PENDING_APPROVAL): Rule(Role.AUDITOR),
    (WeekStatus.PENDING_APPROVAL, WeekStatus.APPROVED): Rule(Role.COUNTERPART),
    (WeekStatus.PENDING_APPROVAL, WeekStatus.REJECTED): Rule(
        Role.COUNTERPART, requires_comment=True
    ),
    (WeekStatus.REJECTED, WeekStatus.DRAFT): Rule(Role.AUDITOR),
    (WeekStatus.APPROVED, WeekStatus.COMPLETED): Rule(
        Role.AUDITOR, requires_confirmation=True
    ),
}

TERMINAL_STATES = frozenset({WeekStatus.COMPLETED})

# Statuses in which the auditor may append to the plan without reshaping it
ADD_ITEM_STATES = frozenset(
    {WeekStatus.DRAFT, WeekStatus.PENDING_APPROVAL, WeekStatus.APPROVED}
)
ADD_DAY_STATES = frozenset({WeekStatus.DRAFT, WeekStatus.APPROVED})


@dataclass(frozen=True)
class Transition:
    """Validated outcome of a transition request."""

    previous: WeekStatus
    status: WeekStatus
    rejection_comment: str | None


def check_transition(
    current: WeekStatus,
    target: WeekStatus,
    role: Role,
    *,
    rejection_comment: str | None = None,
    confirmed: bool = False,
) -> Transition:
    """
    Validate a transition request without side effects.

    Args:
        current: Stage status as stored
        target: Requested status
        role: Caller's role on the project
        rejection_comment: Reason, required when rejecting
        confirmed: Whether the caller acknowledged re-notifying the counterpart

    Returns:
        Transition with the new status and the rejection comment to store
        (None unless the target is rejected)

    Raises:
        TransitionNotAllowed: pair missing from the table or wrong role
        RejectionCommentRequired: rejecting without a non-blank reason
        ConfirmationRequired: leaving an approved stage without confirmation
    """
    rule = TRANSITIONS.get((current, target))
    if rule is None or rule.role != role:
        raise TransitionNotAllowed(current, target, role)

    comment = None
    if rule.requires_comment:
        comment = (rejection_comment or "").strip()
        if not comment:
            raise RejectionCommentRequired()

    if rule.requires_confirmation and not confirmed:
        raise ConfirmationRequired(current)

    return Transition(previous=current, status=target, rejection_comment=comment)


def available_transitions(status: WeekStatus, role: Role) -> list[WeekStatus]:
    """Targets the given role may request from ``status``."""
    return [
        target
        for (source, target), rule in TRANSITIONS.items()
        if source == status and rule.role == role
    ]


def can_edit_plan(status: WeekStatus, role: Role) -> bool:
    """Edit/delete items, delete days, edit or delete the stage itself."""
    return role == Role.AUDITOR and status == WeekStatus.DRAFT


def can_add_item(status: WeekStatus, role: Role) -> bool:
    return role == Role.AUDITOR and status in ADD_ITEM_STATES


def can_add_day(status: WeekStatus, role: Role) -> bool:
    return role == Role.AUDITOR and status in ADD_DAY_STATES


def can_generate_report(status: WeekStatus, role: Role) -> bool:
    return role == Role.AUDITOR and status == WeekStatus.COMPLETED
