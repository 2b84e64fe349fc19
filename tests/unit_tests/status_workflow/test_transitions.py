"""Unit tests for the stage approval workflow.

The transition table is checked exhaustively: every (status, target, role)
combination is either in the table or rejected.
"""

import itertools

import pytest

from models.week import WeekStatus
from services.status_workflow import (
    TRANSITIONS,
    ConfirmationRequired,
    RejectionCommentRequired,
    Role,
    TransitionNotAllowed,
    available_transitions,
    can_add_day,
    can_add_item,
    can_edit_plan,
    can_generate_report,
    check_transition,
)

ALLOWED = {
    (WeekStatus.DRAFT, WeekStatus.PENDING_APPROVAL, Role.AUDITOR),
    (WeekStatus.PENDING_APPROVAL, WeekStatus.APPROVED, Role.COUNTERPART),
    (WeekStatus.PENDING_APPROVAL, WeekStatus.REJECTED, Role.COUNTERPART),
    (WeekStatus.REJECTED, WeekStatus.DRAFT, Role.AUDITOR),
    (WeekStatus.APPROVED, WeekStatus.COMPLETED, Role.AUDITOR),
}


@pytest.mark.parametrize(
    "current,target,role",
    list(itertools.product(WeekStatus, WeekStatus, Role)),
)
def test_transition_table_is_exhaustive(current, target, role):
    """Test: Only the five listed transitions succeed, each for one role."""
    kwargs = {"rejection_comment": "Missing evidence", "confirmed": True}
    if (current, target, role) in ALLOWED:
        transition = check_transition(current, target, role, **kwargs)
        assert transition.previous == current
        assert transition.status == target
    else:
        with pytest.raises(TransitionNotAllowed):
            check_transition(current, target, role, **kwargs)


def test_completed_is_terminal():
    """Test: Nothing leaves completed."""
    for role in Role:
        assert available_transitions(WeekStatus.COMPLETED, role) == []


def test_reject_requires_comment():
    """Test: Rejecting without a non-blank comment fails."""
    with pytest.raises(RejectionCommentRequired):
        check_transition(WeekStatus.PENDING_APPROVAL, WeekStatus.REJECTED, Role.COUNTERPART)
    with pytest.raises(RejectionCommentRequired):
        check_transition(
            WeekStatus.PENDING_APPROVAL,
            WeekStatus.REJECTED,
            Role.COUNTERPART,
            rejection_comment="   ",
        )


def test_reject_keeps_trimmed_comment():
    transition = check_transition(
        WeekStatus.PENDING_APPROVAL,
        WeekStatus.REJECTED,
        Role.COUNTERPART,
        rejection_comment="  Add the bank statements  ",
    )
    assert transition.rejection_comment == "Add the bank statements"


def test_non_reject_transitions_clear_comment():
    """Test: Any transition other than a rejection stores no comment."""
    transition = check_transition(
        WeekStatus.REJECTED,
        WeekStatus.DRAFT,
        Role.AUDITOR,
        rejection_comment="stale reason",
    )
    assert transition.rejection_comment is None


def test_completing_requires_confirmation():
    with pytest.raises(ConfirmationRequired):
        check_transition(WeekStatus.APPROVED, WeekStatus.COMPLETED, Role.AUDITOR)
    transition = check_transition(
        WeekStatus.APPROVED, WeekStatus.COMPLETED, Role.AUDITOR, confirmed=True
    )
    assert transition.status == WeekStatus.COMPLETED


def test_wrong_role_checked_before_comment():
    """Test: An auditor rejecting fails on role, not on the missing comment."""
    with pytest.raises(TransitionNotAllowed):
        check_transition(WeekStatus.PENDING_APPROVAL, WeekStatus.REJECTED, Role.AUDITOR)


def test_available_transitions_per_role():
    assert available_transitions(WeekStatus.DRAFT, Role.AUDITOR) == [WeekStatus.PENDING_APPROVAL]
    assert available_transitions(WeekStatus.DRAFT, Role.COUNTERPART) == []
    assert set(available_transitions(WeekStatus.PENDING_APPROVAL, Role.COUNTERPART)) == {
        WeekStatus.APPROVED,
        WeekStatus.REJECTED,
    }
    assert available_transitions(WeekStatus.PENDING_APPROVAL, Role.AUDITOR) == []


def test_table_matches_expected_pairs():
    assert {(source, target, rule.role) for (source, target), rule in TRANSITIONS.items()} == ALLOWED


@pytest.mark.parametrize("week_status", list(WeekStatus))
def test_plan_permissions(week_status):
    """Test: Plan edits follow the status lock; the counterpart never edits."""
    assert can_edit_plan(week_status, Role.AUDITOR) == (week_status == WeekStatus.DRAFT)
    assert can_add_item(week_status, Role.AUDITOR) == (
        week_status in {WeekStatus.DRAFT, WeekStatus.PENDING_APPROVAL, WeekStatus.APPROVED}
    )
    assert can_add_day(week_status, Role.AUDITOR) == (
        week_status in {WeekStatus.DRAFT, WeekStatus.APPROVED}
    )
    assert can_generate_report(week_status, Role.AUDITOR) == (week_status == WeekStatus.COMPLETED)

    assert not can_edit_plan(week_status, Role.COUNTERPART)
    assert not can_add_item(week_status, Role.COUNTERPART)
    assert not can_add_day(week_status, Role.COUNTERPART)
    assert not can_generate_report(week_status, Role.COUNTERPART)
