"""Pure operations on a week's plan document.

Every mutation takes a plan and returns a new one; inputs are never modified.
Mutations report an explicit outcome so callers can tell a no-op (duplicate
day, unknown item) apart from an applied change.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterator

from models.plan import DayPlan, Plan, PlanItem, PlanStats, new_item_id


class Outcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class PlanMutation:
    plan: Plan
    outcome: Outcome
    item: PlanItem | None = None

    @property
    def applied(self) -> bool:
        return self.outcome == Outcome.APPLIED


def _copy(plan: Plan) -> Plan:
    return {day: DayPlan(tasks=list(day_plan.tasks)) for day, day_plan in plan.items()}


def date_range(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def seed_plan(start: date, end: date) -> Plan:
    """One empty day per calendar date in [start, end]."""
    return {day: DayPlan() for day in date_range(start, end)}


def merge_plan_for_range(plan: Plan, start: date, end: date) -> Plan:
    """Re-shape a plan to a new date range, keeping days that remain inside it."""
    return {
        day: DayPlan(tasks=list(plan[day].tasks)) if day in plan else DayPlan()
        for day in date_range(start, end)
    }


def dates_outside_range(plan: Plan, start: date, end: date) -> list[date]:
    return sorted(day for day in plan if day < start or day > end)


def add_day(plan: Plan, day: date) -> PlanMutation:
    if day in plan:
        return PlanMutation(plan, Outcome.DUPLICATE)
    new_plan = _copy(plan)
    new_plan[day] = DayPlan()
    return PlanMutation(new_plan, Outcome.APPLIED)


def delete_day(plan: Plan, day: date) -> PlanMutation:
    if day not in plan:
        return PlanMutation(plan, Outcome.NOT_FOUND)
    new_plan = _copy(plan)
    del new_plan[day]
    return PlanMutation(new_plan, Outcome.APPLIED)


def add_item(plan: Plan, day: date, item: PlanItem) -> PlanMutation:
    """Append an item to a day under a freshly generated id."""
    if day not in plan:
        return PlanMutation(plan, Outcome.NOT_FOUND)
    new_item = item.model_copy(update={"id": new_item_id()})
    new_plan = _copy(plan)
    new_plan[day].tasks.append(new_item)
    return PlanMutation(new_plan, Outcome.APPLIED, new_item)


def find_item(plan: Plan, item_id: str) -> tuple[date, PlanItem] | None:
    for day, day_plan in plan.items():
        for item in day_plan.tasks:
            if item.id == item_id:
                return day, item
    return None


def iter_items(plan: Plan) -> Iterator[PlanItem]:
    for day in sorted(plan):
        yield from plan[day].tasks


def _replace_item(plan: Plan, item_id: str, build) -> PlanMutation:
    for day, day_plan in plan.items():
        for index, existing in enumerate(day_plan.tasks):
            if existing.id == item_id:
                replacement = build(existing)
                new_plan = _copy(plan)
                new_plan[day].tasks[index] = replacement
                return PlanMutation(new_plan, Outcome.APPLIED, replacement)
    return PlanMutation(plan, Outcome.NOT_FOUND)


def edit_item(plan: Plan, item: PlanItem) -> PlanMutation:
    """Replace an item in place, keeping its id, position and event_count."""
    return _replace_item(
        plan,
        item.id,
        lambda existing: item.model_copy(update={"event_count": existing.event_count}),
    )


def delete_item(plan: Plan, item_id: str) -> PlanMutation:
    for day, day_plan in plan.items():
        if any(existing.id == item_id for existing in day_plan.tasks):
            new_plan = _copy(plan)
            new_plan[day] = DayPlan(
                tasks=[existing for existing in day_plan.tasks if existing.id != item_id]
            )
            return PlanMutation(new_plan, Outcome.APPLIED)
    return PlanMutation(plan, Outcome.NOT_FOUND)


def adjust_event_count(plan: Plan, item_id: str, delta: int) -> PlanMutation:
    return _replace_item(
        plan,
        item_id,
        lambda existing: existing.model_copy(
            update={"event_count": max(0, existing.event_count + delta)}
        ),
    )


def apply_event_counts(plan: Plan, counts: dict[str, int]) -> Plan:
    """Overwrite every item's event_count with the aggregated value (0 if absent)."""
    return {
        day: DayPlan(
            tasks=[
                item.model_copy(update={"event_count": counts.get(item.id, 0)})
                for item in day_plan.tasks
            ]
        )
        for day, day_plan in plan.items()
    }


def plan_stats(plan: Plan) -> PlanStats:
    """Items with at least one event count as done."""
    items = list(iter_items(plan))
    total = len(items)
    completed = sum(1 for item in items if item.event_count > 0)
    # half-up rounding
    progress = int(completed * 100 / total + 0.5) if total else 0
    return PlanStats(
        total=total,
        completed=completed,
        in_progress=total - completed,
        progress=progress,
    )
