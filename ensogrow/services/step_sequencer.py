"""Growth step numbering and remediation merging.

Steps are stored as plain dicts (``id``, ``title``, ``description``,
``estimatedTime``, ``isCompleted``) in growth order. Functions here never
mutate their inputs; callers assign the returned list back to the model so
the JSON column change is tracked.
"""
from typing import Any, Dict, List, Sequence, Tuple

from ensogrow.errors import NotFound
from ensogrow.services.growth_plan import ParsedStep

Step = Dict[str, Any]


def _step_dict(step: ParsedStep, step_id: int) -> Step:
    return {
        "id": step_id,
        "title": step.title,
        "description": step.description,
        "estimatedTime": step.estimated_time,
        "isCompleted": False,
    }


def number_steps(steps: Sequence[ParsedStep]) -> List[Step]:
    """Assign positional ids ``1..N`` to a freshly parsed step list."""
    return [_step_dict(step, index + 1) for index, step in enumerate(steps)]


def merge_remediation_steps(existing: Sequence[Step], new_steps: Sequence[ParsedStep]) -> Tuple[List[Step], List[Step]]:
    """
    Insert remediation steps after the user's current progress point.

    New steps go immediately after the last completed step, or at the head of
    the list when nothing is completed yet. They are numbered on from the
    highest existing id; ids of existing steps never change.

    Returns:
        Tuple of (merged step list, inserted steps)
    """
    merged = [dict(step) for step in existing]
    next_id = max((int(step["id"]) for step in merged), default=0) + 1
    inserted = [_step_dict(step, next_id + offset) for offset, step in enumerate(new_steps)]

    insert_at = 0
    for index, step in enumerate(merged):
        if step.get("isCompleted"):
            insert_at = index + 1

    merged[insert_at:insert_at] = inserted
    return merged, inserted


def complete_step(steps: Sequence[Step], step_id: int) -> Tuple[List[Step], Step]:
    """
    Mark one step completed.

    Completion is monotonic: an already completed step stays completed.

    Raises:
        NotFound: If no step has ``step_id``
    """
    updated = [dict(step) for step in steps]
    for step in updated:
        if int(step["id"]) == step_id:
            step["isCompleted"] = True
            return updated, step
    raise NotFound("Step not found")
