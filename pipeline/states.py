from __future__ import annotations

from dataclasses import dataclass, field

from db.models import ASSET_STATUSES, ASSIGNMENT_STATUSES, JOB_STATUSES, PROJECT_STATUSES
from pipeline.errors import InvalidTransition, ValidationError


@dataclass(frozen=True)
class StateMachine:
    entity: str
    states: tuple[str, ...]
    transitions: dict[str, frozenset[str]] = field(default_factory=dict)
    unrestricted: bool = False

    def check(self, current: str, target: str) -> bool:
        """Validate a transition; returns False when it is a no-op."""
        if target not in self.states:
            raise ValidationError(f"unknown {self.entity} status: {target}")
        if current == target:
            return False
        if self.unrestricted:
            return True
        if target not in self.transitions.get(current, frozenset()):
            raise InvalidTransition(self.entity, current, target)
        return True


# Any enum value is accepted; callers pick the stage.
PROJECT_MACHINE = StateMachine("project", PROJECT_STATUSES, unrestricted=True)

ASSET_MACHINE = StateMachine(
    "asset",
    ASSET_STATUSES,
    {
        "pending": frozenset({"generating", "approved", "rejected"}),
        "generating": frozenset({"pending", "completed", "approved", "rejected"}),
        "completed": frozenset({"approved", "rejected"}),
        "approved": frozenset({"rejected"}),
        "rejected": frozenset(),
    },
)

JOB_MACHINE = StateMachine(
    "job",
    JOB_STATUSES,
    {
        "pending": frozenset({"in_progress", "failed"}),
        "in_progress": frozenset({"completed", "failed"}),
        "failed": frozenset({"pending"}),
        "completed": frozenset(),
    },
)

ASSIGNMENT_MACHINE = StateMachine(
    "assignment",
    ASSIGNMENT_STATUSES,
    {
        "pending": frozenset({"published", "archived"}),
        "published": frozenset({"archived"}),
        "archived": frozenset(),
    },
)
