"""
Workflow Definitions - declarative stage models for welfare records.

Each workflow lists its stages in order of intended progression and a set of
named transitions. A transition moves a record from one specific stage to
another; records never jump between stages any other way.

Definitions are validated when constructed, so a broken definition fails at
start-up instead of at the first request that touches it.
"""
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

from .errors import WorkflowConfigError


@dataclass(frozen=True)
class TransitionDefinition:
    """
    A named move between two stages.

    Attributes:
        name: Transition name, unique within its workflow (e.g. "resolve")
        from_stage: Stage the record must be in
        to_stage: Stage the record ends up in
        roles: User roles allowed to fire it; empty means anyone with access to the record
    """
    name: str
    from_stage: str
    to_stage: str
    roles: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "from": self.from_stage,
            "to": self.to_stage,
            "roles": list(self.roles),
        }


@dataclass(frozen=True)
class WorkflowDefinition:
    """
    Complete workflow definition.

    Attributes:
        name: Unique workflow identifier ("grievance", "application")
        stages: Ordered stage names; the first one is the initial stage
        transitions: Named transitions between those stages
    """
    name: str
    stages: Tuple[str, ...]
    transitions: Tuple[TransitionDefinition, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # accept lists from callers and loaders, store tuples
        object.__setattr__(self, "stages", tuple(self.stages))
        object.__setattr__(self, "transitions", tuple(self.transitions))
        validate_definition(self)

    @property
    def initial_stage(self) -> str:
        return self.stages[0]

    def find_transition(self, name: str) -> Optional[TransitionDefinition]:
        for transition in self.transitions:
            if transition.name == name:
                return transition
        return None

    def outgoing(self, stage: str) -> Tuple[TransitionDefinition, ...]:
        return tuple(t for t in self.transitions if t.from_stage == stage)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "stages": list(self.stages),
            "initial_stage": self.initial_stage,
            "transitions": [t.to_dict() for t in self.transitions],
        }


def _duplicates(names: Iterable[str]) -> list:
    seen, dupes = set(), []
    for name in names:
        if name in seen and name not in dupes:
            dupes.append(name)
        seen.add(name)
    return dupes


def reachable_stages(definition: WorkflowDefinition) -> set:
    """Stages reachable from the initial stage by following transitions."""
    edges: Dict[str, list] = {}
    for t in definition.transitions:
        edges.setdefault(t.from_stage, []).append(t.to_stage)

    seen = {definition.initial_stage}
    queue = deque([definition.initial_stage])
    while queue:
        stage = queue.popleft()
        for nxt in edges.get(stage, []):
            if nxt not in seen:
                seen.add(nxt)
                queue.append(nxt)
    return seen


def validate_definition(definition: WorkflowDefinition) -> None:
    """
    Check a definition against the closed set of its own stages.

    Raises:
        WorkflowConfigError: on the first problem found
    """
    name = definition.name
    if not name:
        raise WorkflowConfigError("Workflow name must not be empty")
    if not definition.stages:
        raise WorkflowConfigError(f"Workflow '{name}' declares no stages")
    if any(not stage for stage in definition.stages):
        raise WorkflowConfigError(f"Workflow '{name}' has an empty stage name")

    dupes = _duplicates(definition.stages)
    if dupes:
        raise WorkflowConfigError(f"Workflow '{name}' repeats stages: {', '.join(dupes)}")

    dupes = _duplicates(t.name for t in definition.transitions)
    if dupes:
        raise WorkflowConfigError(f"Workflow '{name}' repeats transitions: {', '.join(dupes)}")

    stages = set(definition.stages)
    for t in definition.transitions:
        if not t.name:
            raise WorkflowConfigError(f"Workflow '{name}' has a transition without a name")
        for stage in (t.from_stage, t.to_stage):
            if stage not in stages:
                raise WorkflowConfigError(
                    f"Transition '{t.name}' of workflow '{name}' references unknown stage '{stage}'"
                )

    reachable = reachable_stages(definition)
    for t in definition.transitions:
        if t.from_stage not in reachable:
            raise WorkflowConfigError(
                f"Transition '{t.name}' of workflow '{name}' starts from unreachable stage '{t.from_stage}'"
            )


# =============================================================================
# BUILT-IN WORKFLOWS
# =============================================================================
# Both processes are forward-only: there is no reject/close path yet.
# Review, processing, resolution and approval are admin actions.
# =============================================================================

ADMIN_ONLY = ("admin",)

GRIEVANCE = WorkflowDefinition(
    name="grievance",
    stages=("Draft", "Submitted", "UnderReview", "Resolved"),
    transitions=(
        TransitionDefinition("submit", "Draft", "Submitted"),
        TransitionDefinition("review", "Submitted", "UnderReview", roles=ADMIN_ONLY),
        TransitionDefinition("resolve", "UnderReview", "Resolved", roles=ADMIN_ONLY),
    ),
)

APPLICATION = WorkflowDefinition(
    name="application",
    stages=("Draft", "Submitted", "Processing", "Approved"),
    transitions=(
        TransitionDefinition("submit", "Draft", "Submitted"),
        TransitionDefinition("process", "Submitted", "Processing", roles=ADMIN_ONLY),
        TransitionDefinition("approve", "Processing", "Approved", roles=ADMIN_ONLY),
    ),
)

BUILTIN_WORKFLOWS: Tuple[WorkflowDefinition, ...] = (GRIEVANCE, APPLICATION)
