# Workflow stage registry
from .definitions import (
    TransitionDefinition,
    WorkflowDefinition,
    GRIEVANCE,
    APPLICATION,
    BUILTIN_WORKFLOWS,
)
from .errors import (
    WorkflowError,
    UnknownWorkflow,
    UnknownTransition,
    InvalidTransition,
    WorkflowConfigError,
)
from .registry import (
    WorkflowRegistry,
    get_registry,
    get_stages,
    get_transition,
    can_transition,
    apply_transition,
)

__all__ = [
    "TransitionDefinition",
    "WorkflowDefinition",
    "GRIEVANCE",
    "APPLICATION",
    "BUILTIN_WORKFLOWS",
    "WorkflowError",
    "UnknownWorkflow",
    "UnknownTransition",
    "InvalidTransition",
    "WorkflowConfigError",
    "WorkflowRegistry",
    "get_registry",
    "get_stages",
    "get_transition",
    "can_transition",
    "apply_transition",
]
