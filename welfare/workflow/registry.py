"""
Workflow Registry - read-only lookup and transition checks over workflow definitions.

The registry is built once (see ``get_registry``) and never mutated
afterwards, so lookups are safe from any number of concurrent requests.
"""
import logging
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Tuple

from .definitions import BUILTIN_WORKFLOWS, TransitionDefinition, WorkflowDefinition
from .errors import InvalidTransition, UnknownTransition, UnknownWorkflow, WorkflowConfigError

logger = logging.getLogger(__name__)


class WorkflowRegistry:
    """Immutable catalog of workflow definitions keyed by name."""

    def __init__(self, definitions: Iterable[WorkflowDefinition] = BUILTIN_WORKFLOWS):
        workflows = {}
        for definition in definitions:
            if definition.name in workflows:
                raise WorkflowConfigError(f"Workflow '{definition.name}' is defined twice")
            workflows[definition.name] = definition
        self._workflows: Mapping[str, WorkflowDefinition] = MappingProxyType(workflows)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def list_workflows(self) -> List[str]:
        return sorted(self._workflows)

    def get_workflow(self, workflow: str) -> WorkflowDefinition:
        try:
            return self._workflows[workflow]
        except KeyError:
            raise UnknownWorkflow(workflow) from None

    def get_stages(self, workflow: str) -> Tuple[str, ...]:
        """Ordered stage names of a workflow."""
        return self.get_workflow(workflow).stages

    def initial_stage(self, workflow: str) -> str:
        return self.get_workflow(workflow).initial_stage

    def get_transition(self, workflow: str, transition: str) -> TransitionDefinition:
        """
        Look up a named transition.

        Raises:
            UnknownWorkflow: workflow is not registered
            UnknownTransition: workflow has no transition with that name
        """
        found = self.get_workflow(workflow).find_transition(transition)
        if found is None:
            raise UnknownTransition(workflow, transition)
        return found

    def available_transitions(self, workflow: str, stage: str) -> Tuple[TransitionDefinition, ...]:
        return self.get_workflow(workflow).outgoing(stage)

    def is_terminal(self, workflow: str, stage: str) -> bool:
        """A declared stage with no outgoing transitions. Unknown stages are never terminal."""
        if stage not in self.get_stages(workflow):
            return False
        return not self.available_transitions(workflow, stage)

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def can_transition(self, workflow: str, current_stage: str, transition: str) -> bool:
        """True iff the transition's required source stage equals ``current_stage``."""
        return self.get_transition(workflow, transition).from_stage == current_stage

    def apply_transition(self, workflow: str, current_stage: str, transition: str) -> str:
        """
        Resolve the stage a record moves to.

        Only computes the new stage; persisting it is the caller's job.

        Raises:
            InvalidTransition: the record is not in the transition's source stage
        """
        found = self.get_transition(workflow, transition)
        if found.from_stage != current_stage:
            raise InvalidTransition(workflow, transition, current_stage, found.from_stage)
        return found.to_stage


# --------------------------------------------------------------------------------------
# Process-wide registry, created lazily on first use and never replaced.
# --------------------------------------------------------------------------------------
_registry: Optional[WorkflowRegistry] = None


def build_registry(workflows_file: Optional[str] = None) -> WorkflowRegistry:
    """Registry from a YAML definitions file, or the built-ins when no file is given."""
    if workflows_file:
        from .loader import load_definitions

        definitions = load_definitions(workflows_file)
        logger.info("Loaded %d workflow definitions from %s", len(definitions), workflows_file)
        return WorkflowRegistry(definitions)
    return WorkflowRegistry()


def get_registry() -> WorkflowRegistry:
    global _registry
    if _registry is None:
        from ..config import settings

        _registry = build_registry(settings.workflows_file)
    return _registry


def get_stages(workflow: str) -> Tuple[str, ...]:
    return get_registry().get_stages(workflow)


def get_transition(workflow: str, transition: str) -> TransitionDefinition:
    return get_registry().get_transition(workflow, transition)


def can_transition(workflow: str, current_stage: str, transition: str) -> bool:
    return get_registry().can_transition(workflow, current_stage, transition)


def apply_transition(workflow: str, current_stage: str, transition: str) -> str:
    return get_registry().apply_transition(workflow, current_stage, transition)
