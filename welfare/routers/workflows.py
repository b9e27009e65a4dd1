from typing import List

from fastapi import APIRouter, Depends

from ..deps import get_registry
from ..schemas import (
    TransitionCheckRequest,
    TransitionCheckResponse,
    TransitionRead,
    WorkflowRead,
)
from ..workflow import TransitionDefinition, WorkflowRegistry

router = APIRouter()


def _transition_read(t: TransitionDefinition) -> TransitionRead:
    return TransitionRead(name=t.name, from_stage=t.from_stage, to_stage=t.to_stage, roles=list(t.roles))


def _workflow_read(registry: WorkflowRegistry, name: str) -> WorkflowRead:
    definition = registry.get_workflow(name)
    return WorkflowRead(
        name=definition.name,
        stages=list(definition.stages),
        initial_stage=definition.initial_stage,
        terminal_stages=[s for s in definition.stages if registry.is_terminal(name, s)],
        transitions=[_transition_read(t) for t in definition.transitions],
    )


@router.get("/workflows", response_model=List[WorkflowRead])
def list_workflows(registry: WorkflowRegistry = Depends(get_registry)):
    return [_workflow_read(registry, name) for name in registry.list_workflows()]


@router.get("/workflows/{name}", response_model=WorkflowRead)
def get_workflow(name: str, registry: WorkflowRegistry = Depends(get_registry)):
    return _workflow_read(registry, name)


@router.get("/workflows/{name}/stages", response_model=List[str])
def get_stages(name: str, registry: WorkflowRegistry = Depends(get_registry)):
    return list(registry.get_stages(name))


@router.get("/workflows/{name}/transitions/{transition}", response_model=TransitionRead)
def get_transition(name: str, transition: str, registry: WorkflowRegistry = Depends(get_registry)):
    return _transition_read(registry.get_transition(name, transition))


@router.post("/workflows/{name}/check", response_model=TransitionCheckResponse)
def check_transition(name: str, body: TransitionCheckRequest, registry: WorkflowRegistry = Depends(get_registry)):
    """Dry run: would ``transition`` be allowed from ``current_stage``?"""
    found = registry.get_transition(name, body.transition)
    return TransitionCheckResponse(
        workflow=name,
        transition=found.name,
        allowed=registry.can_transition(name, body.current_stage, body.transition),
        from_stage=found.from_stage,
        to_stage=found.to_stage,
    )
