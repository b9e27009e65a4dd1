"""Errors raised by the workflow stage registry."""
from typing import Optional


class WorkflowError(Exception):
    """Base class for registry lookup and transition failures."""

    code = "WORKFLOW_ERROR"

    def __init__(self, message: str, workflow: str, transition: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.workflow = workflow
        self.transition = transition
        self.stage = stage

    def to_detail(self) -> dict:
        detail = {"workflow": self.workflow}
        if self.transition is not None:
            detail["transition"] = self.transition
        if self.stage is not None:
            detail["stage"] = self.stage
        return detail


class UnknownWorkflow(WorkflowError):
    code = "UNKNOWN_WORKFLOW"

    def __init__(self, workflow: str):
        super().__init__(f"Unknown workflow: {workflow}", workflow)


class UnknownTransition(WorkflowError):
    code = "UNKNOWN_TRANSITION"

    def __init__(self, workflow: str, transition: str):
        super().__init__(
            f"Unknown transition '{transition}' for workflow '{workflow}'",
            workflow,
            transition=transition,
        )


class InvalidTransition(WorkflowError):
    """The transition exists but the record is not in its required source stage."""

    code = "INVALID_TRANSITION"

    def __init__(self, workflow: str, transition: str, stage: str, required: str):
        super().__init__(
            f"Transition '{transition}' requires stage '{required}', current stage is '{stage}'",
            workflow,
            transition=transition,
            stage=stage,
        )
        self.required = required

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["required_stage"] = self.required
        return detail


class WorkflowConfigError(ValueError):
    """A workflow definition failed load-time validation."""
