"""
Loads workflow definitions from a YAML file.

Expected layout::

    workflows:
      grievance:
        stages: [Draft, Submitted, UnderReview, Resolved]
        transitions:
          - {name: submit, from: Draft, to: Submitted}
          - {name: review, from: Submitted, to: UnderReview, roles: [admin]}

``transitions`` may also be a mapping of name -> {from, to, roles}.
"""
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

import yaml

from .definitions import TransitionDefinition, WorkflowDefinition
from .errors import WorkflowConfigError


def _names(value: Any, what: str) -> Tuple[str, ...]:
    """A YAML list of plain names; a bare scalar is a config error, not a list of characters."""
    if value is None:
        return ()
    if not isinstance(value, list) or any(isinstance(v, (dict, list)) for v in value):
        raise WorkflowConfigError(f"{what} must be a list of names, got {value!r}")
    return tuple(str(v) for v in value)


def _parse_transition(workflow: str, name: str, raw: Any) -> TransitionDefinition:
    if not isinstance(raw, dict):
        raise WorkflowConfigError(f"Transition '{name}' of workflow '{workflow}' must be a mapping")
    try:
        from_stage = raw["from"]
        to_stage = raw["to"]
    except KeyError as exc:
        raise WorkflowConfigError(
            f"Transition '{name}' of workflow '{workflow}' is missing '{exc.args[0]}'"
        ) from None
    roles = _names(raw.get("roles"), f"Roles of transition '{name}' in workflow '{workflow}'")
    return TransitionDefinition(name=str(name), from_stage=str(from_stage), to_stage=str(to_stage), roles=roles)


def parse_definitions(data: Dict[str, Any]) -> List[WorkflowDefinition]:
    """Build validated definitions from an already-parsed document."""
    if not isinstance(data, dict) or not isinstance(data.get("workflows"), dict):
        raise WorkflowConfigError("Definitions document must have a 'workflows' mapping")

    definitions = []
    for name, body in data["workflows"].items():
        if not isinstance(body, dict):
            raise WorkflowConfigError(f"Workflow '{name}' must be a mapping")

        raw_transitions = body.get("transitions") or []
        if isinstance(raw_transitions, dict):
            transitions = [_parse_transition(name, t_name, t) for t_name, t in raw_transitions.items()]
        else:
            transitions = [
                _parse_transition(name, (t or {}).get("name", "") if isinstance(t, dict) else "", t)
                for t in raw_transitions
            ]

        definitions.append(
            WorkflowDefinition(
                name=str(name),
                stages=_names(body.get("stages"), f"Stages of workflow '{name}'"),
                transitions=tuple(transitions),
            )
        )
    return definitions


def load_definitions(path: Union[str, Path]) -> List[WorkflowDefinition]:
    text = Path(path).read_text(encoding="utf-8")
    return parse_definitions(yaml.safe_load(text) or {})
