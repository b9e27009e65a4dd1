# tests/test_workflow_definitions.py
import pytest

from welfare.workflow import TransitionDefinition, WorkflowConfigError, WorkflowDefinition, WorkflowRegistry
from welfare.workflow.definitions import reachable_stages
from welfare.workflow.loader import load_definitions, parse_definitions
from welfare.workflow.registry import build_registry


def test_definition_accepts_lists_and_stores_tuples():
    d = WorkflowDefinition("leave", ["Draft", "Done"], [TransitionDefinition("finish", "Draft", "Done")])
    assert d.stages == ("Draft", "Done")
    assert isinstance(d.transitions, tuple)
    assert d.initial_stage == "Draft"
    assert d.to_dict()["transitions"][0] == {"name": "finish", "from": "Draft", "to": "Done", "roles": []}


@pytest.mark.parametrize(
    "stages, transitions, message",
    [
        ((), (), "declares no stages"),
        (("A", "A"), (), "repeats stages"),
        (("A", ""), (), "empty stage name"),
        (("A", "B"), (TransitionDefinition("go", "A", "C"),), "unknown stage 'C'"),
        (("A", "B"), (TransitionDefinition("go", "A", "B"), TransitionDefinition("go", "B", "A")), "repeats transitions"),
        (("A", "B", "C"), (TransitionDefinition("go", "B", "C"),), "unreachable stage 'B'"),
    ],
)
def test_invalid_definitions_are_rejected(stages, transitions, message):
    with pytest.raises(WorkflowConfigError, match=message):
        WorkflowDefinition("broken", stages, transitions)


def test_reachable_stages():
    d = WorkflowDefinition(
        "w",
        ("A", "B", "C", "Orphan"),
        (TransitionDefinition("ab", "A", "B"), TransitionDefinition("bc", "B", "C")),
    )
    assert reachable_stages(d) == {"A", "B", "C"}


def test_registry_rejects_duplicate_workflow_names():
    d = WorkflowDefinition("w", ("A",))
    with pytest.raises(WorkflowConfigError, match="defined twice"):
        WorkflowRegistry([d, d])


YAML_DEFS = """
workflows:
  grievance:
    stages: [Draft, Submitted, UnderReview, Resolved, Rejected]
    transitions:
      - {name: submit, from: Draft, to: Submitted}
      - {name: review, from: Submitted, to: UnderReview, roles: [admin]}
      - {name: resolve, from: UnderReview, to: Resolved, roles: [admin]}
      - {name: reject, from: UnderReview, to: Rejected, roles: [admin]}
  leave:
    stages: [Requested, Granted]
    transitions:
      grant: {from: Requested, to: Granted}
"""


def test_load_definitions_from_yaml(tmp_path):
    path = tmp_path / "workflows.yaml"
    path.write_text(YAML_DEFS, encoding="utf-8")

    registry = build_registry(str(path))
    assert registry.list_workflows() == ["grievance", "leave"]
    assert registry.apply_transition("grievance", "UnderReview", "reject") == "Rejected"
    assert registry.get_transition("grievance", "reject").roles == ("admin",)
    assert registry.apply_transition("leave", "Requested", "grant") == "Granted"
    assert [d.name for d in load_definitions(path)] == ["grievance", "leave"]


def test_yaml_transition_missing_target():
    with pytest.raises(WorkflowConfigError, match="missing 'to'"):
        parse_definitions({"workflows": {"w": {"stages": ["A"], "transitions": [{"name": "x", "from": "A"}]}}})


def test_yaml_without_workflows_mapping():
    with pytest.raises(WorkflowConfigError, match="'workflows' mapping"):
        parse_definitions({"stages": []})


def test_build_registry_without_file_uses_builtins():
    assert build_registry(None).list_workflows() == ["application", "grievance"]


def test_yaml_scalar_roles_are_rejected():
    doc = {"workflows": {"w": {"stages": ["A", "B"], "transitions": [{"name": "go", "from": "A", "to": "B", "roles": "admin"}]}}}
    with pytest.raises(WorkflowConfigError, match="Roles of transition 'go' in workflow 'w' must be a list"):
        parse_definitions(doc)


def test_yaml_scalar_stages_are_rejected():
    with pytest.raises(WorkflowConfigError, match="Stages of workflow 'w' must be a list"):
        parse_definitions({"workflows": {"w": {"stages": "Draft", "transitions": []}}})


def test_yaml_single_role_list_is_kept_whole(tmp_path):
    path = tmp_path / "workflows.yaml"
    path.write_text(
        "workflows:\n"
        "  w:\n"
        "    stages: [A, B]\n"
        "    transitions:\n"
        "      - name: go\n"
        "        from: A\n"
        "        to: B\n"
        "        roles:\n"
        "          - admin\n",
        encoding="utf-8",
    )
    assert load_definitions(path)[0].transitions[0].roles == ("admin",)
