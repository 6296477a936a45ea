import aws_cdk as core
import aws_cdk.assertions as assertions
import pytest

from app import create_app
from fundamentals_workshop.labs import LABS


def _stack_names(app):
    return sorted(child.stack_name for child in app.node.children if isinstance(child, core.Stack))


def test_synthesizes_every_lab_by_default():
    app = create_app()

    assert _stack_names(app) == sorted(lab.stack_name for lab in LABS.values())


def test_lab_context_selects_one_lab():
    app = create_app(context={"lab": "3"})

    assert _stack_names(app) == [LABS[3].stack_name]


def test_invalid_lab_exits_with_error(capsys):
    with pytest.raises(SystemExit) as excinfo:
        create_app(context={"lab": "9"})

    assert excinfo.value.code == 1
    assert "Lab '9' is not valid" in capsys.readouterr().out


def test_stacks_are_tagged_with_project_and_lab():
    app = create_app(context={"lab": "3"})
    stack = app.node.find_child(LABS[3].stack_name)
    template = assertions.Template.from_stack(stack)

    for tag in ({"Key": "lab", "Value": "3"}, {"Key": "project", "Value": "aws-fundamentals-workshop"}):
        template.has_resource_properties("AWS::EC2::VPC", {"Tags": assertions.Match.array_with([tag])})
