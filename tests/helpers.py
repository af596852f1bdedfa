"""Template builders and fakes shared by the tests."""

from typing import Any

from stack_refactor.core.digest import ResourceGraph
from stack_refactor.core.template import parse_template
from stack_refactor.models import Environment, RefactorEvent, Stack

ACCOUNT = "123456789012"
ENV1 = Environment(account=ACCOUNT, region="us-east-1")
ENV2 = Environment(account=ACCOUNT, region="us-east-2")

BUCKET = "AWS::S3::Bucket"
QUEUE = "AWS::SQS::Queue"


def resource(
    type_: str,
    path: str | None = None,
    properties: dict[str, Any] | None = None,
    retain: bool = True,
    depends_on: list[str] | str | None = None,
) -> dict[str, Any]:
    """Build one template resource definition."""
    definition: dict[str, Any] = {"Type": type_}
    if properties is not None:
        definition["Properties"] = properties
    policy = "Retain" if retain else "Delete"
    definition["UpdateReplacePolicy"] = policy
    definition["DeletionPolicy"] = policy
    if depends_on is not None:
        definition["DependsOn"] = depends_on
    if path is not None:
        definition["Metadata"] = {"aws:cdk:path": path}
    return definition


def template(**resources: dict[str, Any]) -> dict[str, Any]:
    return {"Resources": resources}


def stack(name: str, resources: dict[str, Any], environment: Environment = ENV1) -> Stack:
    return parse_template(name, environment, template(**resources))


def graph(*stacks: Stack) -> ResourceGraph:
    return ResourceGraph(stacks)


class RecordingIoHost:
    """IoHost that keeps every event for assertions."""

    def __init__(self):
        self.events: list[RefactorEvent] = []

    async def notify(self, event: RefactorEvent) -> None:
        self.events.append(event)

    @property
    def results(self) -> list[RefactorEvent]:
        return [e for e in self.events if e.level != "info"]
