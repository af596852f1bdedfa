"""Provider capability used to read what is currently deployed.

The planning core only needs two operations, so the provider is a narrow protocol.
`InMemoryStackProvider` serves fixtures; `CloudFormationStackProvider` talks to AWS.
Neither retries nor masks errors.
"""

import asyncio
from typing import Any, Protocol

import boto3
import structlog

from ..models import Environment, StackSummary
from .template import load_template_document

logger = structlog.get_logger()


class StackProvider(Protocol):
    """Read-only access to deployed stacks."""

    async def list_deployed_stacks(self, environment: Environment) -> list[StackSummary]: ...

    async def get_deployed_template(
        self, environment: Environment, stack_name: str
    ) -> dict[str, Any]: ...


class InMemoryStackProvider:
    """Provider backed by templates held in memory."""

    def __init__(self) -> None:
        self._stacks: dict[Environment, dict[str, tuple[StackSummary, dict[str, Any]]]] = {}

    def add_stack(
        self,
        environment: Environment,
        name: str,
        template: dict[str, Any] | str,
        status: str = "CREATE_COMPLETE",
    ) -> None:
        stack_id = (
            f"arn:aws:cloudformation:{environment.region}:{environment.account}:stack/{name}"
        )
        summary = StackSummary(name=name, id=stack_id, status=status)
        self._stacks.setdefault(environment, {})[name] = (
            summary,
            load_template_document(template),
        )

    async def list_deployed_stacks(self, environment: Environment) -> list[StackSummary]:
        return [summary for summary, _ in self._stacks.get(environment, {}).values()]

    async def get_deployed_template(
        self, environment: Environment, stack_name: str
    ) -> dict[str, Any]:
        try:
            return self._stacks[environment][stack_name][1]
        except KeyError:
            raise LookupError(f"Stack '{stack_name}' not found in {environment}") from None


class CloudFormationStackProvider:
    """Provider backed by the CloudFormation API through boto3.

    Clients are created per region from the given boto3 session. The account of an
    environment is assumed to be the session's account.
    """

    def __init__(self, session: Any | None = None):
        self.session = session or boto3.session.Session()
        self._clients: dict[str, Any] = {}
        self.logger = logger.bind(component="cloudformation_provider")

    def _client(self, region: str) -> Any:
        if region not in self._clients:
            self._clients[region] = self.session.client("cloudformation", region_name=region)
        return self._clients[region]

    async def list_deployed_stacks(self, environment: Environment) -> list[StackSummary]:
        client = self._client(environment.region)

        def _list() -> list[StackSummary]:
            summaries = []
            paginator = client.get_paginator("list_stacks")
            for page in paginator.paginate():
                for entry in page.get("StackSummaries", []):
                    summaries.append(
                        StackSummary(
                            name=entry["StackName"],
                            id=entry.get("StackId", ""),
                            status=entry.get("StackStatus", ""),
                        )
                    )
            return summaries

        summaries = await asyncio.to_thread(_list)
        self.logger.debug(
            "Listed deployed stacks", environment=environment.name, count=len(summaries)
        )
        return summaries

    async def get_deployed_template(
        self, environment: Environment, stack_name: str
    ) -> dict[str, Any]:
        client = self._client(environment.region)
        response = await asyncio.to_thread(
            client.get_template, StackName=stack_name, TemplateStage="Original"
        )
        # boto3 already decodes JSON bodies into dicts; YAML bodies arrive as text
        return load_template_document(response.get("TemplateBody") or {})
