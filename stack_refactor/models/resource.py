"""Resource, stack and environment data models."""

from typing import Any

from pydantic import Field

from ..constants import (
    ENVIRONMENT_SCHEME,
    RETAIN_DELETION_POLICIES,
    RETAIN_REPLACE_POLICIES,
)
from .base import RefactorModel


class Environment(RefactorModel):
    """A deployment target: one account in one region."""

    account: str
    region: str

    @property
    def name(self) -> str:
        return f"{ENVIRONMENT_SCHEME}{self.account}/{self.region}"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """Parse an ``aws://account/region`` string."""
        rest = value[len(ENVIRONMENT_SCHEME):] if value.startswith(ENVIRONMENT_SCHEME) else value
        account, sep, region = rest.partition("/")
        if not sep or not account or not region or "/" in region:
            raise ValueError(f"Invalid environment '{value}', expected aws://<account>/<region>")
        return cls(account=account, region=region)

    def __str__(self) -> str:
        return self.name


class Resource(RefactorModel):
    """One resource instance materialized from a template snapshot."""

    logical_id: str
    type: str
    path: str
    stack_name: str
    properties: dict[str, Any] = Field(default_factory=dict)
    depends_on: list[str] = Field(default_factory=list)
    deletion_policy: str | None = None
    update_replace_policy: str | None = None

    @property
    def location(self) -> str:
        """Stack-qualified logical id, e.g. ``Stack1.MyBucket1553EAA46``."""
        return f"{self.stack_name}.{self.logical_id}"

    @property
    def is_protected(self) -> bool:
        """Whether leaving the template would keep the physical resource."""
        return (
            self.deletion_policy in RETAIN_DELETION_POLICIES
            and self.update_replace_policy in RETAIN_REPLACE_POLICIES
        )


class Stack(RefactorModel):
    """A named collection of resources deployed to one environment."""

    name: str
    environment: Environment
    resources: dict[str, Resource] = Field(default_factory=dict)
    stack_id: str | None = None


class StackSummary(RefactorModel):
    """Deployed stack as listed by the provider."""

    name: str
    id: str
    status: str
