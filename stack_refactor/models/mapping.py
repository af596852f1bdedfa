"""Mapping, ambiguity, override and report models."""

from pydantic import Field

from .base import RefactorModel
from .enums import RefactorState
from .resource import Environment


class Mapping(RefactorModel):
    """Assertion that the resource at source_path now lives at destination_path."""

    source_path: str
    destination_path: str
    type: str


class AmbiguousGroup(RefactorModel):
    """Paths sharing one digest that cannot be paired one-to-one."""

    source_paths: list[str]
    destination_paths: list[str]

    def as_pair(self) -> list[list[str]]:
        return [list(self.source_paths), list(self.destination_paths)]


class Override(RefactorModel):
    """User-asserted pairing that bypasses automatic matching.

    Endpoints are resource paths (``Stack1/CatPhotos/Resource``) or stack-qualified
    logical ids (``Stack1.CatPhotos``).
    """

    account: str
    region: str
    source: str
    destination: str

    @property
    def environment(self) -> Environment:
        return Environment(account=self.account, region=self.region)


class EnvironmentReport(RefactorModel):
    """Terminal outcome of one environment's comparison."""

    environment: Environment
    state: RefactorState
    mappings: list[Mapping] = Field(default_factory=list)
    ambiguous_groups: list[AmbiguousGroup] = Field(default_factory=list)
    unprotected_paths: list[str] = Field(default_factory=list)
    error: str | None = None
