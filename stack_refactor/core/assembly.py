"""Local synthesized stacks read from a cloud assembly directory."""

import fnmatch
import json
from pathlib import Path
from typing import Any

import structlog
from pydantic import Field

from ..constants import ASSEMBLY_MANIFEST, STACK_ARTIFACT_TYPE
from ..models import Environment, Stack, StackSelectionStrategy
from ..models.base import RefactorModel
from .exceptions import ConfigurationError, TemplateError
from .template import parse_template

logger = structlog.get_logger()


class StackSelection(RefactorModel):
    """Which local stacks take part in the comparison."""

    strategy: StackSelectionStrategy = StackSelectionStrategy.ALL_STACKS
    patterns: list[str] = Field(default_factory=list)

    def matches(self, stack_name: str) -> bool:
        if self.strategy == StackSelectionStrategy.ALL_STACKS:
            return True
        if self.strategy == StackSelectionStrategy.NONE:
            return False
        return any(fnmatch.fnmatchcase(stack_name, pattern) for pattern in self.patterns)


class CloudAssembly:
    """The stacks a user intends to deploy, already resolved to templates."""

    def __init__(self, stacks: list[Stack]):
        self.stacks = stacks

    def select(self, selection: StackSelection) -> list[Stack]:
        """Stacks matched by the selection, in assembly order."""
        return [stack for stack in self.stacks if selection.matches(stack.name)]

    def named(self, names: list[str]) -> list[Stack]:
        wanted = set(names)
        return [stack for stack in self.stacks if stack.name in wanted]


def load_assembly(directory: Path | str) -> CloudAssembly:
    """Read stack artifacts from a cloud assembly manifest.

    Args:
        directory: Assembly output directory containing manifest.json

    Returns:
        CloudAssembly with one Stack per ``aws:cloudformation:stack`` artifact

    Raises:
        ConfigurationError: If the manifest is missing or an artifact has no usable environment
        TemplateError: If a referenced template cannot be read
    """
    directory = Path(directory)
    manifest_path = directory / ASSEMBLY_MANIFEST
    if not manifest_path.exists():
        raise ConfigurationError(f"No {ASSEMBLY_MANIFEST} found in {directory}")

    try:
        manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid assembly manifest {manifest_path}: {e}") from e

    stacks = []
    for artifact_id, artifact in (manifest.get("artifacts") or {}).items():
        if artifact.get("type") != STACK_ARTIFACT_TYPE:
            continue
        stacks.append(_load_stack_artifact(directory, artifact_id, artifact))

    logger.info("Loaded cloud assembly", directory=str(directory), stacks=len(stacks))
    return CloudAssembly(stacks)


def _load_stack_artifact(directory: Path, artifact_id: str, artifact: dict[str, Any]) -> Stack:
    properties = artifact.get("properties") or {}
    stack_name = properties.get("stackName") or artifact_id

    try:
        environment = Environment.from_string(artifact.get("environment", ""))
    except ValueError as e:
        raise ConfigurationError(f"Stack '{stack_name}': {e}") from e

    template_file = properties.get("templateFile")
    if not template_file:
        raise TemplateError(f"Stack '{stack_name}' has no templateFile")

    template_path = directory / template_file
    try:
        document = template_path.read_text(encoding="utf-8")
    except OSError as e:
        raise TemplateError(f"Cannot read template for '{stack_name}': {e}") from e

    return parse_template(stack_name, environment, document)
