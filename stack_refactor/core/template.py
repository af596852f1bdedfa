"""CloudFormation template parsing into resource models."""

import json
from typing import Any

import yaml

from ..constants import (
    CDK_PATH_METADATA,
    DELETION_POLICY,
    DEPENDS_ON,
    METADATA,
    PROPERTIES,
    RESOURCES,
    TYPE,
    UPDATE_REPLACE_POLICY,
)
from ..models import Environment, Resource, Stack
from .exceptions import TemplateError


def load_template_document(document: dict | str) -> dict[str, Any]:
    """Return a template as a dict, decoding JSON or YAML text when needed."""
    if isinstance(document, dict):
        return document

    try:
        return json.loads(document)
    except json.JSONDecodeError:
        pass

    try:
        data = yaml.safe_load(document)
    except yaml.YAMLError as e:
        raise TemplateError(f"Template is neither valid JSON nor YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise TemplateError("Template must be a mapping")
    return data


def parse_template(
    stack_name: str,
    environment: Environment,
    document: dict | str,
    stack_id: str | None = None,
) -> Stack:
    """Build a Stack from a template document.

    Args:
        stack_name: Name of the stack the template belongs to
        environment: Deployment target of the stack
        document: Template as a dict, or JSON/YAML text
        stack_id: Provider-assigned stack identifier, if known

    Returns:
        Stack with one Resource per entry in the template's Resources section

    Raises:
        TemplateError: If the Resources section or a resource definition is malformed
    """
    template = load_template_document(document)
    raw_resources = template.get(RESOURCES) or {}
    if not isinstance(raw_resources, dict):
        raise TemplateError(f"Stack '{stack_name}': '{RESOURCES}' must be a mapping")

    resources = {
        logical_id: _parse_resource(stack_name, logical_id, definition)
        for logical_id, definition in raw_resources.items()
    }
    return Stack(name=stack_name, environment=environment, resources=resources, stack_id=stack_id)


def _parse_resource(stack_name: str, logical_id: str, definition: Any) -> Resource:
    if not isinstance(definition, dict) or not definition.get(TYPE):
        raise TemplateError(f"Stack '{stack_name}': resource '{logical_id}' has no '{TYPE}'")

    properties = definition.get(PROPERTIES) or {}
    if not isinstance(properties, dict):
        raise TemplateError(
            f"Stack '{stack_name}': '{PROPERTIES}' of '{logical_id}' must be a mapping"
        )

    depends_on = definition.get(DEPENDS_ON) or []
    if isinstance(depends_on, str):
        depends_on = [depends_on]

    return Resource(
        logical_id=logical_id,
        type=definition[TYPE],
        path=_resource_path(stack_name, logical_id, definition.get(METADATA)),
        stack_name=stack_name,
        properties=properties,
        depends_on=list(depends_on),
        deletion_policy=definition.get(DELETION_POLICY),
        update_replace_policy=definition.get(UPDATE_REPLACE_POLICY),
    )


def _resource_path(stack_name: str, logical_id: str, metadata: Any) -> str:
    """Construct path from metadata, falling back to ``stack/logicalId``."""
    if isinstance(metadata, dict):
        path = metadata.get(CDK_PATH_METADATA)
        if isinstance(path, str) and path:
            return path
    return f"{stack_name}/{logical_id}"
