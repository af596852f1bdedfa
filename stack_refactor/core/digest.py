"""Structural resource digests.

A digest fingerprints a resource by its type and canonicalized properties. The
resource's own path and location metadata never take part, so a renamed resource keeps
its digest. References to other resources in the same template are replaced by the
referenced resource's digest instead of its logical id, which makes the computation
mutually recursive over the reference graph. It is resolved by fixed-point refinement:
every resource starts from a base digest with all references unresolved, then each pass
recomputes all digests from the previous pass's values until nothing changes.
"""

import hashlib
import json
import re
from collections.abc import Iterable, Iterator
from functools import cached_property
from typing import Any

import structlog

from ..constants import DEPENDS_ON, GET_ATT, PROPERTIES, REF, SUB, TYPE
from ..models import Resource, Stack
from .exceptions import CyclicReferenceError, TemplateError

logger = structlog.get_logger()

UNRESOLVED = "<unresolved>"
SELF = "<self>"

# ${Name} or ${Name.Attribute}; ${!Literal} is an escape and stays as written
_SUB_VARIABLE = re.compile(r"\$\{(?!!)([^}.]+)(\.[^}]+)?\}")


class ResourceGraph:
    """Arena of resources from one side of an environment, indexed by path."""

    def __init__(self, stacks: Iterable[Stack]):
        self._resources: dict[str, Resource] = {}
        self._by_location: dict[tuple[str, str], str] = {}

        for stack in stacks:
            for logical_id, resource in stack.resources.items():
                if resource.path in self._resources:
                    raise TemplateError(f"Duplicate resource path '{resource.path}'")
                self._resources[resource.path] = resource
                self._by_location[(stack.name, logical_id)] = resource.path

    def __len__(self) -> int:
        return len(self._resources)

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._resources.values())

    def __contains__(self, path: object) -> bool:
        return path in self._resources

    def __getitem__(self, path: str) -> Resource:
        return self._resources[path]

    @property
    def paths(self) -> list[str]:
        return sorted(self._resources)

    def resolve(self, stack_name: str, logical_id: str) -> str | None:
        """Path of the resource a logical id refers to within its own stack."""
        return self._by_location.get((stack_name, logical_id))

    def find(self, endpoint: str) -> Resource | None:
        """Look up a resource by path or by ``StackName.LogicalId`` location."""
        if endpoint in self._resources:
            return self._resources[endpoint]
        stack_name, sep, logical_id = endpoint.partition(".")
        if sep:
            path = self.resolve(stack_name, logical_id)
            if path is not None:
                return self._resources[path]
        return None

    @cached_property
    def digests(self) -> dict[str, str]:
        return compute_digests(self)


def digest(resource: Resource, graph: ResourceGraph) -> str:
    """Converged digest of a resource within its graph."""
    return graph.digests[resource.path]


def compute_digests(graph: ResourceGraph) -> dict[str, str]:
    """Compute converged digests for every resource in the graph.

    Raises:
        CyclicReferenceError: If digests still change after len(graph) + 1 passes
    """
    paths = graph.paths
    digests = {path: _hash(_canonical_resource(graph[path], graph, None)) for path in paths}

    changed: list[str] = []
    for iteration in range(len(paths) + 1):
        refined = {
            path: _hash(_canonical_resource(graph[path], graph, digests)) for path in paths
        }
        changed = [path for path in paths if refined[path] != digests[path]]
        if not changed:
            logger.debug("Digests converged", resources=len(paths), passes=iteration + 1)
            return refined
        digests = refined

    raise CyclicReferenceError(changed)


def _hash(value: Any) -> str:
    payload = json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _canonical_resource(
    resource: Resource, graph: ResourceGraph, digests: dict[str, str] | None
) -> dict[str, Any]:
    canonicalizer = _Canonicalizer(resource, graph, digests)
    return {
        TYPE: resource.type,
        PROPERTIES: canonicalizer.canonical(resource.properties),
        DEPENDS_ON: sorted(canonicalizer.reference(target) for target in resource.depends_on),
    }


class _Canonicalizer:
    """Rewrites one resource's properties into their comparable form."""

    def __init__(self, resource: Resource, graph: ResourceGraph, digests: dict[str, str] | None):
        self.resource = resource
        self.graph = graph
        self.digests = digests

    def reference(self, logical_id: str) -> str:
        """Token for a reference to a logical id, or the id itself if it is not a resource."""
        target = self.graph.resolve(self.resource.stack_name, logical_id)
        if target is None:
            return logical_id
        if target == self.resource.path:
            return SELF
        if self.digests is None:
            return UNRESOLVED
        return self.digests[target]

    def canonical(self, value: Any) -> Any:
        if isinstance(value, dict):
            if len(value) == 1:
                key, arg = next(iter(value.items()))
                if key == REF and isinstance(arg, str):
                    return {REF: self.reference(arg)}
                if key == GET_ATT:
                    return {GET_ATT: self._get_att(arg)}
                if key == SUB:
                    return {SUB: self._sub(arg)}
            return {key: self.canonical(item) for key, item in sorted(value.items())}
        if isinstance(value, list):
            return [self.canonical(item) for item in value]
        if isinstance(value, str) and value == self.resource.path:
            return SELF
        return value

    def _get_att(self, arg: Any) -> Any:
        if isinstance(arg, str) and "." in arg:
            logical_id, _, attribute = arg.partition(".")
            return [self.reference(logical_id), attribute]
        if isinstance(arg, list) and arg and isinstance(arg[0], str):
            return [self.reference(arg[0])] + [self.canonical(item) for item in arg[1:]]
        return self.canonical(arg)

    def _sub(self, arg: Any) -> Any:
        if isinstance(arg, str):
            return self._sub_string(arg, set())
        if isinstance(arg, list) and len(arg) == 2 and isinstance(arg[0], str):
            variables = arg[1] if isinstance(arg[1], dict) else {}
            return [self._sub_string(arg[0], set(variables)), self.canonical(arg[1])]
        return self.canonical(arg)

    def _sub_string(self, text: str, local_names: set[str]) -> str:
        def replace(match: re.Match) -> str:
            name, attribute = match.group(1), match.group(2) or ""
            if name in local_names:
                return match.group(0)
            token = self.reference(name)
            if token == name:
                return match.group(0)
            return "${" + token + attribute + "}"

        return _SUB_VARIABLE.sub(replace, text)
