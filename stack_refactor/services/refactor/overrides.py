"""Override Resolver: applies user-forced pairings before automatic matching."""

import structlog

from ...core.digest import ResourceGraph
from ...core.exceptions import ConfigurationError
from ...models import Environment, Mapping, Override, Resource

# Resources still open for automatic matching, keyed by path
ResourcePool = dict[str, Resource]


def pool_of(graph: ResourceGraph) -> ResourcePool:
    return {resource.path: resource for resource in graph}


class OverrideResolver:
    """Pulls forced pairings out of the old and new pools."""

    def __init__(self):
        self.logger = structlog.get_logger().bind(component="override_resolver")

    def apply(
        self,
        environment: Environment,
        overrides: list[Override],
        old_graph: ResourceGraph,
        new_graph: ResourceGraph,
        old_pool: ResourcePool,
        new_pool: ResourcePool,
    ) -> tuple[list[Mapping], ResourcePool, ResourcePool]:
        """Apply the overrides scoped to one environment.

        Args:
            environment: Environment being compared; other overrides are skipped
            overrides: All user overrides of the run
            old_graph: Deployed resources, used to resolve override endpoints
            new_graph: Local resources, used to resolve override endpoints
            old_pool: Deployed resources open for matching
            new_pool: Local resources open for matching

        Returns:
            Tuple of (forced mappings, remaining old pool, remaining new pool)

        Raises:
            ConfigurationError: If an endpoint does not exist or was already paired
        """
        old_remaining = dict(old_pool)
        new_remaining = dict(new_pool)
        forced: list[Mapping] = []

        for override in overrides:
            if override.environment != environment:
                continue

            source = self._take(override.source, old_graph, old_remaining, "source")
            destination = self._take(override.destination, new_graph, new_remaining, "destination")
            if source.path == destination.path:
                raise ConfigurationError(
                    f"Override '{override.source}' -> '{override.destination}' "
                    "does not relocate the resource"
                )
            if source.type != destination.type:
                self.logger.warning(
                    "Override pairs resources of different types",
                    environment=environment.name,
                    source=source.path,
                    source_type=source.type,
                    destination=destination.path,
                    destination_type=destination.type,
                )

            forced.append(
                Mapping(source_path=source.path, destination_path=destination.path, type=source.type)
            )

        if forced:
            self.logger.info(
                "Applied overrides", environment=environment.name, forced_mappings=len(forced)
            )
        return forced, old_remaining, new_remaining

    @staticmethod
    def _take(endpoint: str, graph: ResourceGraph, pool: ResourcePool, side: str) -> Resource:
        resource = graph.find(endpoint)
        if resource is None:
            raise ConfigurationError(f"Override {side} '{endpoint}' does not exist")
        if resource.path not in pool:
            raise ConfigurationError(
                f"Override {side} '{endpoint}' is already paired by another override"
            )
        return pool.pop(resource.path)
