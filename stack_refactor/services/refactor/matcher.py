"""Graph Matcher: pairs old and new resources by converged digest."""

from collections import defaultdict
from dataclasses import dataclass, field

import structlog

from ...models import AmbiguousGroup, Mapping, Resource
from .overrides import ResourcePool


@dataclass
class MatchResult:
    """Outcome of automatic matching for one environment."""

    mappings: list[Mapping] = field(default_factory=list)
    ambiguous_groups: list[AmbiguousGroup] = field(default_factory=list)
    unmatched_old: list[str] = field(default_factory=list)
    unmatched_new: list[str] = field(default_factory=list)


class GraphMatcher:
    """Matches resources whose digests are equal.

    There is no tie-break heuristic: when a digest is shared by more than one resource
    on either side, the paths are reported as ambiguous and only an override can pair them.
    """

    def __init__(self):
        self.logger = structlog.get_logger().bind(component="graph_matcher")

    def match(
        self,
        old_pool: ResourcePool,
        new_pool: ResourcePool,
        old_digests: dict[str, str],
        new_digests: dict[str, str],
    ) -> MatchResult:
        """Match the remaining pools.

        Args:
            old_pool: Deployed resources not claimed by an override
            new_pool: Local resources not claimed by an override
            old_digests: Converged digests of the deployed side, by path
            new_digests: Converged digests of the local side, by path

        Returns:
            MatchResult with confident mappings, ambiguous groups and unmatched paths
        """
        old_by_digest = self._by_digest(old_pool, old_digests)
        new_by_digest = self._by_digest(new_pool, new_digests)
        result = MatchResult()

        for value in sorted(old_by_digest.keys() | new_by_digest.keys()):
            old_paths = {r.path for r in old_by_digest.get(value, [])}
            new_paths = {r.path for r in new_by_digest.get(value, [])}

            # Nothing moved within this digest; a partial overlap is still ambiguous
            if old_paths == new_paths:
                continue
            sources = sorted(old_paths)
            destinations = sorted(new_paths)

            if not destinations:
                result.unmatched_old.extend(sources)
            elif not sources:
                result.unmatched_new.extend(destinations)
            elif len(sources) == 1 and len(destinations) == 1:
                result.mappings.append(
                    Mapping(
                        source_path=sources[0],
                        destination_path=destinations[0],
                        type=old_pool[sources[0]].type,
                    )
                )
            else:
                result.ambiguous_groups.append(
                    AmbiguousGroup(source_paths=sources, destination_paths=destinations)
                )

        result.mappings.sort(key=lambda m: m.source_path)
        result.ambiguous_groups.sort(key=lambda g: (g.source_paths, g.destination_paths))
        result.unmatched_old.sort()
        result.unmatched_new.sort()

        self.logger.debug(
            "Matched resources",
            mappings=len(result.mappings),
            ambiguous_groups=len(result.ambiguous_groups),
            unmatched_old=len(result.unmatched_old),
            unmatched_new=len(result.unmatched_new),
        )
        return result

    @staticmethod
    def _by_digest(pool: ResourcePool, digests: dict[str, str]) -> dict[str, list[Resource]]:
        grouped: dict[str, list[Resource]] = defaultdict(list)
        for path, resource in pool.items():
            grouped[digests[path]].append(resource)
        return grouped
