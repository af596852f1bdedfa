"""Environment Grouper: partitions stacks into independent comparison units."""

from dataclasses import dataclass, field

import structlog

from ...models import Environment, Stack


@dataclass
class EnvironmentStacks:
    """Old (deployed) and new (local) stacks of one deployment target."""

    environment: Environment
    old_stacks: list[Stack] = field(default_factory=list)
    new_stacks: list[Stack] = field(default_factory=list)


class EnvironmentGrouper:
    """Groups old and new stacks by deployment target."""

    def __init__(self):
        self.logger = structlog.get_logger().bind(component="environment_grouper")

    def group(self, old_stacks: list[Stack], new_stacks: list[Stack]) -> list[EnvironmentStacks]:
        """Partition stacks by environment.

        Environments are ordered by first appearance in the old stacks, then by first
        appearance of targets that only exist on the new side. A target present on one
        side only is compared against an empty counterpart.

        Args:
            old_stacks: Deployed stacks
            new_stacks: Stacks the user intends to deploy

        Returns:
            One EnvironmentStacks per distinct target, in stable order
        """
        groups: dict[Environment, EnvironmentStacks] = {}

        for stack in old_stacks:
            self._group_for(groups, stack.environment).old_stacks.append(stack)
        for stack in new_stacks:
            self._group_for(groups, stack.environment).new_stacks.append(stack)

        self.logger.debug(
            "Grouped stacks by environment",
            environments=[env.name for env in groups],
            old_stacks=len(old_stacks),
            new_stacks=len(new_stacks),
        )
        return list(groups.values())

    @staticmethod
    def _group_for(
        groups: dict[Environment, EnvironmentStacks], environment: Environment
    ) -> EnvironmentStacks:
        if environment not in groups:
            groups[environment] = EnvironmentStacks(environment=environment)
        return groups[environment]
