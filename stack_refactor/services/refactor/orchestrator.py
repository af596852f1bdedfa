"""Refactor orchestrator.

Coordinates one planning run: configuration gating, reading deployed and local stacks,
grouping them by environment, and running digest, override, match and validation for
each environment in turn. Planning is read-only; executing a relocation is not supported.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Protocol

import structlog
from structlog.stdlib import BoundLogger

from ...constants import IGNORED_STACK_STATUSES, REFACTOR_FEATURE
from ...core.assembly import CloudAssembly
from ...core.config_loader import RefactorConfig
from ...core.digest import ResourceGraph
from ...core.exceptions import ConfigurationError, CyclicReferenceError, UnexplainedChangeError
from ...core.provider import StackProvider
from ...core.template import parse_template
from ...models import Environment, EnvironmentReport, Mapping, RefactorEvent, RefactorState, Stack
from .grouper import EnvironmentGrouper, EnvironmentStacks
from .matcher import GraphMatcher
from .overrides import OverrideResolver, ResourcePool, pool_of
from .reporter import MappingReporter
from .validation import ChangeValidator

FEATURE_DISABLED_MESSAGE = (
    f"Unstable feature '{REFACTOR_FEATURE}' is not enabled. "
    "Please enable it under 'unstable_features'"
)
EXECUTION_UNAVAILABLE_MESSAGE = (
    "Refactor is not available yet. To see the proposed changes, use the dry-run option."
)

_TRANSITIONS = {
    RefactorState.GATHERING: {RefactorState.DIGESTING},
    RefactorState.DIGESTING: {RefactorState.MATCHING, RefactorState.REJECTED},
    RefactorState.MATCHING: {
        RefactorState.VALIDATED,
        RefactorState.AMBIGUOUS,
        RefactorState.REJECTED,
    },
}


class IoHost(Protocol):
    """Receives events in the order they are produced."""

    async def notify(self, event: RefactorEvent) -> None: ...


class LoggingIoHost:
    """IoHost that writes every event to the structured log."""

    def __init__(self):
        self.logger = structlog.get_logger().bind(component="io_host")

    async def notify(self, event: RefactorEvent) -> None:
        log = self.logger.error if event.level == "error" else self.logger.info
        log(event.message, code=event.code, level_name=event.level, data=event.data)


def validate_run_config(config: RefactorConfig) -> None:
    """Reject runs that are not enabled or request execution.

    Raises:
        ConfigurationError: If the feature is not enabled or dry_run is False
    """
    if not config.is_enabled(REFACTOR_FEATURE):
        raise ConfigurationError(FEATURE_DISABLED_MESSAGE)
    if not config.dry_run:
        raise ConfigurationError(EXECUTION_UNAVAILABLE_MESSAGE)


@dataclass
class EnvironmentPlan:
    """Private working state of one environment's comparison."""

    stacks: EnvironmentStacks
    old_graph: ResourceGraph
    new_graph: ResourceGraph
    forced: list[Mapping] = field(default_factory=list)
    old_pool: ResourcePool = field(default_factory=dict)
    new_pool: ResourcePool = field(default_factory=dict)
    state: RefactorState = RefactorState.GATHERING

    @property
    def environment(self) -> Environment:
        return self.stacks.environment

    def advance(self, state: RefactorState, logger: BoundLogger) -> None:
        if state not in _TRANSITIONS.get(self.state, set()):
            raise RuntimeError(f"Invalid transition {self.state.name} -> {state.name}")
        logger.debug(
            "Environment state changed",
            environment=self.environment.name,
            previous=self.state.name,
            state=state.name,
        )
        self.state = state


class RefactorOrchestrator:
    """Plans stack refactors across environments."""

    def __init__(self, provider: StackProvider, io_host: IoHost):
        self.provider = provider
        self.io_host = io_host
        self.grouper = EnvironmentGrouper()
        self.resolver = OverrideResolver()
        self.matcher = GraphMatcher()
        self.validator = ChangeValidator()
        self.reporter = MappingReporter()
        self.logger: BoundLogger = structlog.get_logger().bind(component="refactor_orchestrator")

    async def refactor(
        self, assembly: CloudAssembly, config: RefactorConfig
    ) -> list[EnvironmentReport]:
        """Plan a refactor and stream one info and one result event per environment.

        This method coordinates the whole run:
        1. Configuration gating (feature enabled, dry run only)
        2. Reading local and deployed stacks
        3. Grouping by environment and applying overrides for every environment
        4. Digesting, matching, validating and reporting each environment in order

        Override problems surface as ConfigurationError before any event is emitted.

        Args:
            assembly: Local synthesized stacks
            config: Run configuration

        Returns:
            The terminal report of every environment, in reporting order

        Raises:
            ConfigurationError: On gating failures or invalid overrides
        """
        validate_run_config(config)

        new_stacks = self._local_stacks(assembly, config)
        wanted = {stack.name for stack in new_stacks} | set(config.additional_stack_names)
        old_stacks = await self._deployed_stacks(
            self._environments(new_stacks), wanted, config.additional_stack_names
        )

        plans = [self._gather(group) for group in self.grouper.group(old_stacks, new_stacks)]
        self._warn_unused_overrides(config, plans)
        for plan in plans:
            self._apply_overrides(plan, config)

        reports = []
        for plan in plans:
            await self.io_host.notify(self.reporter.environment_event(plan.environment))
            report = self._plan_environment(plan)
            await self.io_host.notify(self.reporter.result_event(report))
            reports.append(report)

        self.logger.info(
            "Refactor planning completed",
            environments=len(reports),
            states={r.environment.name: r.state.name for r in reports},
        )
        return reports

    def _local_stacks(self, assembly: CloudAssembly, config: RefactorConfig) -> list[Stack]:
        selected = assembly.select(config.stacks)
        names = {stack.name for stack in selected}
        extra = [s for s in assembly.named(config.additional_stack_names) if s.name not in names]
        return selected + extra

    @staticmethod
    def _environments(stacks: list[Stack]) -> list[Environment]:
        return list(dict.fromkeys(stack.environment for stack in stacks))

    async def _deployed_stacks(
        self, environments: list[Environment], wanted: set[str], additional: list[str]
    ) -> list[Stack]:
        """Fetch deployed templates for the wanted stack names in each environment."""
        stacks: list[Stack] = []
        for environment in environments:
            summaries = await self.provider.list_deployed_stacks(environment)
            selected = [
                s for s in summaries if s.name in wanted and s.status not in IGNORED_STACK_STATUSES
            ]
            templates = await asyncio.gather(
                *(self.provider.get_deployed_template(environment, s.name) for s in selected)
            )
            for summary, template in zip(selected, templates):
                stacks.append(parse_template(summary.name, environment, template, summary.id))

            self.logger.info(
                "Fetched deployed stacks",
                environment=environment.name,
                listed=len(summaries),
                compared=[s.name for s in selected],
            )

        found = {stack.name for stack in stacks}
        missing = [name for name in additional if name not in found]
        if missing:
            self.logger.warning("Additional stacks are not deployed", stacks=missing)
        return stacks

    def _gather(self, group: EnvironmentStacks) -> EnvironmentPlan:
        old_graph = ResourceGraph(group.old_stacks)
        new_graph = ResourceGraph(group.new_stacks)
        return EnvironmentPlan(
            stacks=group,
            old_graph=old_graph,
            new_graph=new_graph,
            old_pool=pool_of(old_graph),
            new_pool=pool_of(new_graph),
        )

    def _warn_unused_overrides(self, config: RefactorConfig, plans: list[EnvironmentPlan]) -> None:
        environments = {plan.environment for plan in plans}
        for override in config.overrides:
            if override.environment not in environments:
                self.logger.warning(
                    "Override targets an environment that is not being compared",
                    environment=override.environment.name,
                    source=override.source,
                    destination=override.destination,
                )

    def _apply_overrides(self, plan: EnvironmentPlan, config: RefactorConfig) -> None:
        plan.forced, plan.old_pool, plan.new_pool = self.resolver.apply(
            plan.environment,
            config.overrides,
            plan.old_graph,
            plan.new_graph,
            plan.old_pool,
            plan.new_pool,
        )

    def _plan_environment(self, plan: EnvironmentPlan) -> EnvironmentReport:
        """Run digest, match and validation for one environment."""
        environment = plan.environment
        plan.advance(RefactorState.DIGESTING, self.logger)
        try:
            old_digests = plan.old_graph.digests
            new_digests = plan.new_graph.digests
        except CyclicReferenceError as e:
            plan.advance(RefactorState.REJECTED, self.logger)
            self.logger.warning("Environment rejected", environment=environment.name, error=str(e))
            return self.reporter.rejected(environment, str(e))

        plan.advance(RefactorState.MATCHING, self.logger)
        result = self.matcher.match(plan.old_pool, plan.new_pool, old_digests, new_digests)

        try:
            self.validator.validate(result.unmatched_old, result.unmatched_new)
        except UnexplainedChangeError as e:
            plan.advance(RefactorState.REJECTED, self.logger)
            self.logger.warning("Environment rejected", environment=environment.name)
            return self.reporter.rejected(environment, str(e))

        if result.ambiguous_groups:
            plan.advance(RefactorState.AMBIGUOUS, self.logger)
            self.logger.info(
                "Environment has ambiguous resources",
                environment=environment.name,
                groups=len(result.ambiguous_groups),
            )
            return self.reporter.ambiguous(environment, result.ambiguous_groups)

        plan.advance(RefactorState.VALIDATED, self.logger)
        report = self.reporter.validated(
            environment, plan.forced, result.mappings, plan.old_graph
        )
        self.logger.info(
            "Environment validated", environment=environment.name, mappings=len(report.mappings)
        )
        return report
