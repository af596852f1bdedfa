"""Mapping Reporter: assembles per-environment reports and the events describing them."""

import structlog

from ...constants import ENVIRONMENT_INFO_CODE, ERROR_CODE, RESULT_CODE
from ...core.digest import ResourceGraph
from ...models import (
    AmbiguousGroup,
    Environment,
    EnvironmentReport,
    Mapping,
    RefactorEvent,
    RefactorState,
)

NOTHING_TO_REFACTOR = "Nothing to refactor."
MAPPING_HEADERS = ("Resource Type", "Old Construct Path", "New Construct Path")


class MappingReporter:
    """Builds terminal reports and renders them as events."""

    def __init__(self):
        self.logger = structlog.get_logger().bind(component="mapping_reporter")

    def validated(
        self,
        environment: Environment,
        forced: list[Mapping],
        automatic: list[Mapping],
        old_graph: ResourceGraph,
    ) -> EnvironmentReport:
        """Report for an environment whose differences are all relocations."""
        mappings = sorted(forced + automatic, key=lambda m: m.source_path)
        unprotected = [m.source_path for m in mappings if not old_graph[m.source_path].is_protected]
        if unprotected:
            self.logger.warning(
                "Relocated resources are not retained on deletion or replacement",
                environment=environment.name,
                paths=unprotected,
            )
        return EnvironmentReport(
            environment=environment,
            state=RefactorState.VALIDATED,
            mappings=mappings,
            unprotected_paths=unprotected,
        )

    def ambiguous(
        self, environment: Environment, groups: list[AmbiguousGroup]
    ) -> EnvironmentReport:
        """Report for an environment with unresolved ambiguity; carries no mappings."""
        return EnvironmentReport(
            environment=environment, state=RefactorState.AMBIGUOUS, ambiguous_groups=groups
        )

    def rejected(self, environment: Environment, error: str) -> EnvironmentReport:
        return EnvironmentReport(environment=environment, state=RefactorState.REJECTED, error=error)

    def environment_event(self, environment: Environment) -> RefactorEvent:
        return RefactorEvent(
            level="info",
            code=ENVIRONMENT_INFO_CODE,
            message=f"Refactoring environment {environment.name}",
        )

    def result_event(self, report: EnvironmentReport) -> RefactorEvent:
        """Render a terminal report as a result or error event."""
        if report.state == RefactorState.REJECTED:
            return RefactorEvent(level="error", code=ERROR_CODE, message=report.error or "")

        mappings = [m.model_dump() for m in report.mappings]
        if report.state == RefactorState.AMBIGUOUS:
            return RefactorEvent(
                level="result",
                code=RESULT_CODE,
                message=self.format_ambiguities(report.ambiguous_groups),
                data={
                    "ambiguousPaths": [g.as_pair() for g in report.ambiguous_groups],
                    "mappings": mappings,
                },
            )

        data: dict = {"mappings": mappings}
        message = self.format_mappings(report.mappings)
        if report.unprotected_paths:
            data["unprotectedPaths"] = list(report.unprotected_paths)
            message += (
                "\n\nThe following resources are not retained if they are deleted or "
                "replaced:\n" + "\n".join(f"  {path}" for path in report.unprotected_paths)
            )
        return RefactorEvent(level="result", code=RESULT_CODE, message=message, data=data)

    @staticmethod
    def format_mappings(mappings: list[Mapping]) -> str:
        """Render mappings as a text table, one row per relocation."""
        if not mappings:
            return NOTHING_TO_REFACTOR

        rows = [MAPPING_HEADERS] + [(m.type, m.source_path, m.destination_path) for m in mappings]
        widths = [max(len(row[i]) for row in rows) for i in range(len(MAPPING_HEADERS))]
        separator = "+".join("-" * (w + 2) for w in widths)
        lines = ["The following resources were moved or renamed:", ""]
        for index, row in enumerate(rows):
            lines.append(" | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip())
            if index == 0:
                lines.append(separator)
        return "\n".join(lines)

    @staticmethod
    def format_ambiguities(groups: list[AmbiguousGroup]) -> str:
        """Render ambiguous groups with removed paths as '-' and added paths as '+'."""
        lines = [
            "Detected ambiguities:",
            "Resources below share the same content and cannot be paired automatically.",
            "Use overrides to resolve them.",
        ]
        for group in groups:
            lines.append("")
            for marker, paths in (("-", group.source_paths), ("+", group.destination_paths)):
                for index, path in enumerate(paths):
                    lines.append(f"  {marker if index == 0 else ' '} {path}")
        return "\n".join(lines)
