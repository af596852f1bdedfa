"""
Refactor Service

Facade over the refactor planning modules. Each entry point checks the run
configuration before doing any work.
"""

from pathlib import Path

import structlog

from ..core.assembly import CloudAssembly, load_assembly
from ..core.config_loader import RefactorConfig
from ..core.provider import CloudFormationStackProvider, StackProvider
from ..models import EnvironmentReport
from .refactor import IoHost, LoggingIoHost, RefactorOrchestrator, validate_run_config


class RefactorService:
    """Service for planning structural refactors of deployed stacks."""

    def __init__(
        self,
        config: RefactorConfig,
        provider: StackProvider | None = None,
        io_host: IoHost | None = None,
    ):
        self.config = config
        self.provider = provider
        self.io_host = io_host or LoggingIoHost()
        self.logger = structlog.get_logger().bind(component="refactor_service")

    def _orchestrator(self) -> RefactorOrchestrator:
        if self.provider is None:
            self.provider = CloudFormationStackProvider()
        return RefactorOrchestrator(self.provider, self.io_host)

    async def refactor(self, assembly: CloudAssembly) -> list[EnvironmentReport]:
        """Plan a refactor of the given local stacks against what is deployed."""
        validate_run_config(self.config)
        self.logger.info("Planning refactor", stacks=[s.name for s in assembly.stacks])
        return await self._orchestrator().refactor(assembly, self.config)

    async def refactor_directory(self, assembly_dir: Path | str) -> list[EnvironmentReport]:
        """Plan a refactor of the stacks in a cloud assembly directory."""
        validate_run_config(self.config)
        return await self.refactor(load_assembly(assembly_dir))
