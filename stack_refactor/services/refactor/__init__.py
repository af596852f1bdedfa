"""
Refactor Planning Modules

Stack refactor planning split into focused, single-responsibility modules:
- grouper: Partition stacks by deployment environment
- overrides: Apply user-forced pairings
- matcher: Pair resources by converged digest, detect ambiguity
- validation: Reject anything other than pure relocation
- reporter: Assemble per-environment reports and events
- orchestrator: High-level run coordination

The RefactorService acts as a facade that delegates to these modules.
"""

from .grouper import EnvironmentGrouper, EnvironmentStacks
from .matcher import GraphMatcher, MatchResult
from .orchestrator import IoHost, LoggingIoHost, RefactorOrchestrator, validate_run_config
from .overrides import OverrideResolver
from .reporter import MappingReporter
from .validation import ChangeValidator

__all__ = [
    "EnvironmentGrouper",
    "EnvironmentStacks",
    "GraphMatcher",
    "MatchResult",
    "IoHost",
    "LoggingIoHost",
    "RefactorOrchestrator",
    "validate_run_config",
    "OverrideResolver",
    "MappingReporter",
    "ChangeValidator",
]
