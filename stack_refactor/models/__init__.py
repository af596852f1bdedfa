"""Data models for stack refactoring."""

from .enums import EventLevel, RefactorState, StackSelectionStrategy  # noqa: F401
from .events import RefactorEvent  # noqa: F401
from .mapping import (  # noqa: F401
    AmbiguousGroup,
    EnvironmentReport,
    Mapping,
    Override,
)
from .resource import Environment, Resource, Stack, StackSummary  # noqa: F401

__all__ = [
    # Enums
    "EventLevel",
    "RefactorState",
    "StackSelectionStrategy",
    # Resource models
    "Environment",
    "Resource",
    "Stack",
    "StackSummary",
    # Mapping models
    "AmbiguousGroup",
    "EnvironmentReport",
    "Mapping",
    "Override",
    # Events
    "RefactorEvent",
]
