"""Enum definitions for stack refactoring."""

from enum import Enum
from typing import Literal

# Type aliases
EventLevel = Literal["info", "result", "error"]


class RefactorState(Enum):
    """Lifecycle of one environment's comparison."""

    GATHERING = "gathering"
    DIGESTING = "digesting"
    MATCHING = "matching"
    VALIDATED = "validated"
    AMBIGUOUS = "ambiguous"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (RefactorState.VALIDATED, RefactorState.AMBIGUOUS, RefactorState.REJECTED)


class StackSelectionStrategy(Enum):
    """How local stacks are selected for the comparison."""

    ALL_STACKS = "all-stacks"
    PATTERN_MATCH = "pattern-match"
    NONE = "none"
