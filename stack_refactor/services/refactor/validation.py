"""Change Validator: accepts only pure relocations."""

import structlog

from ...core.exceptions import UnexplainedChangeError

UNEXPLAINED_CHANGE_MESSAGE = (
    "A refactor operation cannot add, remove or update resources. "
    "Only resource moves and renames are allowed. "
    "Run a full diff to compare the local templates to the deployed stacks."
)


class ChangeValidator:
    """Rejects environments whose resource sets differ by more than relocations."""

    def __init__(self):
        self.logger = structlog.get_logger().bind(component="change_validator")

    def validate(self, unmatched_old: list[str], unmatched_new: list[str]) -> None:
        """Check that nothing was left unexplained by matching.

        Any unmatched resource invalidates the whole environment, even when other
        resources were mapped cleanly.

        Args:
            unmatched_old: Deployed paths with no counterpart (removed or modified)
            unmatched_new: Local paths with no counterpart (added or modified)

        Raises:
            UnexplainedChangeError: If either list is non-empty
        """
        if not unmatched_old and not unmatched_new:
            return

        self.logger.warning(
            "Resource sets differ beyond relocation",
            unmatched_old=unmatched_old,
            unmatched_new=unmatched_new,
        )
        raise UnexplainedChangeError(UNEXPLAINED_CHANGE_MESSAGE)
