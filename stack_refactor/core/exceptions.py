"""Core exceptions for stack refactor planning."""


class StackRefactorError(Exception):
    """Base exception for stack refactor operations."""


class ConfigurationError(StackRefactorError):
    """Run configuration is invalid or requests an unsupported operation."""


class TemplateError(StackRefactorError):
    """A template document could not be interpreted."""


class CyclicReferenceError(StackRefactorError):
    """Resource references form a cycle, so digests never converge."""

    def __init__(self, paths: list[str]):
        self.paths = paths
        super().__init__(
            "Cyclic reference between resources, digests did not converge: " + ", ".join(paths)
        )


class UnexplainedChangeError(StackRefactorError):
    """Old and new resource sets differ by more than relocations."""
