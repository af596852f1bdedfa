"""Plan safe structural refactors of deployed infrastructure stacks."""

from .core.assembly import CloudAssembly, StackSelection, load_assembly  # noqa: F401
from .core.config_loader import RefactorConfig, load_config, load_config_async  # noqa: F401
from .core.logging_config import setup_logging  # noqa: F401
from .core.provider import (  # noqa: F401
    CloudFormationStackProvider,
    InMemoryStackProvider,
    StackProvider,
)
from .services import RefactorService  # noqa: F401

__version__ = "0.1.0"
