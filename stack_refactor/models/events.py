"""Events emitted to the caller while planning a refactor."""

from typing import Any

from ..constants import REFACTOR_ACTION
from .base import RefactorModel
from .enums import EventLevel


class RefactorEvent(RefactorModel):
    """One notification: environment announcement, result or error."""

    action: str = REFACTOR_ACTION
    level: EventLevel
    code: str
    message: str
    data: dict[str, Any] | None = None
