"""
Stack Refactor Services

Service layer for refactor planning.
"""

from .refactor_service import RefactorService  # noqa: F401
