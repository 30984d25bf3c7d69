"""
Utilities module: Exceptions, schemas.
"""

from shared.utils.exceptions import (
    NotFoundError,
    ValidationError,
    IntegrityError,
    ConflictError,
    StorageError,
)

__all__ = [
    # exceptions
    "NotFoundError",
    "ValidationError",
    "IntegrityError",
    "ConflictError",
    "StorageError",
]
