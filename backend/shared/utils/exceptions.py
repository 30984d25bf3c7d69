"""
Centralized exceptions for the traceability engine.
Every service error is an HTTPException so the thin HTTP adapter can let it
propagate unchanged, while the CLI prints `detail`.

Usage:
    from shared.utils.exceptions import NotFoundError, ValidationError, IntegrityError

    raise NotFoundError("Ingrediente", ingredient_id)
    raise ValidationError("Cada salida necesita un nombre")
    raise IntegrityError("Ingredientes en uso por otras elaboraciones", ingredient_ids=[4, 7])
"""

from fastapi import HTTPException, status
from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        # Log the error with context
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Referenced recipe, ingredient, lot or catalog entry does not exist (404).

    Usage:
        raise NotFoundError("Elaborado", 123)
        raise NotFoundError("Unidad", unit_id, recipe_id=recipe_id)
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} con ID {entity_id} no encontrado"
        else:
            detail = f"{entity} no encontrado"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Malformed or missing input (400).

    Usage:
        raise ValidationError("El peso inicial debe ser mayor que cero")
        raise ValidationError("Cantidad inválida", field="quantity", value=-1)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InvalidStateError(ValidationError):
    """Entity is in an invalid state for the operation."""

    def __init__(self, entity: str, current_state: str, expected_states: list[str] | None = None, **log_context: Any):
        if expected_states:
            states_str = ", ".join(expected_states)
            detail = f"{entity} está en estado '{current_state}', se esperaba: {states_str}"
        else:
            detail = f"{entity} no puede estar en estado '{current_state}' para esta operación"

        super().__init__(detail, entity=entity, current_state=current_state, **log_context)


class DuplicateEntityError(ValidationError):
    """Entity already exists."""

    def __init__(self, entity: str, identifier: str | None = None, **log_context: Any):
        if identifier:
            detail = f"{entity} con identificador '{identifier}' ya existe"
        else:
            detail = f"{entity} ya existe"

        super().__init__(detail, entity=entity, identifier=identifier, **log_context)


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class IntegrityError(AppException):
    """
    Structural invariant violated (409).

    Raised for a wrong number of origin lines, an attempted origin change,
    an in-use ingredient on delete or a lot number change.

    Usage:
        raise IntegrityError("No se puede cambiar el ingrediente de origen", recipe_id=3)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class ConflictError(AppException):
    """
    Stale write detected (409).

    Usage:
        raise ConflictError("El elaborado fue modificado por otro usuario", recipe_id=3)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class StaleVersionError(ConflictError):
    """Caller presented a version that no longer matches the stored row."""

    def __init__(self, entity: str, entity_id: int, expected: int, current: int, **log_context: Any):
        detail = f"{entity} {entity_id} fue modificado (versión {current}, se esperaba {expected})"
        super().__init__(
            detail,
            entity=entity,
            entity_id=entity_id,
            expected_version=expected,
            current_version=current,
            **log_context,
        )


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class StorageError(AppException):
    """
    Unexpected failure from the relational store (500).

    The caller only sees an opaque message; the underlying error is logged
    with its traceback where it is caught.

    Usage:
        raise StorageError("crear lote", lot_recipe_id=3) from exc
    """

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Error de base de datos durante {operation}. Por favor intente de nuevo."
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            operation=operation,
            **log_context,
        )
