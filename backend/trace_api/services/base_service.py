"""
Base Service Class.

Architecture:
    Router (thin) → Service (business logic) → Repository (data access) → Model

Usage:
    from trace_api.services.base_service import BaseService

    class LotService(BaseService):
        def __init__(self, db: Session):
            super().__init__(db)
            self._lots = LotRepository(db)
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from shared.config.constants import Limits
from shared.utils.exceptions import ValidationError


class BaseService:
    """
    Common infrastructure for domain services (session access, shared validation).
    Each public mutation runs inside one `transaction()` block.
    """

    def __init__(self, db: Session):
        self._db = db

    @property
    def db(self) -> Session:
        """Database session."""
        return self._db

    # =========================================================================
    # Validation Helpers
    # =========================================================================

    @staticmethod
    def _clean_name(name: str | None, entity: str) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError(f"{entity}: el nombre es obligatorio", field="name")
        if len(cleaned) > Limits.MAX_NAME_LENGTH:
            raise ValidationError(
                f"{entity}: el nombre supera {Limits.MAX_NAME_LENGTH} caracteres",
                field="name",
            )
        return cleaned

    @staticmethod
    def _clean_text(text: str | None) -> str | None:
        if text is None:
            return None
        if len(text) > Limits.MAX_DESCRIPTION_LENGTH:
            raise ValidationError(
                f"El texto supera {Limits.MAX_DESCRIPTION_LENGTH} caracteres",
                field="description",
            )
        return text

    @staticmethod
    def _check_shelf_life(days: int) -> int:
        if days < 0 or days > Limits.MAX_SHELF_LIFE_DAYS:
            raise ValidationError(
                f"Los días de conservación deben estar entre 0 y {Limits.MAX_SHELF_LIFE_DAYS}",
                field="shelf_life_days",
                value=days,
            )
        return days
