"""
Lot Repository - Data access for lotes, their lines and closures.
"""

from dataclasses import dataclass

from sqlalchemy import Select, func, select
from sqlalchemy.orm import joinedload, selectinload

from trace_api.models import Ingredient, Lote, LoteLine
from .base import BaseRepository, RepositoryFilters


@dataclass
class LotFilters(RepositoryFilters):
    """Filters specific to lots."""

    recipe_id: int | None = None


class LotRepository(BaseRepository[Lote]):
    """
    Repository for Lote entities.

    Guarantees eager loading of:
    - lines -> ingredient -> allergens (label flattening)
    - closures
    - recipe
    """

    @property
    def model(self) -> type[Lote]:
        return Lote

    def _base_query(self) -> Select:
        return (
            select(Lote)
            .options(
                selectinload(Lote.lines)
                .selectinload(LoteLine.ingredient)
                .selectinload(Ingredient.allergens)
            )
            .options(selectinload(Lote.closures))
            .options(joinedload(Lote.recipe))
            .order_by(Lote.recipe_id, Lote.lot_number)
        )

    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        if isinstance(filters, LotFilters) and filters.recipe_id:
            query = query.where(Lote.recipe_id == filters.recipe_id)
        return query

    def max_lot_number(self, recipe_id: int) -> int:
        """Highest lot number issued for the recipe, 0 when none."""
        query = select(func.max(Lote.lot_number)).where(Lote.recipe_id == recipe_id)
        return self._db.scalar(query) or 0
