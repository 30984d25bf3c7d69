"""
Recipe Repository - Data access for elaborados and their lines.
Eager loading prevents N+1 queries when building read models and labels.
"""

from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.orm import selectinload

from trace_api.models import Elaborado, Ingredient, Lote, RecipeLine
from .base import BaseRepository, RepositoryFilters


@dataclass
class RecipeFilters(RepositoryFilters):
    """Filters specific to recipes."""

    shape: str | None = None
    recipe_type_id: int | None = None


class RecipeRepository(BaseRepository[Elaborado]):
    """
    Repository for Elaborado entities.

    Guarantees eager loading of:
    - lines -> ingredient -> allergens
    - lines -> unit
    - recipe_type
    """

    @property
    def model(self) -> type[Elaborado]:
        return Elaborado

    def _base_query(self) -> Select:
        return (
            select(Elaborado)
            .options(
                selectinload(Elaborado.lines)
                .selectinload(RecipeLine.ingredient)
                .selectinload(Ingredient.allergens)
            )
            .options(selectinload(Elaborado.lines).selectinload(RecipeLine.unit))
            .options(selectinload(Elaborado.recipe_type))
            .order_by(Elaborado.id)
        )

    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        query = super()._apply_filters(query, filters)
        if isinstance(filters, RecipeFilters):
            if filters.shape:
                query = query.where(Elaborado.shape == filters.shape)
            if filters.recipe_type_id:
                query = query.where(Elaborado.recipe_type_id == filters.recipe_type_id)
        return query

    def lot_count(self, recipe_id: int) -> int:
        query = select(func.count()).select_from(Lote).where(Lote.recipe_id == recipe_id)
        return self._db.scalar(query) or 0

    def producing_recipes(self) -> Sequence[Elaborado]:
        """
        Every recipe that yields an ingredient: split recipes (via their
        outputs) and combine recipes registered through an origin line.
        """
        query = self._base_query().where(
            Elaborado.id.in_(select(RecipeLine.recipe_id).where(RecipeLine.is_origin.is_(True)))
        )
        return self._db.execute(query).scalars().unique().all()
