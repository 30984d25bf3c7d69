"""
Ingredient Repository - ingredients, their allergen links and catalogs.
"""

from typing import Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session, selectinload

from shared.config.constants import UnitAbbreviation
from trace_api.models import Allergen, Ingredient, LoteLine, RecipeLine, RecipeType, Unit, ingredients_allergens
from .base import BaseRepository


class IngredientRepository(BaseRepository[Ingredient]):
    """
    Repository for Ingredient entities.

    Guarantees eager loading of allergens.
    """

    @property
    def model(self) -> type[Ingredient]:
        return Ingredient

    def _base_query(self) -> Select:
        return (
            select(Ingredient)
            .options(selectinload(Ingredient.allergens))
            .order_by(Ingredient.name)
        )

    def name_taken(self, name: str, exclude_id: int | None = None) -> bool:
        query = select(func.count()).select_from(Ingredient).where(Ingredient.name == name)
        if exclude_id is not None:
            query = query.where(Ingredient.id != exclude_id)
        return (self._db.scalar(query) or 0) > 0

    def allergen_union(self, ingredient_ids: list[int]) -> list[Allergen]:
        """
        Union of allergens over a set of ingredient ids.
        Order-independent set union, returned sorted by allergen id.
        """
        if not ingredient_ids:
            return []
        query = (
            select(Allergen)
            .join(ingredients_allergens, ingredients_allergens.c.allergen_id == Allergen.id)
            .where(ingredients_allergens.c.ingredient_id.in_(ingredient_ids))
            .distinct()
            .order_by(Allergen.id)
        )
        return list(self._db.execute(query).scalars().all())

    def reference_count(self, ingredient_id: int, exclude_recipe_id: int | None = None) -> int:
        """Number of recipe lines pointing at the ingredient, optionally ignoring one recipe."""
        query = (
            select(func.count())
            .select_from(RecipeLine)
            .where(RecipeLine.ingredient_id == ingredient_id)
        )
        if exclude_recipe_id is not None:
            query = query.where(RecipeLine.recipe_id != exclude_recipe_id)
        return self._db.scalar(query) or 0

    def lot_line_count(self, ingredient_id: int) -> int:
        """Number of recorded lot lines that consumed the ingredient."""
        query = (
            select(func.count())
            .select_from(LoteLine)
            .where(LoteLine.ingredient_id == ingredient_id)
        )
        return self._db.scalar(query) or 0

    def referenced_elsewhere(self, ingredient_ids: list[int], recipe_id: int) -> list[int]:
        """Ids among `ingredient_ids` used by lines of recipes other than `recipe_id`."""
        if not ingredient_ids:
            return []
        query = (
            select(RecipeLine.ingredient_id)
            .where(
                RecipeLine.ingredient_id.in_(ingredient_ids),
                RecipeLine.recipe_id != recipe_id,
            )
            .distinct()
            .order_by(RecipeLine.ingredient_id)
        )
        return list(self._db.execute(query).scalars().all())


class CatalogRepository:
    """
    Read access to the seeded reference catalogs.
    """

    def __init__(self, db: Session):
        self._db = db

    def allergens(self) -> Sequence[Allergen]:
        return self._db.execute(select(Allergen).order_by(Allergen.id)).scalars().all()

    def allergens_by_ids(self, allergen_ids: list[int]) -> Sequence[Allergen]:
        if not allergen_ids:
            return []
        query = select(Allergen).where(Allergen.id.in_(allergen_ids)).order_by(Allergen.id)
        return self._db.execute(query).scalars().all()

    def units(self) -> Sequence[Unit]:
        return self._db.execute(select(Unit).order_by(Unit.id)).scalars().all()

    def unit(self, unit_id: int) -> Unit | None:
        return self._db.get(Unit, unit_id)

    def recipe_types(self) -> Sequence[RecipeType]:
        return self._db.execute(select(RecipeType).order_by(RecipeType.id)).scalars().all()

    def recipe_type(self, recipe_type_id: int) -> RecipeType | None:
        return self._db.get(RecipeType, recipe_type_id)

    def recipe_type_by_name(self, name: str) -> RecipeType | None:
        return self._db.scalar(select(RecipeType).where(RecipeType.name == name))

    def unspecified_unit(self) -> Unit | None:
        """Sentinel unit: abbreviation n.c./nc or name 'No especificado'."""
        query = select(Unit).where(
            (func.lower(Unit.abbreviation).in_(sorted(UnitAbbreviation.UNSPECIFIED_ALIASES)))
            | (func.lower(Unit.name) == "no especificado")
        ).order_by(Unit.id)
        return self._db.scalars(query).first()

    def kilogram_unit(self) -> Unit | None:
        """The kg unit, falling back to the first unit in the catalog."""
        unit = self._db.scalars(
            select(Unit).where(Unit.abbreviation == UnitAbbreviation.KILOGRAM).order_by(Unit.id)
        ).first()
        if unit is None:
            unit = self._db.scalars(select(Unit).order_by(Unit.id)).first()
        return unit
