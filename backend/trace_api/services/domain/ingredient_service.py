"""
Ingredient Service - ingredient CRUD and allergen links.

Business rules:
- Names are unique
- Allergen sets are stored per ingredient (copy-by-value for derived outputs)
- An ingredient referenced by any recipe line cannot be deleted

Usage:
    from trace_api.services.domain import IngredientService

    service = IngredientService(db)
    ingredient = service.create_ingredient(IngredientCreate(name="Tomate"))
    allergens = service.allergen_union([1, 2, 3])
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.config.logging import get_logger
from shared.infrastructure.db import transaction
from shared.utils.exceptions import (
    DuplicateEntityError,
    IntegrityError,
    NotFoundError,
    ValidationError,
)
from shared.utils.schemas import (
    AllergenOutput,
    IngredientCreate,
    IngredientOutput,
    IngredientUpdate,
)
from trace_api.models import Allergen, Ingredient, RecipeLine
from trace_api.repositories import CatalogRepository, IngredientRepository, RepositoryFilters
from trace_api.services.base_service import BaseService

logger = get_logger(__name__)


class IngredientService(BaseService):
    """Service for the ingredient catalog."""

    def __init__(self, db: Session):
        super().__init__(db)
        self._ingredients = IngredientRepository(db)
        self._catalog = CatalogRepository(db)

    # =========================================================================
    # Query Methods
    # =========================================================================

    def get_entity(self, ingredient_id: int) -> Ingredient:
        ingredient = self._ingredients.find_by_id(ingredient_id)
        if ingredient is None:
            raise NotFoundError("Ingrediente", ingredient_id)
        return ingredient

    def get_ingredient(self, ingredient_id: int) -> IngredientOutput:
        return self.to_output(self.get_entity(ingredient_id))

    def list_ingredients(
        self,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[IngredientOutput]:
        filters = RepositoryFilters(limit=limit, offset=offset, search=search)
        return [self.to_output(i) for i in self._ingredients.find_all(filters)]

    def allergen_union(self, ingredient_ids: list[int]) -> list[AllergenOutput]:
        """Union of allergens over a set of ingredient ids."""
        return [
            AllergenOutput.model_validate(a)
            for a in self._ingredients.allergen_union(list(set(ingredient_ids)))
        ]

    # =========================================================================
    # Write Methods
    # =========================================================================

    def create_ingredient(self, data: IngredientCreate) -> IngredientOutput:
        name = self._clean_name(data.name, "Ingrediente")
        if self._ingredients.name_taken(name):
            raise DuplicateEntityError("Ingrediente", name)
        allergens = self._resolve_allergens(data.allergen_ids)

        ingredient = Ingredient(
            name=name,
            care_instructions=self._clean_text(data.care_instructions),
            allergens=allergens,
        )
        with transaction(self.db, "crear ingrediente", ingredient_name=name):
            self._ingredients.add(ingredient)

        logger.info(
            "Ingredient created",
            ingredient_id=ingredient.id,
            allergen_count=len(allergens),
        )
        return self.get_ingredient(ingredient.id)

    def update_ingredient(self, ingredient_id: int, data: IngredientUpdate) -> IngredientOutput:
        """
        Update name, care text and/or allergen set.
        Outputs previously derived from this ingredient keep their own copies.
        """
        ingredient = self.get_entity(ingredient_id)

        with transaction(self.db, "actualizar ingrediente", ingredient_id=ingredient_id):
            if data.name is not None:
                name = self._clean_name(data.name, "Ingrediente")
                if self._ingredients.name_taken(name, exclude_id=ingredient_id):
                    raise DuplicateEntityError("Ingrediente", name)
                ingredient.name = name
            if data.care_instructions is not None:
                ingredient.care_instructions = self._clean_text(data.care_instructions)
            if data.allergen_ids is not None:
                ingredient.allergens = self._resolve_allergens(data.allergen_ids)

        logger.info("Ingredient updated", ingredient_id=ingredient_id)
        return self.get_ingredient(ingredient_id)

    def delete_ingredient(self, ingredient_id: int) -> None:
        """
        Delete an ingredient that no recipe line references.

        Raises:
            NotFoundError: unknown id
            IntegrityError: still used by one or more recipes
        """
        ingredient = self.get_entity(ingredient_id)

        recipe_ids = list(
            self.db.execute(
                select(RecipeLine.recipe_id)
                .where(RecipeLine.ingredient_id == ingredient_id)
                .order_by(RecipeLine.recipe_id)
            ).scalars()
        )
        if recipe_ids:
            raise IntegrityError(
                f"El ingrediente {ingredient_id} está en uso por los elaborados: "
                f"{', '.join(str(r) for r in recipe_ids)}",
                ingredient_id=ingredient_id,
                recipe_ids=recipe_ids,
            )

        with transaction(self.db, "eliminar ingrediente", ingredient_id=ingredient_id):
            self._ingredients.delete(ingredient)

        logger.info("Ingredient deleted", ingredient_id=ingredient_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _resolve_allergens(self, allergen_ids: list[int]) -> list[Allergen]:
        wanted = sorted(set(allergen_ids))
        allergens = list(self._catalog.allergens_by_ids(wanted))
        missing = set(wanted) - {a.id for a in allergens}
        if missing:
            raise ValidationError(
                f"Alérgenos desconocidos: {', '.join(str(m) for m in sorted(missing))}",
                allergen_ids=sorted(missing),
            )
        return allergens

    @staticmethod
    def to_output(ingredient: Ingredient) -> IngredientOutput:
        return IngredientOutput(
            id=ingredient.id,
            name=ingredient.name,
            care_instructions=ingredient.care_instructions,
            allergen_ids=ingredient.allergen_ids,
            created_by_recipe_id=ingredient.created_by_recipe_id,
        )
