"""
Catalog Service - allergens, units and recipe types.

Reference data is seeded once; the only write path is the recipe-type
catalog, whose names are rename-protected because historical lots refer
to the type by identity.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from shared.config.logging import get_logger
from shared.infrastructure.db import transaction
from shared.utils.exceptions import DuplicateEntityError, IntegrityError, NotFoundError
from shared.utils.schemas import AllergenOutput, RecipeTypeOutput, UnitOutput
from trace_api.models import RecipeType
from trace_api.repositories import CatalogRepository
from trace_api.services.base_service import BaseService

logger = get_logger(__name__)


class CatalogService(BaseService):
    """Read access to reference catalogs plus recipe-type maintenance."""

    def __init__(self, db: Session):
        super().__init__(db)
        self._catalog = CatalogRepository(db)

    def list_allergens(self) -> list[AllergenOutput]:
        return [AllergenOutput.model_validate(a) for a in self._catalog.allergens()]

    def list_units(self) -> list[UnitOutput]:
        return [UnitOutput.model_validate(u) for u in self._catalog.units()]

    def list_recipe_types(self) -> list[RecipeTypeOutput]:
        return [RecipeTypeOutput.model_validate(t) for t in self._catalog.recipe_types()]

    def create_recipe_type(self, name: str, description: str | None = None) -> RecipeTypeOutput:
        name = self._clean_name(name, "Tipo de elaboración")
        if self._catalog.recipe_type_by_name(name) is not None:
            raise DuplicateEntityError("Tipo de elaboración", name)

        recipe_type = RecipeType(name=name, description=self._clean_text(description))
        with transaction(self.db, "crear tipo de elaboración", recipe_type_name=name):
            self.db.add(recipe_type)

        logger.info("Recipe type created", recipe_type_id=recipe_type.id, name=name)
        return RecipeTypeOutput.model_validate(recipe_type)

    def update_recipe_type(
        self,
        recipe_type_id: int,
        name: str | None = None,
        description: str | None = None,
    ) -> RecipeTypeOutput:
        """
        Update a recipe type's description; None keeps the stored one.
        Submitting a different name is rejected with IntegrityError.
        """
        recipe_type = self._catalog.recipe_type(recipe_type_id)
        if recipe_type is None:
            raise NotFoundError("Tipo de elaboración", recipe_type_id)

        if name is not None and name.strip() != recipe_type.name:
            raise IntegrityError(
                f"El tipo de elaboración '{recipe_type.name}' no se puede renombrar",
                recipe_type_id=recipe_type_id,
                requested_name=name,
            )

        with transaction(self.db, "actualizar tipo de elaboración", recipe_type_id=recipe_type_id):
            if description is not None:
                recipe_type.description = self._clean_text(description)

        logger.info("Recipe type updated", recipe_type_id=recipe_type_id)
        return RecipeTypeOutput.model_validate(recipe_type)
