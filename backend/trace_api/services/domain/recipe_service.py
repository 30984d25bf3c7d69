"""
Recipe Service - Recipe Graph Manager.

Owns the Elaborado/RecipeLine lifecycle and the ingredients generated as
derivation outputs.

Business rules:
- combine: N input lines produce one output, optionally registered as a new
  ingredient (synthetic origin line, quantity 0, sentinel unit) carrying the
  union of the inputs' allergens
- split ("escandallo"): exactly one origin line; outputs are new ingredients
  that copy the origin's care text and allergens by value
- an output ingredient is only deleted as a side effect when this recipe
  created it and no recipe line or lot line references it
- recipes with lots cannot be deleted
- every mutation is one transaction

Usage:
    from trace_api.services.domain import RecipeService

    service = RecipeService(db)
    recipe = service.create_split_recipe(
        origin_ingredient_id=7,
        initial_weight=10.0,
        outputs=[SplitOutputInput(name="Lomo", quantity=6.0)],
    )
"""

from __future__ import annotations

from typing import Sequence

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from shared.config.constants import RecipeShape, RecipeTypeName
from shared.config.logging import get_logger
from shared.infrastructure.db import transaction
from shared.utils.exceptions import (
    DuplicateEntityError,
    IntegrityError,
    InvalidStateError,
    NotFoundError,
    StaleVersionError,
    ValidationError,
)
from shared.utils.schemas import (
    RecipeLineInput,
    RecipeLineOutput,
    RecipeOutput,
    SplitOutputInput,
)
from trace_api.models import DerivedOutput, Elaborado, Ingredient, RecipeLine, RecipeType
from trace_api.repositories import (
    CatalogRepository,
    IngredientRepository,
    RecipeFilters,
    RecipeRepository,
)
from trace_api.services.base_service import BaseService

logger = get_logger(__name__)


class RecipeService(BaseService):
    """Service for recipe definitions (combine and split shapes)."""

    def __init__(self, db: Session):
        super().__init__(db)
        self._recipes = RecipeRepository(db)
        self._ingredients = IngredientRepository(db)
        self._catalog = CatalogRepository(db)

    # =========================================================================
    # Query Methods
    # =========================================================================

    def get_entity(self, recipe_id: int) -> Elaborado:
        recipe = self._recipes.find_by_id(recipe_id)
        if recipe is None:
            raise NotFoundError("Elaborado", recipe_id)
        return recipe

    def get_recipe(self, recipe_id: int) -> RecipeOutput:
        return self.to_output(self.get_entity(recipe_id))

    def list_recipes(
        self,
        shape: str | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[RecipeOutput]:
        filters = RecipeFilters(limit=limit, offset=offset, search=search, shape=shape)
        return [self.to_output(r) for r in self._recipes.find_all(filters)]

    # =========================================================================
    # Combine Shape
    # =========================================================================

    def create_combine_recipe(
        self,
        name: str,
        description: str | None,
        total_weight: float,
        shelf_life_days: int,
        lines: Sequence[RecipeLineInput],
        register_as_ingredient: bool = False,
        recipe_type_id: int | None = None,
    ) -> RecipeOutput:
        """
        Create a recipe from N input ingredients.

        With register_as_ingredient, a new ingredient named after the recipe
        is created with the union of the inputs' allergens and linked through
        an origin line of quantity 0.

        Raises:
            ValidationError: empty lines, negative weight/quantity, repeated input
            NotFoundError: unknown ingredient, unit or recipe type
            DuplicateEntityError: registering a name already used by an ingredient
        """
        name = self._clean_name(name, "Elaborado")
        description = self._clean_text(description)
        self._check_shelf_life(shelf_life_days)
        self._check_combine_lines(lines, total_weight)
        recipe_type = self._resolve_recipe_type(recipe_type_id, RecipeTypeName.RECIPE)
        if register_as_ingredient and self._ingredients.name_taken(name):
            raise DuplicateEntityError("Ingrediente", name)

        recipe = Elaborado(
            name=name,
            description=description,
            obtained_weight=total_weight,
            shelf_life_days=shelf_life_days,
            recipe_type_id=recipe_type.id,
            shape=RecipeShape.COMBINE,
        )
        with transaction(self.db, "crear elaborado", recipe_name=name):
            self._recipes.add(recipe)
            for line in lines:
                recipe.lines.append(
                    RecipeLine(
                        ingredient_id=line.ingredient_id,
                        quantity=line.quantity,
                        unit_id=line.unit_id,
                        is_origin=False,
                    )
                )
            if register_as_ingredient:
                self._register_output(recipe, [line.ingredient_id for line in lines])
            self.db.flush()

        logger.info(
            "Combine recipe created",
            recipe_id=recipe.id,
            line_count=len(lines),
            registered=register_as_ingredient,
        )
        return self.get_recipe(recipe.id)

    def update_combine_recipe(
        self,
        recipe_id: int,
        name: str,
        description: str | None,
        total_weight: float,
        shelf_life_days: int,
        lines: Sequence[RecipeLineInput],
        recipe_type_id: int | None = None,
        expected_version: int | None = None,
    ) -> RecipeOutput:
        """
        Replace a combine recipe's input lines and header fields.
        A self-registered output ingredient follows the new name, description
        and allergen union.
        """
        recipe = self.get_entity(recipe_id)
        self._check_version(recipe, expected_version)
        if recipe.is_split:
            raise InvalidStateError("Elaborado", recipe.shape, [RecipeShape.COMBINE], recipe_id=recipe_id)

        name = self._clean_name(name, "Elaborado")
        description = self._clean_text(description)
        self._check_shelf_life(shelf_life_days)
        self._check_combine_lines(lines, total_weight)
        recipe_type = self._resolve_recipe_type(recipe_type_id, None) if recipe_type_id else recipe.recipe_type

        registered = [line.ingredient for line in recipe.origin_lines]
        registered_ids = {i.id for i in registered}
        if any(line.ingredient_id in registered_ids for line in lines):
            raise ValidationError(
                "Un elaborado no puede usar su propio ingrediente como entrada",
                recipe_id=recipe_id,
            )
        for ingredient in registered:
            if self._ingredients.name_taken(name, exclude_id=ingredient.id):
                raise DuplicateEntityError("Ingrediente", name)

        submitted = {line.ingredient_id: line for line in lines}
        with transaction(self.db, "actualizar elaborado", recipe_id=recipe_id):
            recipe.name = name
            recipe.description = description
            recipe.obtained_weight = total_weight
            recipe.shelf_life_days = shelf_life_days
            recipe.recipe_type_id = recipe_type.id
            flag_modified(recipe, "obtained_weight")

            for line in list(recipe.output_lines):
                if line.ingredient_id not in submitted:
                    recipe.lines.remove(line)
            current = {line.ingredient_id: line for line in recipe.output_lines}
            for ingredient_id, data in submitted.items():
                line = current.get(ingredient_id)
                if line is None:
                    recipe.lines.append(
                        RecipeLine(
                            ingredient_id=ingredient_id,
                            quantity=data.quantity,
                            unit_id=data.unit_id,
                            is_origin=False,
                        )
                    )
                else:
                    line.quantity = data.quantity
                    line.unit_id = data.unit_id
            self.db.flush()

            union = self._ingredients.allergen_union(list(submitted))
            for ingredient in registered:
                ingredient.name = name
                ingredient.care_instructions = description
                ingredient.allergens = list(union)
            self.db.flush()

        logger.info("Combine recipe updated", recipe_id=recipe_id, line_count=len(lines))
        return self.get_recipe(recipe_id)

    # =========================================================================
    # Split Shape
    # =========================================================================

    def create_split_recipe(
        self,
        origin_ingredient_id: int,
        initial_weight: float,
        outputs: Sequence[SplitOutputInput],
        description: str | None = None,
        name: str | None = None,
        shelf_life_days: int = 0,
    ) -> RecipeOutput:
        """
        Portion one origin ingredient into several new output ingredients.

        Each output copies the origin's care text and allergen set at creation
        time; later edits to the origin do not reach existing outputs.

        Raises:
            NotFoundError: origin ingredient does not exist
            ValidationError: non-positive weight, no outputs, unnamed output
            DuplicateEntityError: an output name is already an ingredient
        """
        origin = self._ingredients.find_by_id(origin_ingredient_id)
        if origin is None:
            raise NotFoundError("Ingrediente origen", origin_ingredient_id)
        if initial_weight <= 0:
            raise ValidationError(
                "El peso inicial debe ser mayor que cero",
                field="initial_weight",
                value=initial_weight,
            )
        if not outputs:
            raise ValidationError("El escandallo necesita al menos una salida")
        self._check_shelf_life(shelf_life_days)
        names = self._check_new_output_names(outputs)
        for output in outputs:
            self._check_quantity(output.quantity)

        recipe_name = self._clean_name(name or f"Escandallo {origin.name}", "Elaborado")
        recipe_type = self._resolve_recipe_type(None, RecipeTypeName.SPLIT)
        kg = self._catalog.kilogram_unit()
        kg_id = kg.id if kg is not None else None

        recipe = Elaborado(
            name=recipe_name,
            description=self._clean_text(description),
            obtained_weight=initial_weight,
            shelf_life_days=shelf_life_days,
            recipe_type_id=recipe_type.id,
            shape=RecipeShape.SPLIT,
        )
        with transaction(self.db, "crear escandallo", origin_ingredient_id=origin_ingredient_id):
            self._recipes.add(recipe)
            recipe.lines.append(
                RecipeLine(
                    ingredient_id=origin.id,
                    quantity=initial_weight,
                    unit_id=kg_id,
                    is_origin=True,
                )
            )
            for output, output_name in zip(outputs, names):
                ingredient = self._new_output_ingredient(output_name, origin, recipe)
                recipe.lines.append(
                    RecipeLine(
                        ingredient_id=ingredient.id,
                        quantity=output.quantity,
                        unit_id=output.unit_id or kg_id,
                        is_origin=False,
                    )
                )
            self.db.flush()

        logger.info(
            "Split recipe created",
            recipe_id=recipe.id,
            origin_ingredient_id=origin.id,
            output_count=len(outputs),
        )
        return self.get_recipe(recipe.id)

    def update_split_recipe(
        self,
        recipe_id: int,
        outputs: Sequence[SplitOutputInput],
        weight: float,
        description: str | None = None,
        shelf_life_days: int = 0,
        origin_ingredient_id: int | None = None,
        expected_version: int | None = None,
    ) -> RecipeOutput:
        """
        Rework the outputs of a split recipe.

        Outputs with an id update the existing output (rename + quantity);
        outputs without one create a new derived ingredient; existing outputs
        missing from the submission are unlinked, and their ingredient is
        deleted only if this recipe created it and no recipe or lot uses it.

        Raises:
            IntegrityError: not exactly one origin line, or origin change requested
            ValidationError: no positive output, foreign output id, bad weight
            StaleVersionError: expected_version does not match
        """
        recipe = self.get_entity(recipe_id)
        self._check_version(recipe, expected_version)
        if not recipe.is_split:
            raise InvalidStateError("Elaborado", recipe.shape, [RecipeShape.SPLIT], recipe_id=recipe_id)

        origin_lines = recipe.origin_lines
        if len(origin_lines) != 1:
            raise IntegrityError(
                f"El escandallo {recipe_id} tiene {len(origin_lines)} líneas de origen, se esperaba 1",
                recipe_id=recipe_id,
            )
        origin_line = origin_lines[0]
        if origin_ingredient_id is not None and origin_ingredient_id != origin_line.ingredient_id:
            raise IntegrityError(
                "No se puede cambiar el ingrediente de origen de un escandallo",
                recipe_id=recipe_id,
                origin_ingredient_id=origin_line.ingredient_id,
                requested_origin_id=origin_ingredient_id,
            )
        if weight <= 0:
            raise ValidationError("El peso debe ser mayor que cero", field="weight", value=weight)
        self._check_shelf_life(shelf_life_days)
        for output in outputs:
            self._check_quantity(output.quantity)
        if not any(output.quantity > 0 for output in outputs):
            raise ValidationError(
                "Al menos una salida debe tener cantidad mayor que cero",
                recipe_id=recipe_id,
            )

        current = {line.ingredient_id: line for line in recipe.output_lines}
        kept_ids: set[int] = set()
        for output in outputs:
            if output.id is None:
                continue
            if output.id not in current:
                raise ValidationError(
                    f"La salida {output.id} no pertenece a este elaborado",
                    recipe_id=recipe_id,
                    ingredient_id=output.id,
                )
            if output.id in kept_ids:
                raise ValidationError(f"La salida {output.id} está repetida", recipe_id=recipe_id)
            kept_ids.add(output.id)
        renamed = self._check_output_renames(outputs, current)
        new_outputs = [o for o in outputs if o.id is None]
        new_names = self._check_new_output_names(new_outputs) if new_outputs else []
        clashes = sorted(set(renamed) & set(new_names))
        if clashes:
            raise ValidationError(f"La salida '{clashes[0]}' está repetida", field="name")

        origin = origin_line.ingredient
        kg = self._catalog.kilogram_unit()
        kg_id = kg.id if kg is not None else None
        removed = [line for ingredient_id, line in current.items() if ingredient_id not in kept_ids]

        with transaction(self.db, "actualizar escandallo", recipe_id=recipe_id):
            recipe.obtained_weight = weight
            recipe.description = self._clean_text(description)
            recipe.shelf_life_days = shelf_life_days
            # Bump the version even when only the lines change
            flag_modified(recipe, "obtained_weight")
            origin_line.quantity = weight

            for output in outputs:
                if output.id is None:
                    continue
                line = current[output.id]
                new_name = (output.name or "").strip()
                if new_name and new_name != line.ingredient.name:
                    line.ingredient.name = new_name
                line.quantity = output.quantity
                if output.unit_id is not None:
                    line.unit_id = output.unit_id

            for output, output_name in zip(new_outputs, new_names):
                ingredient = self._new_output_ingredient(output_name, origin, recipe)
                recipe.lines.append(
                    RecipeLine(
                        ingredient_id=ingredient.id,
                        quantity=output.quantity,
                        unit_id=output.unit_id or kg_id,
                        is_origin=False,
                    )
                )

            for line in removed:
                ingredient = line.ingredient
                recipe.lines.remove(line)
                self.db.flush()
                if self._owned_by(ingredient, recipe) and not self._in_use(ingredient):
                    self.db.delete(ingredient)
            self.db.flush()

        logger.info(
            "Split recipe updated",
            recipe_id=recipe_id,
            kept=len(kept_ids),
            created=len(new_outputs),
            removed=len(removed),
        )
        return self.get_recipe(recipe_id)

    # =========================================================================
    # Deletion
    # =========================================================================

    def delete_recipe(self, recipe_id: int) -> None:
        """
        Delete a recipe according to its shape.

        Raises:
            NotFoundError: unknown recipe
            IntegrityError: lots reference it, or (split) an output is used elsewhere
        """
        recipe = self.get_entity(recipe_id)
        lot_count = self._recipes.lot_count(recipe_id)
        if lot_count:
            raise IntegrityError(
                f"El elaborado {recipe_id} tiene {lot_count} lotes y no se puede eliminar",
                recipe_id=recipe_id,
                lot_count=lot_count,
            )
        if recipe.is_split:
            self.delete_split_recipe(recipe)
        else:
            self.delete_combine_recipe(recipe)

    def delete_split_recipe(self, recipe: Elaborado) -> None:
        """
        Delete a split recipe with its lines and the outputs it created.
        Refused as a whole when any output is used by another recipe.
        """
        output_ids = [line.ingredient_id for line in recipe.output_lines]
        in_use = self._ingredients.referenced_elsewhere(output_ids, recipe.id)
        if in_use:
            raise IntegrityError(
                "No se puede eliminar el escandallo: ingredientes en uso por otras "
                f"elaboraciones: {', '.join(str(i) for i in in_use)}",
                recipe_id=recipe.id,
                ingredient_ids=in_use,
            )

        owned = [
            line.ingredient
            for line in recipe.output_lines
            if self._owned_by(line.ingredient, recipe)
        ]
        recipe_id = recipe.id
        with transaction(self.db, "eliminar escandallo", recipe_id=recipe_id):
            recipe.lines.clear()
            self.db.flush()
            for ingredient in owned:
                self.db.delete(ingredient)
            self.db.flush()
            self.db.delete(recipe)

        logger.info(
            "Split recipe deleted",
            recipe_id=recipe_id,
            deleted_outputs=[i.id for i in owned],
        )

    def delete_combine_recipe(self, recipe: Elaborado) -> None:
        """Delete a combine recipe and its lines. Input ingredients are reference data."""
        recipe_id = recipe.id
        with transaction(self.db, "eliminar elaborado", recipe_id=recipe_id):
            recipe.lines.clear()
            self.db.flush()
            self.db.delete(recipe)

        logger.info("Combine recipe deleted", recipe_id=recipe_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    def to_output(self, recipe: Elaborado) -> RecipeOutput:
        lines = sorted(recipe.lines, key=lambda line: (not line.is_origin, -line.quantity, line.ingredient.name))
        remainder = None
        if recipe.is_split:
            origin_qty = sum(line.quantity for line in recipe.origin_lines)
            remainder = round(origin_qty - sum(line.quantity for line in recipe.output_lines), 3)
        return RecipeOutput(
            id=recipe.id,
            name=recipe.name,
            description=recipe.description,
            obtained_weight=recipe.obtained_weight,
            shelf_life_days=recipe.shelf_life_days,
            recipe_type_id=recipe.recipe_type_id,
            recipe_type_name=recipe.recipe_type.name if recipe.recipe_type else None,
            shape=recipe.shape,
            version=recipe.version,
            lines=[
                RecipeLineOutput(
                    ingredient_id=line.ingredient_id,
                    ingredient_name=line.ingredient.name,
                    quantity=line.quantity,
                    unit_id=line.unit_id,
                    unit_abbreviation=line.unit.abbreviation if line.unit else None,
                    is_origin=line.is_origin,
                )
                for line in lines
            ],
            remainder=remainder,
        )

    @staticmethod
    def _owned_by(ingredient: Ingredient, recipe: Elaborado) -> bool:
        """Derived outputs of this recipe are the only ingredients it may delete."""
        ownership = ingredient.ownership
        return isinstance(ownership, DerivedOutput) and ownership.owner_recipe_id == recipe.id

    def _in_use(self, ingredient: Ingredient) -> bool:
        """Referenced by a recipe line or recorded in a lot."""
        return (
            self._ingredients.reference_count(ingredient.id) > 0
            or self._ingredients.lot_line_count(ingredient.id) > 0
        )

    @staticmethod
    def _check_version(recipe: Elaborado, expected_version: int | None) -> None:
        if expected_version is not None and expected_version != recipe.version:
            raise StaleVersionError("Elaborado", recipe.id, expected_version, recipe.version)

    @staticmethod
    def _check_quantity(quantity: float) -> None:
        if quantity < 0:
            raise ValidationError(
                "La cantidad no puede ser negativa",
                field="quantity",
                value=quantity,
            )

    def _check_combine_lines(self, lines: Sequence[RecipeLineInput], total_weight: float) -> None:
        if not lines:
            raise ValidationError("El elaborado necesita al menos un ingrediente")
        if total_weight < 0:
            raise ValidationError(
                "El peso total no puede ser negativo",
                field="total_weight",
                value=total_weight,
            )
        seen: set[int] = set()
        for line in lines:
            self._check_quantity(line.quantity)
            if line.ingredient_id in seen:
                raise ValidationError(
                    f"El ingrediente {line.ingredient_id} está repetido",
                    ingredient_id=line.ingredient_id,
                )
            seen.add(line.ingredient_id)
            if not self._ingredients.exists(line.ingredient_id):
                raise NotFoundError("Ingrediente", line.ingredient_id)
            if line.unit_id is not None and self._catalog.unit(line.unit_id) is None:
                raise NotFoundError("Unidad", line.unit_id)

    def _check_new_output_names(self, outputs: Sequence[SplitOutputInput]) -> list[str]:
        names: list[str] = []
        for output in outputs:
            cleaned = (output.name or "").strip()
            if not cleaned:
                raise ValidationError("Cada salida necesita un nombre", field="name")
            name = self._clean_name(cleaned, "Salida")
            if name in names:
                raise ValidationError(f"La salida '{name}' está repetida", field="name")
            if self._ingredients.name_taken(name):
                raise DuplicateEntityError("Ingrediente", name)
            names.append(name)
        return names

    def _check_output_renames(
        self,
        outputs: Sequence[SplitOutputInput],
        current: dict[int, RecipeLine],
    ) -> list[str]:
        renamed: list[str] = []
        for output in outputs:
            if output.id is None:
                continue
            new_name = (output.name or "").strip()
            if new_name and new_name != current[output.id].ingredient.name:
                new_name = self._clean_name(new_name, "Salida")
                if new_name in renamed:
                    raise ValidationError(f"La salida '{new_name}' está repetida", field="name")
                if self._ingredients.name_taken(new_name, exclude_id=output.id):
                    raise DuplicateEntityError("Ingrediente", new_name)
                renamed.append(new_name)
        return renamed

    def _resolve_recipe_type(self, recipe_type_id: int | None, default_name: str | None) -> RecipeType:
        if recipe_type_id is not None:
            recipe_type = self._catalog.recipe_type(recipe_type_id)
            if recipe_type is None:
                raise NotFoundError("Tipo de elaboración", recipe_type_id)
            return recipe_type
        recipe_type = self._catalog.recipe_type_by_name(default_name)
        if recipe_type is None:
            raise NotFoundError("Tipo de elaboración", default_name)
        return recipe_type

    def _new_output_ingredient(self, name: str, origin: Ingredient, recipe: Elaborado) -> Ingredient:
        """Derived output: origin care text and allergens copied by value."""
        ingredient = Ingredient(
            name=name,
            care_instructions=origin.care_instructions,
            allergens=list(origin.allergens),
            created_by_recipe_id=recipe.id,
        )
        return self._ingredients.add(ingredient)

    def _register_output(self, recipe: Elaborado, input_ids: list[int]) -> Ingredient:
        """Register a combine recipe as an ingredient linked by a quantity-0 origin line."""
        ingredient = Ingredient(
            name=recipe.name,
            care_instructions=recipe.description,
            allergens=self._ingredients.allergen_union(input_ids),
            created_by_recipe_id=recipe.id,
        )
        self._ingredients.add(ingredient)
        unit = self._catalog.unspecified_unit()
        recipe.lines.append(
            RecipeLine(
                ingredient_id=ingredient.id,
                quantity=0.0,
                unit_id=unit.id if unit is not None else None,
                is_origin=True,
            )
        )
        return ingredient
