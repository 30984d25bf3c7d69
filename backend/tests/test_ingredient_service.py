"""
Tests for IngredientService - ingredient catalog and allergen links.

Tests cover:
- Creation with allergen sets
- Name uniqueness and validation
- Allergen union lookups
- Deletion guarded by recipe references
"""

import pytest

from shared.utils.exceptions import (
    DuplicateEntityError,
    IntegrityError,
    NotFoundError,
    ValidationError,
)
from shared.utils.schemas import IngredientCreate, IngredientUpdate, RecipeLineInput
from trace_api.services.domain import IngredientService


class TestIngredientCreate:
    """Tests for IngredientService.create_ingredient()"""

    def test_create_with_allergens(self, make_ingredient, allergen_id):
        """Allergen ids come back ordered by id."""
        result = make_ingredient("Mayonesa", ["Mostaza", "Huevos"], care="Refrigerar")

        assert result.id is not None
        assert result.name == "Mayonesa"
        assert result.care_instructions == "Refrigerar"
        assert result.allergen_ids == sorted([allergen_id("Huevos"), allergen_id("Mostaza")])
        assert result.created_by_recipe_id is None

    def test_name_is_trimmed(self, make_ingredient):
        result = make_ingredient("  Tomate  ")
        assert result.name == "Tomate"

    def test_duplicate_name_rejected(self, make_ingredient):
        make_ingredient("Tomate")
        with pytest.raises(DuplicateEntityError):
            make_ingredient("Tomate")

    def test_empty_name_rejected(self, seeded):
        with pytest.raises(ValidationError):
            IngredientService(seeded).create_ingredient(IngredientCreate(name="   "))

    def test_unknown_allergen_rejected(self, seeded):
        with pytest.raises(ValidationError) as exc_info:
            IngredientService(seeded).create_ingredient(
                IngredientCreate(name="Misterio", allergen_ids=[9999])
            )
        assert "9999" in exc_info.value.detail


class TestIngredientQueries:
    """Tests for reads and allergen unions."""

    def test_get_unknown_raises_not_found(self, seeded):
        with pytest.raises(NotFoundError):
            IngredientService(seeded).get_ingredient(4242)

    def test_list_with_search(self, seeded, make_ingredient):
        make_ingredient("Tomate pera")
        make_ingredient("Tomate cherry")
        make_ingredient("Albahaca")

        names = [i.name for i in IngredientService(seeded).list_ingredients(search="tomate")]

        assert sorted(names) == ["Tomate cherry", "Tomate pera"]

    def test_allergen_union(self, seeded, make_ingredient, allergen_id):
        """Union is distinct and ordered by allergen id."""
        flour = make_ingredient("Harina", ["Gluten"])
        egg = make_ingredient("Huevo", ["Huevos"])
        pasta = make_ingredient("Pasta fresca", ["Gluten", "Huevos"])
        water = make_ingredient("Agua")

        union = IngredientService(seeded).allergen_union([flour.id, egg.id, pasta.id, water.id, flour.id])

        assert [a.id for a in union] == [allergen_id("Gluten"), allergen_id("Huevos")]
        assert [a.name for a in union] == ["Gluten", "Huevos"]

    def test_allergen_union_of_nothing_is_empty(self, seeded):
        assert IngredientService(seeded).allergen_union([]) == []


class TestIngredientUpdateDelete:
    """Tests for update_ingredient() and delete_ingredient()"""

    def test_update_replaces_allergen_set(self, seeded, make_ingredient, allergen_id):
        ingredient = make_ingredient("Salsa verde", ["Apio"])

        result = IngredientService(seeded).update_ingredient(
            ingredient.id, IngredientUpdate(allergen_ids=[allergen_id("Sésamo")])
        )

        assert result.allergen_ids == [allergen_id("Sésamo")]
        assert result.name == "Salsa verde"

    def test_rename_to_existing_name_rejected(self, seeded, make_ingredient):
        make_ingredient("Tomate")
        other = make_ingredient("Pimiento")

        with pytest.raises(DuplicateEntityError):
            IngredientService(seeded).update_ingredient(other.id, IngredientUpdate(name="Tomate"))

        assert IngredientService(seeded).get_ingredient(other.id).name == "Pimiento"

    def test_delete_unused(self, seeded, make_ingredient):
        service = IngredientService(seeded)
        ingredient = make_ingredient("Perejil", ["Apio"])

        service.delete_ingredient(ingredient.id)

        with pytest.raises(NotFoundError):
            service.get_ingredient(ingredient.id)

    def test_delete_used_by_recipe_rejected(self, seeded, make_ingredient, recipe_service):
        tomato = make_ingredient("Tomate")
        recipe = recipe_service.create_combine_recipe(
            name="Sofrito",
            description=None,
            total_weight=1.0,
            shelf_life_days=2,
            lines=[RecipeLineInput(ingredient_id=tomato.id, quantity=1.0)],
        )

        with pytest.raises(IntegrityError) as exc_info:
            IngredientService(seeded).delete_ingredient(tomato.id)

        assert exc_info.value.status_code == 409
        assert str(recipe.id) in exc_info.value.detail
        assert IngredientService(seeded).get_ingredient(tomato.id).name == "Tomate"
