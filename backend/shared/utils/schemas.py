"""
Pydantic input and read models shared by the API, the CLI and the services.
Business rules are enforced by the services; these models only shape data.
"""

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


# =============================================================================
# Common Types
# =============================================================================

RecipeShapeName = Literal["combine", "split"]
ClosureModeName = Literal["manual", "partial", "final"]
LotStatusName = Literal["open", "closed"]


# =============================================================================
# Catalog Schemas
# =============================================================================


class AllergenOutput(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class UnitOutput(BaseModel):
    id: int
    name: str
    abbreviation: str

    class Config:
        from_attributes = True


class RecipeTypeOutput(BaseModel):
    id: int
    name: str
    description: str | None = None

    class Config:
        from_attributes = True


class RecipeTypeUpdate(BaseModel):
    """Only the description is editable; names are rename-protected."""

    name: str | None = None
    description: str | None = None


# =============================================================================
# Ingredient Schemas
# =============================================================================


class IngredientCreate(BaseModel):
    name: str
    care_instructions: str | None = None
    allergen_ids: list[int] = Field(default_factory=list)


class IngredientUpdate(BaseModel):
    name: str | None = None
    care_instructions: str | None = None
    allergen_ids: list[int] | None = None


class IngredientOutput(BaseModel):
    """Ingredient read model. created_by_recipe_id is set for derived outputs."""

    id: int
    name: str
    care_instructions: str | None = None
    allergen_ids: list[int] = Field(default_factory=list)
    created_by_recipe_id: int | None = None

    class Config:
        from_attributes = True


# =============================================================================
# Recipe Schemas
# =============================================================================


class RecipeLineInput(BaseModel):
    """Input ingredient of a combine recipe. quantity 0 = unspecified amount."""

    ingredient_id: int
    quantity: float = 0.0
    unit_id: int | None = None


class CombineRecipeCreate(BaseModel):
    name: str
    description: str | None = None
    total_weight: float = 0.0
    shelf_life_days: int = 0
    lines: list[RecipeLineInput] = Field(default_factory=list)
    register_as_ingredient: bool = False
    recipe_type_id: int | None = None


class CombineRecipeUpdate(BaseModel):
    name: str
    description: str | None = None
    total_weight: float = 0.0
    shelf_life_days: int = 0
    lines: list[RecipeLineInput] = Field(default_factory=list)
    recipe_type_id: int | None = None
    expected_version: int | None = None


class SplitOutputInput(BaseModel):
    """
    One portion of a split recipe.
    id is the existing output ingredient (update path) or None (create path).
    """

    id: int | None = None
    name: str = ""
    quantity: float = 0.0
    unit_id: int | None = None


class SplitRecipeCreate(BaseModel):
    origin_ingredient_id: int
    initial_weight: float
    outputs: list[SplitOutputInput] = Field(default_factory=list)
    description: str | None = None
    name: str | None = None
    shelf_life_days: int = 0


class SplitRecipeUpdate(BaseModel):
    outputs: list[SplitOutputInput] = Field(default_factory=list)
    weight: float
    description: str | None = None
    shelf_life_days: int = 0
    origin_ingredient_id: int | None = None
    expected_version: int | None = None


class RecipeLineOutput(BaseModel):
    ingredient_id: int
    ingredient_name: str
    quantity: float
    unit_id: int | None = None
    unit_abbreviation: str | None = None
    is_origin: bool = False


class RecipeOutput(BaseModel):
    """
    Recipe read model.
    remainder ("restos") is only computed for split recipes:
    origin quantity minus the declared outputs.
    """

    id: int
    name: str
    description: str | None = None
    obtained_weight: float
    shelf_life_days: int
    recipe_type_id: int
    recipe_type_name: str | None = None
    shape: RecipeShapeName
    version: int
    lines: list[RecipeLineOutput] = Field(default_factory=list)
    remainder: float | None = None


# =============================================================================
# Lot Schemas
# =============================================================================


class LotLineInput(BaseModel):
    """
    Consumption entry for one recipe line, referenced by ingredient id.
    The weight is always derived from the recipe's planned quantity.
    """

    ingredient_id: int
    supplier_reference: str | None = None
    supplier_lot: str | None = None
    expiry_date: date | None = None
    origin_percentage: float | None = None


class LotCreate(BaseModel):
    recipe_id: int
    parent_lot_id: int | None = None
    production_date: date
    total_weight: float
    weight_unit: str | None = None
    start_temp: float | None = None
    end_temp: float | None = None
    lines: list[LotLineInput] = Field(default_factory=list)


class LotUpdate(BaseModel):
    """Mutable lot fields. lot_number is accepted only to reject a change."""

    lot_number: int | None = None
    production_date: date | None = None
    expiry_date: date | None = None
    start_temp: float | None = None
    end_temp: float | None = None


class LotLineOutput(BaseModel):
    id: int
    resulting_ingredient: str
    ingredient_id: int | None = None
    weight: float
    origin_percentage: float | None = None
    supplier_reference: str | None = None
    supplier_lot: str | None = None
    expiry_date: date | None = None

    class Config:
        from_attributes = True


class ClosureCreate(BaseModel):
    mode: ClosureModeName = "manual"
    grams_consumed: float = 0.0
    label_count: int = 0
    grams_per_package: float | None = None
    units: int | None = None
    operator: str | None = None
    metadata: dict[str, Any] | None = None


class ClosureOutput(BaseModel):
    id: int
    lot_id: int
    mode: ClosureModeName
    grams_consumed: float
    label_count: int
    grams_per_package: float | None = None
    units: int | None = None
    operator: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime | None = None


class LotOutput(BaseModel):
    id: int
    recipe_id: int
    recipe_name: str
    lot_number: int
    production_date: date
    expiry_date: date | None = None
    total_weight: float
    weight_unit: str
    start_temp: float | None = None
    end_temp: float | None = None
    parent_lot_id: int | None = None
    is_derived: bool = False
    status: LotStatusName
    lines: list[LotLineOutput] = Field(default_factory=list)
    closures: list[ClosureOutput] = Field(default_factory=list)


# =============================================================================
# Label Schemas
# =============================================================================


class LabelOutput(BaseModel):
    """Flattened label projection handed to the label encoder."""

    lot_id: int
    lot_number: int
    display_code: str
    product_name: str
    ingredients: list[str] = Field(default_factory=list)
    ingredients_text: str
    allergens: list[str] = Field(default_factory=list)
    conservation: str | None = None
    production_date: str
    expiry_date: str | None = None
    total_weight: float
    weight_unit: str
    status: LotStatusName
