"""
SQLAlchemy ORM Models Package.

- base: Base class and TimestampMixin
- catalog: Allergen, Unit, RecipeType
- ingredient: Ingredient, ingredients_allergens, ownership variant
- recipe: Elaborado, RecipeLine
- lot: Lote, LoteLine, LoteCierre
"""

# Base classes
from .base import Base, TimestampMixin

# Reference catalogs
from .catalog import Allergen, Unit, RecipeType

# Ingredients
from .ingredient import (
    Ingredient,
    ingredients_allergens,
    CatalogIngredient,
    DerivedOutput,
    IngredientOwnership,
)

# Recipes
from .recipe import Elaborado, RecipeLine

# Lots
from .lot import Lote, LoteLine, LoteCierre

__all__ = [
    "Base",
    "TimestampMixin",
    "Allergen",
    "Unit",
    "RecipeType",
    "Ingredient",
    "ingredients_allergens",
    "CatalogIngredient",
    "DerivedOutput",
    "IngredientOwnership",
    "Elaborado",
    "RecipeLine",
    "Lote",
    "LoteLine",
    "LoteCierre",
]
