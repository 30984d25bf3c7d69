"""
Repository Pattern implementation.
Centralizes data access with guaranteed eager loading.

Usage:
    from trace_api.repositories import RecipeRepository, RecipeFilters

    repo = RecipeRepository(db)
    recipes = repo.find_all(RecipeFilters(shape="split"))
    recipe = repo.find_by_id(123)
"""

from .base import BaseRepository, RepositoryFilters
from .ingredient import IngredientRepository, CatalogRepository
from .recipe import RecipeRepository, RecipeFilters
from .lot import LotRepository, LotFilters

__all__ = [
    # Base
    "BaseRepository",
    "RepositoryFilters",
    # Catalog + ingredients
    "IngredientRepository",
    "CatalogRepository",
    # Recipe
    "RecipeRepository",
    "RecipeFilters",
    # Lot
    "LotRepository",
    "LotFilters",
]
