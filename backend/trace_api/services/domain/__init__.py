"""
Domain Services - application layer of the traceability engine.

Structure:
    Router / CLI (thin)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Repository (data access)
        ↓
    Model (entity)

Usage:
    from trace_api.services.domain import RecipeService

    service = RecipeService(db)
    recipe = service.get_recipe(recipe_id)
"""

from .catalog_service import CatalogService
from .ingredient_service import IngredientService
from .recipe_service import RecipeService
from .lot_service import LotService
from .label_service import LabelService
from .recipe_graph import RecipeGraph, LabelNode

__all__ = [
    "CatalogService",
    "IngredientService",
    "RecipeService",
    "LotService",
    "LabelService",
    "RecipeGraph",
    "LabelNode",
]
