"""
HTTP routers. Each endpoint delegates to one service call; service errors
are HTTPExceptions and propagate with their own status codes.
"""

from .catalogs import router as catalogs_router
from .ingredients import router as ingredients_router
from .recipes import router as recipes_router
from .lots import router as lots_router
from .labels import router as labels_router

__all__ = [
    "catalogs_router",
    "ingredients_router",
    "recipes_router",
    "lots_router",
    "labels_router",
]
