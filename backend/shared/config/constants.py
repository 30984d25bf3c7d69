"""
Centralized constants for the traceability engine.
Avoids magic strings for recipe shapes, closure modes and seeded catalogs.

Usage:
    from shared.config.constants import RecipeShape, ClosureMode

    if recipe.shape == RecipeShape.SPLIT:
        ...

    if closure.mode == ClosureMode.FINAL:
        ...
"""

from typing import Final


# =============================================================================
# Recipe Shapes
# =============================================================================


class RecipeShape:
    """Structural shape of an elaborado."""

    # N input ingredients produce one output (optionally registered as ingredient)
    COMBINE: Final[str] = "combine"
    # One origin ingredient portioned into several outputs ("escandallo")
    SPLIT: Final[str] = "split"

    ALL: Final[list[str]] = [COMBINE, SPLIT]


# =============================================================================
# Lot Status
# =============================================================================


class ClosureMode:
    """Closure modes recorded in lotes_cierres."""

    MANUAL: Final[str] = "manual"
    PARTIAL: Final[str] = "partial"
    FINAL: Final[str] = "final"

    ALL: Final[list[str]] = [MANUAL, PARTIAL, FINAL]


class LotStatus:
    """Computed lot status (never stored)."""

    OPEN: Final[str] = "open"
    CLOSED: Final[str] = "closed"


# =============================================================================
# Seed Catalogs
# =============================================================================

# EU 1169/2011 mandatory allergens, in regulation order
EU_ALLERGENS: Final[tuple[str, ...]] = (
    "Gluten",
    "Crustáceos",
    "Huevos",
    "Pescado",
    "Cacahuetes",
    "Soja",
    "Leche",
    "Frutos de cáscara",
    "Apio",
    "Mostaza",
    "Sésamo",
    "Dióxido de azufre y sulfitos",
    "Altramuces",
    "Moluscos",
)

# (name, abbreviation)
SEED_UNITS: Final[tuple[tuple[str, str], ...]] = (
    ("Kilogramo", "kg"),
    ("Gramo", "g"),
    ("Litro", "l"),
    ("Mililitro", "ml"),
    ("Unidad", "ud"),
    ("Docena", "dz"),
    ("Caja", "caja"),
    ("Paquete", "paq"),
    ("No especificado", "n.c."),
)


class UnitAbbreviation:
    """Units the engine looks up by abbreviation."""

    KILOGRAM: Final[str] = "kg"
    # Sentinel for lines whose quantity is intentionally unmeasured
    UNSPECIFIED: Final[str] = "n.c."
    UNSPECIFIED_ALIASES: Final[frozenset[str]] = frozenset({"n.c.", "nc"})


class RecipeTypeName:
    """Seeded recipe type names."""

    RECIPE: Final[str] = "Elaboración"
    SPLIT: Final[str] = "Escandallo"
    PACKAGING: Final[str] = "Envasado"
    FREEZING: Final[str] = "Congelación"


# (name, description)
SEED_RECIPE_TYPES: Final[tuple[tuple[str, str], ...]] = (
    (RecipeTypeName.RECIPE, "Proceso de elaboración de productos."),
    (RecipeTypeName.SPLIT, "Proceso de cálculo de costes de productos."),
    (RecipeTypeName.PACKAGING, "Proceso de envasado de productos."),
    (RecipeTypeName.FREEZING, "Proceso de congelación de productos."),
)


# =============================================================================
# Validation Constants
# =============================================================================


class Limits:
    """Validation limits."""

    MAX_NAME_LENGTH: Final[int] = 200
    MAX_DESCRIPTION_LENGTH: Final[int] = 4000
    MAX_SHELF_LIFE_DAYS: Final[int] = 3650

    DEFAULT_PAGE_SIZE: Final[int] = 50
    MAX_PAGE_SIZE: Final[int] = 500
