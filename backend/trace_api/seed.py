"""
Seed reference catalogs: EU allergens, units of measure and recipe types.
Idempotent: only inserts rows that are missing.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.config.constants import EU_ALLERGENS, SEED_RECIPE_TYPES, SEED_UNITS
from shared.config.logging import get_logger
from shared.infrastructure.db import transaction
from trace_api.models import Allergen, RecipeType, Unit

logger = get_logger(__name__)


def seed_allergens(db: Session) -> int:
    existing = set(db.scalars(select(Allergen.name)))
    missing = [name for name in EU_ALLERGENS if name not in existing]
    db.add_all(Allergen(name=name) for name in missing)
    return len(missing)


def seed_units(db: Session) -> int:
    existing = set(db.execute(select(Unit.name, Unit.abbreviation)).tuples())
    missing = [pair for pair in SEED_UNITS if pair not in existing]
    db.add_all(Unit(name=name, abbreviation=abbr) for name, abbr in missing)
    return len(missing)


def seed_recipe_types(db: Session) -> int:
    existing = set(db.scalars(select(RecipeType.name)))
    missing = [(name, desc) for name, desc in SEED_RECIPE_TYPES if name not in existing]
    db.add_all(RecipeType(name=name, description=desc) for name, desc in missing)
    return len(missing)


def seed(db: Session) -> None:
    """Insert any missing reference data in one transaction."""
    with transaction(db, "sembrar catálogos"):
        allergens = seed_allergens(db)
        units = seed_units(db)
        recipe_types = seed_recipe_types(db)

    if allergens or units or recipe_types:
        logger.info(
            "Catalogs seeded",
            allergens=allergens,
            units=units,
            recipe_types=recipe_types,
        )
    else:
        logger.info("Catalogs already seeded, skipping")
