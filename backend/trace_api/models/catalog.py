"""
Catalog Models: Allergen, Unit, RecipeType.
Reference data seeded once and read by every other component.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import DDL, Integer, Text, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class Allergen(Base):
    """
    One of the 14 EU-mandated allergens.
    Effectively immutable at runtime.
    """

    __tablename__ = "allergens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)


class Unit(Base):
    """
    Unit of measure for recipe lines.
    The sentinel 'No especificado' (n.c.) marks intentionally unmeasured quantities.
    """

    __tablename__ = "units"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    abbreviation: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint("name", "abbreviation", name="uq_unit_name_abbreviation"),
    )


class RecipeType(TimestampMixin, Base):
    """
    Recipe taxonomy (Elaboración, Escandallo, Envasado, Congelación).
    Names cannot change after creation: historical lots refer to the type by id.
    """

    __tablename__ = "recipe_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text)


# Storage-level rename protection, independent of the service check
event.listen(
    RecipeType.__table__,
    "after_create",
    DDL(
        """
        CREATE TRIGGER recipe_types_prevent_rename
        BEFORE UPDATE OF name ON recipe_types
        FOR EACH ROW
        WHEN OLD.name <> NEW.name
        BEGIN
            SELECT RAISE(ABORT, 'recipe type names cannot be changed');
        END
        """
    ).execute_if(dialect="sqlite"),
)

event.listen(
    RecipeType.__table__,
    "after_create",
    DDL(
        """
        CREATE OR REPLACE FUNCTION recipe_types_prevent_rename() RETURNS trigger AS $$
        BEGIN
            IF OLD.name IS DISTINCT FROM NEW.name THEN
                RAISE EXCEPTION 'recipe type names cannot be changed';
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
        """
    ).execute_if(dialect="postgresql"),
)

event.listen(
    RecipeType.__table__,
    "after_create",
    DDL(
        """
        CREATE TRIGGER recipe_types_prevent_rename
        BEFORE UPDATE OF name ON recipe_types
        FOR EACH ROW EXECUTE FUNCTION recipe_types_prevent_rename()
        """
    ).execute_if(dialect="postgresql"),
)

event.listen(
    RecipeType.__table__,
    "after_drop",
    DDL("DROP FUNCTION IF EXISTS recipe_types_prevent_rename()").execute_if(dialect="postgresql"),
)
