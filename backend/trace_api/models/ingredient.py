"""
Ingredient Models: Ingredient, ingredients_allergens association and the
ownership variant used to gate safe deletion.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

from sqlalchemy import Column, ForeignKey, Integer, Table, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin

if TYPE_CHECKING:
    from .catalog import Allergen


ingredients_allergens = Table(
    "ingredients_allergens",
    Base.metadata,
    Column("ingredient_id", Integer, ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False),
    Column("allergen_id", Integer, ForeignKey("allergens.id", ondelete="CASCADE"), nullable=False),
    UniqueConstraint("ingredient_id", "allergen_id", name="uq_ingredient_allergen"),
)


@dataclass(frozen=True)
class CatalogIngredient:
    """Reference data. Never deleted as a side effect of a recipe change."""


@dataclass(frozen=True)
class DerivedOutput:
    """Created by a recipe; eligible for deletion while only its owner references it."""

    owner_recipe_id: int


IngredientOwnership = Union[CatalogIngredient, DerivedOutput]


class Ingredient(TimestampMixin, Base):
    """
    Raw or derived ingredient with its allergen set.
    Deletion is refused while any recipe line references it.
    """

    __tablename__ = "ingredients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    care_instructions: Mapped[Optional[str]] = mapped_column(Text)
    # Set when a split/combine recipe generated this ingredient as an output
    created_by_recipe_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("elaborados.id", ondelete="SET NULL"), index=True
    )

    # Relationships
    allergens: Mapped[list["Allergen"]] = relationship(
        secondary=ingredients_allergens,
        order_by="Allergen.id",
    )

    @property
    def allergen_ids(self) -> list[int]:
        return [a.id for a in self.allergens]

    @property
    def ownership(self) -> IngredientOwnership:
        if self.created_by_recipe_id is None:
            return CatalogIngredient()
        return DerivedOutput(owner_recipe_id=self.created_by_recipe_id)
