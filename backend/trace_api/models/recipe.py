"""
Recipe Models: Elaborado (recipe definition) and RecipeLine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import RecipeShape
from .base import Base, TimestampMixin

if TYPE_CHECKING:
    from .catalog import RecipeType, Unit
    from .ingredient import Ingredient
    from .lot import Lote


class Elaborado(TimestampMixin, Base):
    """
    Recipe definition in one of two shapes.

    combine: N input lines (is_origin=False) produce one output, optionally
        registered as an ingredient through a synthetic origin line of quantity 0.
    split ("escandallo"): exactly one origin line (the portioned ingredient)
        plus one line per generated output ingredient.

    `version` is bumped on every update and lets callers reject stale writes.
    """

    __tablename__ = "elaborados"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    obtained_weight: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    shelf_life_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    recipe_type_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("recipe_types.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    shape: Mapped[str] = mapped_column(String(10), nullable=False, default=RecipeShape.COMBINE)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("obtained_weight >= 0", name="chk_elaborado_weight_positive"),
        CheckConstraint("shelf_life_days >= 0", name="chk_elaborado_shelf_life_positive"),
        CheckConstraint("shape IN ('combine', 'split')", name="chk_elaborado_shape"),
    )

    # Relationships
    recipe_type: Mapped["RecipeType"] = relationship()
    lines: Mapped[list["RecipeLine"]] = relationship(
        back_populates="recipe",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    lots: Mapped[list["Lote"]] = relationship(back_populates="recipe", passive_deletes="all")

    @property
    def origin_lines(self) -> list["RecipeLine"]:
        return [line for line in self.lines if line.is_origin]

    @property
    def output_lines(self) -> list["RecipeLine"]:
        return [line for line in self.lines if not line.is_origin]

    @property
    def is_split(self) -> bool:
        return self.shape == RecipeShape.SPLIT


class RecipeLine(Base):
    """
    One ingredient of a recipe, unique per (recipe, ingredient).
    Quantity 0 means "unspecified amount", not an error.
    """

    __tablename__ = "elaborados_ingredientes"

    recipe_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("elaborados.id", ondelete="CASCADE"), primary_key=True
    )
    ingredient_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("ingredients.id", ondelete="RESTRICT"), primary_key=True, index=True
    )
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    unit_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("units.id", ondelete="RESTRICT")
    )
    is_origin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="chk_recipe_line_quantity_positive"),
    )

    # Relationships
    recipe: Mapped["Elaborado"] = relationship(back_populates="lines")
    ingredient: Mapped["Ingredient"] = relationship()
    unit: Mapped[Optional["Unit"]] = relationship()

    def __repr__(self) -> str:
        return (
            f"<RecipeLine(recipe_id={self.recipe_id}, ingredient_id={self.ingredient_id}, "
            f"quantity={self.quantity}, is_origin={self.is_origin})>"
        )
