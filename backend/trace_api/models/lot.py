"""
Lot Models: Lote (production batch), LoteLine (consumption line) and
LoteCierre (append-only closure record).
"""

from __future__ import annotations

import json
from datetime import date
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    DDL,
    Boolean,
    CheckConstraint,
    Date,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import ClosureMode
from .base import Base, TimestampMixin

if TYPE_CHECKING:
    from .ingredient import Ingredient
    from .recipe import Elaborado


class Lote(TimestampMixin, Base):
    """
    Dated, numbered production run of a recipe.
    lot_number is scoped per recipe and immutable once assigned.
    """

    __tablename__ = "lotes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    recipe_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("elaborados.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    lot_number: Mapped[int] = mapped_column(Integer, nullable=False)
    production_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date)
    total_weight: Mapped[float] = mapped_column(Float, nullable=False)
    weight_unit: Mapped[str] = mapped_column(String(20), nullable=False, default="kg")
    start_temp: Mapped[Optional[float]] = mapped_column(Float)
    end_temp: Mapped[Optional[float]] = mapped_column(Float)
    parent_lot_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("lotes.id", ondelete="SET NULL"), index=True
    )
    is_derived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("recipe_id", "lot_number", name="uq_lote_recipe_number"),
        CheckConstraint("total_weight > 0", name="chk_lote_total_weight_positive"),
    )

    # Relationships
    recipe: Mapped["Elaborado"] = relationship(back_populates="lots")
    parent: Mapped[Optional["Lote"]] = relationship(remote_side="Lote.id")
    lines: Mapped[list["LoteLine"]] = relationship(
        back_populates="lot",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="LoteLine.id",
    )
    closures: Mapped[list["LoteCierre"]] = relationship(
        back_populates="lot",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="LoteCierre.id",
    )

    @property
    def has_final_closure(self) -> bool:
        return any(c.mode == ClosureMode.FINAL for c in self.closures)


class LoteLine(TimestampMixin, Base):
    """
    Actual consumption recorded at production time, scaled from the recipe's
    planned quantity, with supplier provenance.
    """

    __tablename__ = "lotes_ingredientes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    lot_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("lotes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Ingredient name as it was when the lot was produced
    resulting_ingredient: Mapped[str] = mapped_column(Text, nullable=False)
    ingredient_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("ingredients.id", ondelete="SET NULL"), index=True
    )
    weight: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    origin_percentage: Mapped[Optional[float]] = mapped_column(Float)
    supplier_reference: Mapped[Optional[str]] = mapped_column(Text)
    supplier_lot: Mapped[Optional[str]] = mapped_column(Text)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date)

    __table_args__ = (
        CheckConstraint("weight >= 0", name="chk_lote_line_weight_positive"),
    )

    # Relationships
    lot: Mapped["Lote"] = relationship(back_populates="lines")
    ingredient: Mapped[Optional["Ingredient"]] = relationship()


class LoteCierre(TimestampMixin, Base):
    """
    Closure event (labelling/packaging). Append-only audit trail.
    """

    __tablename__ = "lotes_cierres"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    lot_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("lotes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    grams_consumed: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    label_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mode: Mapped[str] = mapped_column(String(10), nullable=False, default=ClosureMode.MANUAL)
    grams_per_package: Mapped[Optional[float]] = mapped_column(Float)
    units: Mapped[Optional[int]] = mapped_column(Integer)
    operator: Mapped[Optional[str]] = mapped_column(Text)
    # "metadata" is reserved on declarative classes, so the attribute is renamed
    metadata_json: Mapped[Optional[str]] = mapped_column("metadata", Text)

    __table_args__ = (
        CheckConstraint("mode IN ('manual', 'partial', 'final')", name="chk_lote_cierre_mode"),
        CheckConstraint("grams_consumed >= 0", name="chk_lote_cierre_grams_positive"),
        CheckConstraint("label_count >= 0", name="chk_lote_cierre_labels_positive"),
    )

    # Relationships
    lot: Mapped["Lote"] = relationship(back_populates="closures")

    @property
    def extra(self) -> dict[str, Any] | None:
        if self.metadata_json is None:
            return None
        return json.loads(self.metadata_json)


# Storage-level lot number immutability, independent of the service check
event.listen(
    Lote.__table__,
    "after_create",
    DDL(
        """
        CREATE TRIGGER lotes_prevent_lot_number_change
        BEFORE UPDATE OF lot_number ON lotes
        FOR EACH ROW
        WHEN OLD.lot_number IS NOT NULL AND NEW.lot_number IS NOT OLD.lot_number
        BEGIN
            SELECT RAISE(ABORT, 'lot_number cannot be changed once assigned');
        END
        """
    ).execute_if(dialect="sqlite"),
)

event.listen(
    Lote.__table__,
    "after_create",
    DDL(
        """
        CREATE OR REPLACE FUNCTION lotes_prevent_lot_number_change() RETURNS trigger AS $$
        BEGIN
            IF OLD.lot_number IS NOT NULL AND NEW.lot_number IS DISTINCT FROM OLD.lot_number THEN
                RAISE EXCEPTION 'lot_number cannot be changed once assigned';
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
        """
    ).execute_if(dialect="postgresql"),
)

event.listen(
    Lote.__table__,
    "after_create",
    DDL(
        """
        CREATE TRIGGER lotes_prevent_lot_number_change
        BEFORE UPDATE OF lot_number ON lotes
        FOR EACH ROW EXECUTE FUNCTION lotes_prevent_lot_number_change()
        """
    ).execute_if(dialect="postgresql"),
)

event.listen(
    Lote.__table__,
    "after_drop",
    DDL("DROP FUNCTION IF EXISTS lotes_prevent_lot_number_change()").execute_if(dialect="postgresql"),
)
