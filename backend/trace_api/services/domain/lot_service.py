"""
Lot Service - Lot Instantiation Engine.

Turns a recipe into a dated, numbered, weight-scaled production run and
keeps the append-only closure trail.

Business rules:
- lot numbers are per recipe (max + 1) and never change once assigned
- expiry = production date + recipe shelf life, none when shelf life is 0
- each entry's weight = planned quantity x (total weight / reference weight),
  reference = obtained weight, or the sum of planned quantities when that is 0
- entries with a positive weight need a supplier lot reference and an expiry
  date not before the production date; zero-weight entries are exempt
- a parent lot only applies to split recipes and marks the lot as derived
- no closure is accepted after a final one
"""

from __future__ import annotations

import json
from datetime import date, timedelta
from typing import Any, Iterable, Sequence

from sqlalchemy.orm import Session

from shared.config.constants import ClosureMode, LotStatus
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.db import transaction
from shared.utils.exceptions import (
    IntegrityError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from shared.utils.schemas import (
    ClosureOutput,
    LotLineInput,
    LotLineOutput,
    LotOutput,
    LotUpdate,
)
from trace_api.models import Elaborado, Lote, LoteCierre, LoteLine
from trace_api.repositories import LotFilters, LotRepository, RecipeRepository
from trace_api.services.base_service import BaseService

logger = get_logger(__name__)


# =============================================================================
# Pure helpers
# =============================================================================


def reference_weight(obtained_weight: float, planned_quantities: Iterable[float]) -> float:
    """Weight the planned quantities are expressed against."""
    if obtained_weight > 0:
        return obtained_weight
    return sum(planned_quantities)


def scale_factor(total_weight: float, reference: float) -> float:
    """
    Multiplier from planned quantities to this run's weights.
    A recipe with no measurable reference scales every line to 0.
    """
    if reference <= 0:
        return 0.0
    return total_weight / reference


def scale_quantity(quantity: float, factor: float, precision: int | None = None) -> float:
    if precision is None:
        precision = settings.lot_weight_precision
    return round(quantity * factor, precision)


def expiry_for(production_date: date, shelf_life_days: int) -> date | None:
    if shelf_life_days > 0:
        return production_date + timedelta(days=shelf_life_days)
    return None


def lot_status(lot: Lote, today: date) -> str:
    """
    Computed status, never stored.
    Closed once a final closure exists or the expiry date has been reached.
    """
    if lot.has_final_closure:
        return LotStatus.CLOSED
    if lot.expiry_date is not None and lot.expiry_date <= today:
        return LotStatus.CLOSED
    return LotStatus.OPEN


# =============================================================================
# Service
# =============================================================================


class LotService(BaseService):
    """Service for production lots."""

    def __init__(self, db: Session):
        super().__init__(db)
        self._lots = LotRepository(db)
        self._recipes = RecipeRepository(db)

    # =========================================================================
    # Query Methods
    # =========================================================================

    def get_entity(self, lot_id: int) -> Lote:
        lot = self._lots.find_by_id(lot_id)
        if lot is None:
            raise NotFoundError("Lote", lot_id)
        return lot

    def get_lot(self, lot_id: int, today: date | None = None) -> LotOutput:
        return self.to_output(self.get_entity(lot_id), today)

    def list_lots(
        self,
        recipe_id: int | None = None,
        limit: int = 50,
        offset: int = 0,
        today: date | None = None,
    ) -> list[LotOutput]:
        filters = LotFilters(limit=limit, offset=offset, recipe_id=recipe_id)
        return [self.to_output(lot, today) for lot in self._lots.find_all(filters)]

    def lot_status(self, lot_id: int, today: date | None = None) -> str:
        return lot_status(self.get_entity(lot_id), today or date.today())

    def generate_lot_number(self, recipe_id: int) -> int:
        """Next lot number in the recipe's own sequence."""
        return self._lots.max_lot_number(recipe_id) + 1

    # =========================================================================
    # Write Methods
    # =========================================================================

    def create_lot(
        self,
        recipe_id: int,
        production_date: date,
        total_weight: float,
        lines: Sequence[LotLineInput] = (),
        parent_lot_id: int | None = None,
        weight_unit: str | None = None,
        start_temp: float | None = None,
        end_temp: float | None = None,
    ) -> LotOutput:
        """
        Instantiate a recipe as a production lot.

        Each entry refers to a recipe line by ingredient id; its weight is the
        line's planned quantity scaled to total_weight.

        Raises:
            NotFoundError: unknown recipe or parent lot
            ValidationError: bad weight, unknown/repeated entry, missing
                supplier data, expiry before production, misplaced parent lot
        """
        recipe = self._recipes.find_by_id(recipe_id)
        if recipe is None:
            raise NotFoundError("Elaborado", recipe_id)
        if total_weight <= 0:
            raise ValidationError(
                "El peso total del lote debe ser mayor que cero",
                field="total_weight",
                value=total_weight,
            )

        parent = self._resolve_parent(recipe, parent_lot_id)
        factor = scale_factor(
            total_weight,
            reference_weight(recipe.obtained_weight, (line.quantity for line in recipe.lines)),
        )
        lot_lines = self._build_lines(recipe, lines, factor, production_date)

        lot = Lote(
            recipe_id=recipe.id,
            production_date=production_date,
            expiry_date=expiry_for(production_date, recipe.shelf_life_days),
            total_weight=total_weight,
            weight_unit=(weight_unit or settings.default_weight_unit).strip(),
            start_temp=start_temp,
            end_temp=end_temp,
            parent_lot_id=parent.id if parent is not None else None,
            is_derived=parent is not None,
        )
        with transaction(self.db, "crear lote", recipe_id=recipe_id):
            lot.lot_number = self.generate_lot_number(recipe.id)
            lot.lines = lot_lines
            self._lots.add(lot)

        logger.info(
            "Lot created",
            lot_id=lot.id,
            recipe_id=recipe_id,
            lot_number=lot.lot_number,
            factor=round(factor, 6),
            line_count=len(lot_lines),
        )
        return self.get_lot(lot.id)

    def update_lot(self, lot_id: int, data: LotUpdate) -> LotOutput:
        """
        Update dates and temperatures.
        A production date change recomputes the expiry unless one is given.

        Raises:
            IntegrityError: attempt to change the lot number
            ValidationError: expiry before production date
        """
        lot = self.get_entity(lot_id)
        if data.lot_number is not None and data.lot_number != lot.lot_number:
            raise IntegrityError(
                f"El número de lote {lot.lot_number} no se puede modificar",
                lot_id=lot_id,
                lot_number=lot.lot_number,
                requested_number=data.lot_number,
            )

        production_date = data.production_date or lot.production_date
        if data.expiry_date is not None:
            expiry_date = data.expiry_date
        elif data.production_date is not None:
            expiry_date = expiry_for(production_date, lot.recipe.shelf_life_days)
        else:
            expiry_date = lot.expiry_date
        if expiry_date is not None and expiry_date < production_date:
            raise ValidationError(
                "La fecha de caducidad no puede ser anterior a la de producción",
                lot_id=lot_id,
            )

        with transaction(self.db, "actualizar lote", lot_id=lot_id):
            lot.production_date = production_date
            lot.expiry_date = expiry_date
            if data.start_temp is not None:
                lot.start_temp = data.start_temp
            if data.end_temp is not None:
                lot.end_temp = data.end_temp

        logger.info("Lot updated", lot_id=lot_id)
        return self.get_lot(lot_id)

    def close_lot(
        self,
        lot_id: int,
        mode: str,
        grams_consumed: float = 0.0,
        label_count: int = 0,
        grams_per_package: float | None = None,
        units: int | None = None,
        operator: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ClosureOutput:
        """
        Append a closure record. Prior closures are never modified.

        Raises:
            ValidationError: unknown mode or negative amounts
            InvalidStateError: the lot already has a final closure
        """
        lot = self.get_entity(lot_id)
        if mode not in ClosureMode.ALL:
            raise ValidationError(
                f"Modo de cierre inválido: {mode}",
                field="mode",
                allowed=ClosureMode.ALL,
            )
        if grams_consumed < 0 or label_count < 0 or (units is not None and units < 0):
            raise ValidationError("Las cantidades del cierre no pueden ser negativas", lot_id=lot_id)
        if grams_per_package is not None and grams_per_package <= 0:
            raise ValidationError(
                "Los gramos por envase deben ser mayores que cero",
                field="grams_per_package",
            )
        if lot.has_final_closure:
            raise InvalidStateError("Lote", LotStatus.CLOSED, [LotStatus.OPEN], lot_id=lot_id)

        closure = LoteCierre(
            grams_consumed=grams_consumed,
            label_count=label_count,
            mode=mode,
            grams_per_package=grams_per_package,
            units=units,
            operator=operator,
            metadata_json=(
                json.dumps(metadata, ensure_ascii=False, default=str) if metadata is not None else None
            ),
        )
        with transaction(self.db, "cerrar lote", lot_id=lot_id):
            lot.closures.append(closure)
            self.db.flush()

        logger.info("Lot closure recorded", lot_id=lot_id, closure_id=closure.id, mode=mode)
        return self._closure_output(closure)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _resolve_parent(self, recipe: Elaborado, parent_lot_id: int | None) -> Lote | None:
        if parent_lot_id is None:
            return None
        if not recipe.is_split:
            raise ValidationError(
                "Un lote padre solo aplica a elaborados de tipo escandallo",
                recipe_id=recipe.id,
                parent_lot_id=parent_lot_id,
            )
        parent = self._lots.find_by_id(parent_lot_id)
        if parent is None:
            raise NotFoundError("Lote padre", parent_lot_id)
        return parent

    def _build_lines(
        self,
        recipe: Elaborado,
        entries: Sequence[LotLineInput],
        factor: float,
        production_date: date,
    ) -> list[LoteLine]:
        by_ingredient = {line.ingredient_id: line for line in recipe.lines}
        origin_quantity = sum(line.quantity for line in recipe.origin_lines)
        seen: set[int] = set()
        lot_lines: list[LoteLine] = []

        for entry in entries:
            recipe_line = by_ingredient.get(entry.ingredient_id)
            if recipe_line is None:
                raise ValidationError(
                    f"El ingrediente {entry.ingredient_id} no forma parte del elaborado",
                    recipe_id=recipe.id,
                    ingredient_id=entry.ingredient_id,
                )
            if entry.ingredient_id in seen:
                raise ValidationError(
                    f"El ingrediente {entry.ingredient_id} está repetido en el lote",
                    ingredient_id=entry.ingredient_id,
                )
            seen.add(entry.ingredient_id)

            weight = scale_quantity(recipe_line.quantity, factor)
            supplier_reference = (entry.supplier_reference or "").strip() or None
            supplier_lot = (entry.supplier_lot or "").strip() or None
            if weight > 0:
                if supplier_reference is None and supplier_lot is None:
                    raise ValidationError(
                        f"'{recipe_line.ingredient.name}' necesita el lote del proveedor",
                        ingredient_id=entry.ingredient_id,
                    )
                if entry.expiry_date is None:
                    raise ValidationError(
                        f"'{recipe_line.ingredient.name}' necesita fecha de caducidad",
                        ingredient_id=entry.ingredient_id,
                    )
                if entry.expiry_date < production_date:
                    raise ValidationError(
                        f"La caducidad de '{recipe_line.ingredient.name}' es anterior a la producción",
                        ingredient_id=entry.ingredient_id,
                    )

            origin_percentage = entry.origin_percentage
            if origin_percentage is None and recipe.is_split and not recipe_line.is_origin and origin_quantity > 0:
                origin_percentage = round(recipe_line.quantity / origin_quantity * 100, 2)

            lot_lines.append(
                LoteLine(
                    resulting_ingredient=recipe_line.ingredient.name,
                    ingredient_id=recipe_line.ingredient_id,
                    weight=weight,
                    origin_percentage=origin_percentage,
                    supplier_reference=supplier_reference,
                    supplier_lot=supplier_lot,
                    expiry_date=entry.expiry_date,
                )
            )
        return lot_lines

    def to_output(self, lot: Lote, today: date | None = None) -> LotOutput:
        return LotOutput(
            id=lot.id,
            recipe_id=lot.recipe_id,
            recipe_name=lot.recipe.name,
            lot_number=lot.lot_number,
            production_date=lot.production_date,
            expiry_date=lot.expiry_date,
            total_weight=lot.total_weight,
            weight_unit=lot.weight_unit,
            start_temp=lot.start_temp,
            end_temp=lot.end_temp,
            parent_lot_id=lot.parent_lot_id,
            is_derived=lot.is_derived,
            status=lot_status(lot, today or date.today()),
            lines=[LotLineOutput.model_validate(line) for line in lot.lines],
            closures=[self._closure_output(c) for c in lot.closures],
        )

    @staticmethod
    def _closure_output(closure: LoteCierre) -> ClosureOutput:
        return ClosureOutput(
            id=closure.id,
            lot_id=closure.lot_id,
            mode=closure.mode,
            grams_consumed=closure.grams_consumed,
            label_count=closure.label_count,
            grams_per_package=closure.grams_per_package,
            units=closure.units,
            operator=closure.operator,
            metadata=closure.extra,
            created_at=closure.created_at,
        )
