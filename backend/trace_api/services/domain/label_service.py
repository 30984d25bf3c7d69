"""
Label Service - Label Assembly.

Read-only projection that flattens a lot's consumption lines (and every
nested sub-recipe) into one allergen-annotated ingredient list, e.g.

    Salsa* (Tomate, Sal*, Albahaca), Pasta*.

Usage:
    from trace_api.services.domain import LabelService

    label = LabelService(db).flatten_for_label(lot_id)
    print(label.ingredients_text)
"""

from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.utils.schemas import LabelOutput
from trace_api.models import Allergen, Lote
from trace_api.repositories import RecipeRepository
from trace_api.services.base_service import BaseService
from .lot_service import LotService, lot_status
from .recipe_graph import LabelNode, RecipeGraph

logger = get_logger(__name__)


def display_code(lot: Lote) -> str:
    """Printable lot code: recipe id, production date and per-recipe number."""
    return f"{lot.recipe_id}-{lot.production_date:%Y%m%d}-{lot.lot_number:03d}"


def format_date(value: date | None) -> str | None:
    if value is None:
        return None
    return value.strftime(settings.label_date_format)


class LabelService(BaseService):
    """Builds printable label data for a lot."""

    def __init__(self, db: Session):
        super().__init__(db)
        self._lots = LotService(db)
        self._recipes = RecipeRepository(db)

    def flatten_for_label(self, lot_id: int, today: date | None = None) -> LabelOutput:
        """
        Flatten a lot for its label.

        Consumed lines with weight 0 were not used in the run and are left out.
        The rest are ordered by weight descending; nested components follow
        planned quantity descending. An entry gets the allergen marker when it
        or anything it expands to carries an allergen.

        Raises:
            NotFoundError: unknown lot
            IntegrityError: circular or too deeply nested recipes
        """
        lot = self._lots.get_entity(lot_id)
        graph = RecipeGraph.build(self._recipes.producing_recipes())

        consumed = sorted(
            (line for line in lot.lines if line.weight > 0),
            key=lambda line: (-line.weight, line.id),
        )
        nodes: list[LabelNode] = [
            graph.expand(line.ingredient, line.resulting_ingredient, settings.label_max_depth)
            for line in consumed
        ]

        allergens: dict[int, Allergen] = {}
        for node in nodes:
            allergens.update(node.allergen_union)

        rendered = [node.render(settings.allergen_marker) for node in nodes]
        ingredients_text = ", ".join(rendered) + "." if rendered else ""

        logger.debug(
            "Label flattened",
            lot_id=lot_id,
            entries=len(nodes),
            allergen_count=len(allergens),
        )
        return LabelOutput(
            lot_id=lot.id,
            lot_number=lot.lot_number,
            display_code=display_code(lot),
            product_name=lot.recipe.name,
            ingredients=rendered,
            ingredients_text=ingredients_text,
            allergens=[allergens[a].name for a in sorted(allergens)],
            conservation=lot.recipe.description,
            production_date=format_date(lot.production_date),
            expiry_date=format_date(lot.expiry_date),
            total_weight=lot.total_weight,
            weight_unit=lot.weight_unit,
            status=lot_status(lot, today or date.today()),
        )
