"""
Tests for LotService - lot instantiation, numbering and closures.

Tests cover:
- Scaling planned quantities to the lot's total weight
- Supplier data requirements and their zero-weight exemption
- Per-recipe lot numbering and its immutability (service and storage)
- Derived lots from a parent lot
- Append-only closures and the computed status
"""

import logging
from datetime import timedelta

import pytest
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from shared.utils.exceptions import (
    IntegrityError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from shared.utils.schemas import LotLineInput, LotUpdate, RecipeLineInput
from tests.conftest import PRODUCTION_DAY, SUPPLIER_EXPIRY, supplier_lines


def _weights(lot):
    return {line.resulting_ingredient: line.weight for line in lot.lines}


class TestLotCreate:
    """Tests for LotService.create_lot()"""

    def test_scales_planned_quantities(self, lot_service, bread_recipe):
        """10 kg reference scaled to 25 kg: factor 2.5."""
        lot = lot_service.create_lot(
            bread_recipe.id,
            production_date=PRODUCTION_DAY,
            total_weight=25.0,
            lines=supplier_lines(bread_recipe),
            start_temp=4.0,
            end_temp=72.5,
        )

        assert _weights(lot) == {"Harina": 15.0, "Huevo": 5.0, "Agua": 5.0, "Sal": 0.0}
        assert lot.lot_number == 1
        assert lot.weight_unit == "kg"
        assert lot.start_temp == 4.0
        assert lot.end_temp == 72.5
        assert lot.expiry_date == PRODUCTION_DAY + timedelta(days=5)
        assert lot.is_derived is False
        assert lot.recipe_name == "Masa de pan"

    def test_committed_lot_is_audited(self, lot_service, bread_recipe, caplog):
        caplog.set_level(logging.INFO, logger="trace.audit")

        lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, supplier_lines(bread_recipe))

        audits = [r for r in caplog.records if r.name == "trace.audit"]
        assert [r.getMessage() for r in audits] == ["TRACE_AUDIT: crear lote"]
        assert audits[0].extra_data["recipe_id"] == bread_recipe.id

    def test_rejected_lot_is_not_audited(self, lot_service, bread_recipe, caplog):
        caplog.set_level(logging.INFO, logger="trace.audit")

        with pytest.raises(ValidationError):
            lot_service.create_lot(
                bread_recipe.id, PRODUCTION_DAY, 10.0, supplier_lines(bread_recipe, expiry_date=None)
            )

        assert not [r for r in caplog.records if r.name == "trace.audit"]

    def test_reference_falls_back_to_planned_sum(self, lot_service, recipe_service, make_ingredient):
        """Without an obtained weight the planned quantities define the reference."""
        oil = make_ingredient("Aceite")
        garlic = make_ingredient("Ajo")
        recipe = recipe_service.create_combine_recipe(
            name="Aceite de ajo",
            description=None,
            total_weight=0.0,
            shelf_life_days=0,
            lines=[
                RecipeLineInput(ingredient_id=oil.id, quantity=3.0),
                RecipeLineInput(ingredient_id=garlic.id, quantity=1.0),
            ],
        )

        lot = lot_service.create_lot(
            recipe.id, production_date=PRODUCTION_DAY, total_weight=2.0, lines=supplier_lines(recipe)
        )

        assert _weights(lot) == {"Aceite": 1.5, "Ajo": 0.5}
        assert lot.expiry_date is None

    def test_zero_weight_entry_needs_no_supplier(self, lot_service, bread_recipe):
        entries = [
            line for line in supplier_lines(bread_recipe)
            if line.ingredient_id != _salt_id(bread_recipe)
        ]
        entries.append(LotLineInput(ingredient_id=_salt_id(bread_recipe)))

        lot = lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, lines=entries)

        salt = next(line for line in lot.lines if line.resulting_ingredient == "Sal")
        assert salt.weight == 0.0
        assert salt.supplier_lot is None
        assert salt.expiry_date is None

    def test_positive_weight_needs_supplier_lot(self, lot_service, bread_recipe):
        entries = supplier_lines(bread_recipe)
        flour = _line_id(bread_recipe, "Harina")
        entries = [e for e in entries if e.ingredient_id != flour]
        entries.append(LotLineInput(ingredient_id=flour, expiry_date=SUPPLIER_EXPIRY))

        with pytest.raises(ValidationError) as exc_info:
            lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, lines=entries)
        assert "Harina" in exc_info.value.detail

    def test_supplier_reference_is_enough(self, lot_service, bread_recipe):
        entries = [
            LotLineInput(
                ingredient_id=line.ingredient_id,
                supplier_reference="Harinera del Sur",
                expiry_date=SUPPLIER_EXPIRY,
            )
            for line in bread_recipe.lines
        ]
        lot = lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, lines=entries)
        assert all(line.supplier_reference == "Harinera del Sur" for line in lot.lines)

    def test_positive_weight_needs_expiry(self, lot_service, bread_recipe):
        entries = supplier_lines(bread_recipe, expiry_date=None)
        with pytest.raises(ValidationError):
            lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, lines=entries)

    def test_supplier_expiry_before_production_rejected(self, lot_service, bread_recipe):
        entries = supplier_lines(bread_recipe, expiry_date=PRODUCTION_DAY - timedelta(days=1))
        with pytest.raises(ValidationError):
            lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, lines=entries)

    def test_entry_outside_recipe_rejected(self, lot_service, bread_recipe, make_ingredient):
        stranger = make_ingredient("Azúcar")
        entries = supplier_lines(bread_recipe) + [
            LotLineInput(ingredient_id=stranger.id, supplier_lot="X", expiry_date=SUPPLIER_EXPIRY)
        ]
        with pytest.raises(ValidationError):
            lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, lines=entries)

    def test_repeated_entry_rejected(self, lot_service, bread_recipe):
        entries = supplier_lines(bread_recipe)
        with pytest.raises(ValidationError):
            lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, lines=entries + entries[:1])

    @pytest.mark.parametrize("weight", [0.0, -1.0])
    def test_non_positive_total_weight_rejected(self, lot_service, bread_recipe, weight):
        with pytest.raises(ValidationError):
            lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, weight)

    def test_unknown_recipe(self, lot_service):
        with pytest.raises(NotFoundError):
            lot_service.create_lot(999, PRODUCTION_DAY, 1.0)


class TestLotNumbering:
    """Lot numbers are per recipe and never change."""

    def test_sequence_is_per_recipe(self, lot_service, bread_recipe, salmon_split):
        first = lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, supplier_lines(bread_recipe))
        second = lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 12.0, supplier_lines(bread_recipe))
        other = lot_service.create_lot(salmon_split.id, PRODUCTION_DAY, 10.0, supplier_lines(salmon_split))

        assert (first.lot_number, second.lot_number) == (1, 2)
        assert other.lot_number == 1
        assert lot_service.generate_lot_number(bread_recipe.id) == 3
        assert lot_service.generate_lot_number(salmon_split.id) == 2

    def test_first_number_for_recipe_without_lots(self, lot_service, bread_recipe):
        assert lot_service.generate_lot_number(bread_recipe.id) == 1

    def test_update_cannot_change_number(self, lot_service, bread_recipe):
        lot = lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, supplier_lines(bread_recipe))

        with pytest.raises(IntegrityError):
            lot_service.update_lot(lot.id, LotUpdate(lot_number=7))

        assert lot_service.get_lot(lot.id).lot_number == 1

    def test_storage_rejects_number_change(self, seeded, lot_service, bread_recipe):
        """Direct SQL bypassing the service is refused by the storage trigger."""
        lot = lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, supplier_lines(bread_recipe))

        with pytest.raises(DBAPIError):
            seeded.execute(text("UPDATE lotes SET lot_number = 42 WHERE id = :id"), {"id": lot.id})
        seeded.rollback()

        assert lot_service.get_lot(lot.id).lot_number == 1

    def test_storage_allows_other_columns(self, seeded, lot_service, bread_recipe):
        lot = lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, supplier_lines(bread_recipe))

        seeded.execute(text("UPDATE lotes SET end_temp = 3.5 WHERE id = :id"), {"id": lot.id})
        seeded.commit()

        assert lot_service.get_lot(lot.id).end_temp == 3.5

    def test_production_date_change_recomputes_expiry(self, lot_service, bread_recipe):
        lot = lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, supplier_lines(bread_recipe))
        new_day = PRODUCTION_DAY + timedelta(days=2)

        updated = lot_service.update_lot(lot.id, LotUpdate(lot_number=1, production_date=new_day))

        assert updated.production_date == new_day
        assert updated.expiry_date == new_day + timedelta(days=5)


class TestDerivedLots:
    """Lots of split recipes can hang from a parent lot."""

    def test_derived_lot_from_parent(self, lot_service, bread_recipe, salmon_split):
        parent = lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, supplier_lines(bread_recipe))

        child = lot_service.create_lot(
            salmon_split.id,
            PRODUCTION_DAY,
            20.0,
            supplier_lines(salmon_split),
            parent_lot_id=parent.id,
        )

        assert child.is_derived is True
        assert child.parent_lot_id == parent.id
        assert _weights(child) == {
            "Salmón entero": 20.0,
            "Lomo de salmón": 12.0,
            "Recortes de salmón": 6.0,
        }
        percentages = {line.resulting_ingredient: line.origin_percentage for line in child.lines}
        assert percentages["Lomo de salmón"] == 60.0
        assert percentages["Recortes de salmón"] == 30.0
        assert percentages["Salmón entero"] is None

    def test_parent_rejected_for_combine_recipe(self, lot_service, bread_recipe):
        parent = lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, supplier_lines(bread_recipe))
        with pytest.raises(ValidationError):
            lot_service.create_lot(
                bread_recipe.id,
                PRODUCTION_DAY,
                10.0,
                supplier_lines(bread_recipe),
                parent_lot_id=parent.id,
            )

    def test_unknown_parent(self, lot_service, salmon_split):
        with pytest.raises(NotFoundError):
            lot_service.create_lot(
                salmon_split.id, PRODUCTION_DAY, 10.0, supplier_lines(salmon_split), parent_lot_id=999
            )


class TestClosuresAndStatus:
    """Tests for close_lot() and the computed status."""

    @pytest.fixture
    def lot(self, lot_service, bread_recipe):
        return lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, supplier_lines(bread_recipe))

    def test_open_until_expiry(self, lot_service, lot):
        assert lot_service.lot_status(lot.id, today=PRODUCTION_DAY) == "open"
        assert lot_service.lot_status(lot.id, today=lot.expiry_date - timedelta(days=1)) == "open"
        assert lot_service.lot_status(lot.id, today=lot.expiry_date) == "closed"

    def test_partial_then_final_closure(self, lot_service, lot):
        partial = lot_service.close_lot(
            lot.id,
            mode="partial",
            grams_consumed=2500.0,
            label_count=10,
            grams_per_package=250.0,
            units=10,
            operator="María",
            metadata={"printer": "Zebra"},
        )
        assert partial.mode == "partial"
        assert partial.metadata == {"printer": "Zebra"}
        assert lot_service.lot_status(lot.id, today=PRODUCTION_DAY) == "open"

        lot_service.close_lot(lot.id, mode="final", grams_consumed=7500.0, label_count=30)

        refreshed = lot_service.get_lot(lot.id, today=PRODUCTION_DAY)
        assert refreshed.status == "closed"
        assert [c.mode for c in refreshed.closures] == ["partial", "final"]
        assert refreshed.closures[0].grams_consumed == 2500.0

    def test_no_closure_after_final(self, lot_service, lot):
        lot_service.close_lot(lot.id, mode="final")
        with pytest.raises(InvalidStateError):
            lot_service.close_lot(lot.id, mode="manual")
        assert len(lot_service.get_lot(lot.id).closures) == 1

    def test_unknown_mode_rejected(self, lot_service, lot):
        with pytest.raises(ValidationError):
            lot_service.close_lot(lot.id, mode="abandoned")

    def test_negative_amounts_rejected(self, lot_service, lot):
        with pytest.raises(ValidationError):
            lot_service.close_lot(lot.id, mode="manual", grams_consumed=-1.0)

    def test_recipe_with_lots_cannot_be_deleted(self, recipe_service, bread_recipe, lot):
        with pytest.raises(IntegrityError):
            recipe_service.delete_recipe(bread_recipe.id)

    def test_list_filters_by_recipe(self, lot_service, bread_recipe, salmon_split, lot):
        lot_service.create_lot(salmon_split.id, PRODUCTION_DAY, 10.0, supplier_lines(salmon_split))

        bread_lots = lot_service.list_lots(recipe_id=bread_recipe.id, today=PRODUCTION_DAY)

        assert [item.id for item in bread_lots] == [lot.id]
        assert len(lot_service.list_lots(today=PRODUCTION_DAY)) == 2


def _line_id(recipe, name):
    return next(line.ingredient_id for line in recipe.lines if line.ingredient_name == name)


def _salt_id(recipe):
    return _line_id(recipe, "Sal")
