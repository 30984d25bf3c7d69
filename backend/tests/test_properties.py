"""
Property-based testing with Hypothesis for the pure lot and label helpers.
"""

from datetime import date, timedelta
from types import SimpleNamespace

from hypothesis import given, settings, strategies as st

from trace_api.models import Allergen
from trace_api.services.domain import LabelNode
from trace_api.services.domain.label_service import display_code
from trace_api.services.domain.lot_service import (
    expiry_for,
    reference_weight,
    scale_factor,
    scale_quantity,
)

weights = st.floats(min_value=0.001, max_value=10_000, allow_nan=False, allow_infinity=False)
quantities = st.floats(min_value=0, max_value=10_000, allow_nan=False, allow_infinity=False)


class TestScalingProperties:
    """Property-based tests for lot weight scaling."""

    @given(total=weights, reference=weights)
    @settings(max_examples=100)
    def test_factor_maps_reference_onto_total(self, total, reference):
        """Property: the reference weight scales exactly to the lot weight."""
        factor = scale_factor(total, reference)
        assert abs(factor * reference - total) <= 1e-9 * max(total, 1.0)

    @given(total=weights, reference=st.floats(max_value=0, allow_nan=False, allow_infinity=False))
    def test_no_reference_scales_to_zero(self, total, reference):
        assert scale_factor(total, reference) == 0.0

    @given(obtained=weights, planned=st.lists(quantities, max_size=10))
    def test_obtained_weight_wins_when_positive(self, obtained, planned):
        assert reference_weight(obtained, planned) == obtained

    @given(planned=st.lists(quantities, max_size=10))
    def test_planned_sum_used_without_obtained_weight(self, planned):
        assert reference_weight(0.0, planned) == sum(planned)

    @given(quantity=quantities, factor=st.floats(min_value=0, max_value=100, allow_nan=False))
    @settings(max_examples=100)
    def test_scaled_quantity_is_rounded_and_non_negative(self, quantity, factor):
        scaled = scale_quantity(quantity, factor, precision=3)
        assert scaled >= 0
        assert scaled == round(scaled, 3)

    @given(factor=st.floats(min_value=0, max_value=1_000, allow_nan=False))
    def test_zero_quantity_stays_zero(self, factor):
        """Property: an unspecified (0) line never gains weight."""
        assert scale_quantity(0.0, factor, precision=3) == 0.0


class TestDateProperties:
    """Expiry and display code."""

    @given(
        produced=st.dates(min_value=date(2000, 1, 1), max_value=date(2090, 12, 31)),
        days=st.integers(min_value=1, max_value=3650),
    )
    def test_expiry_is_shelf_life_after_production(self, produced, days):
        assert expiry_for(produced, days) - produced == timedelta(days=days)

    @given(produced=st.dates(min_value=date(2000, 1, 1), max_value=date(2090, 12, 31)))
    def test_no_shelf_life_no_expiry(self, produced):
        assert expiry_for(produced, 0) is None

    @given(
        recipe_id=st.integers(min_value=1, max_value=10_000),
        lot_number=st.integers(min_value=1, max_value=999),
        produced=st.dates(min_value=date(2000, 1, 1), max_value=date(2090, 12, 31)),
    )
    def test_display_code_shape(self, recipe_id, lot_number, produced):
        lot = SimpleNamespace(recipe_id=recipe_id, lot_number=lot_number, production_date=produced)
        prefix, day, number = display_code(lot).split("-")
        assert int(prefix) == recipe_id
        assert day == produced.strftime("%Y%m%d")
        assert len(number) == 3 and int(number) == lot_number


# A small tree of label nodes; allergen ids drawn from the 14 seeded ones
label_trees = st.recursive(
    st.builds(
        lambda name, ids: LabelNode(name=name, allergens=[Allergen(id=i, name=f"A{i}") for i in ids]),
        st.sampled_from(["Tomate", "Sal", "Harina", "Leche"]),
        st.sets(st.integers(min_value=1, max_value=14), max_size=2),
    ),
    lambda children: st.builds(
        lambda name, kids: LabelNode(name=name, children=kids),
        st.sampled_from(["Salsa", "Masa", "Relleno"]),
        st.lists(children, min_size=1, max_size=3),
    ),
    max_leaves=8,
)


class TestLabelNodeProperties:
    """Marker placement on rendered label entries."""

    @given(node=label_trees)
    def test_marker_iff_allergen_anywhere_below(self, node):
        head = node.render("*").split(" (", 1)[0]
        assert head.endswith("*") == bool(node.allergen_union)

    @given(node=label_trees)
    def test_union_contains_every_child_union(self, node):
        for child in node.children:
            assert set(child.allergen_union) <= set(node.allergen_union)
