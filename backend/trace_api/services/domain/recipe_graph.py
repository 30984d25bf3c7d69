"""
Explicit recipe graph used for label flattening.

Nodes are ingredients; an ingredient produced by a recipe points at the
lines it expands to:
- split output  → the split's origin ingredient
- combine-registered ingredient → the combine's input lines, by planned
  quantity descending

The ingredient → producing-recipe index is built once per label request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from shared.utils.exceptions import IntegrityError
from trace_api.models import Allergen, DerivedOutput, Elaborado, Ingredient, RecipeLine


@dataclass
class LabelNode:
    """One ingredient on a label with its expanded sub-ingredients."""

    name: str
    allergens: list[Allergen] = field(default_factory=list)
    children: list["LabelNode"] = field(default_factory=list)

    @property
    def allergen_union(self) -> dict[int, Allergen]:
        """Allergens of this node and everything it expands to, keyed by id."""
        union = {a.id: a for a in self.allergens}
        for child in self.children:
            union.update(child.allergen_union)
        return union

    def render(self, marker: str) -> str:
        text = self.name
        if self.allergen_union:
            text += marker
        if self.children:
            text += " (" + ", ".join(child.render(marker) for child in self.children) + ")"
        return text


class RecipeGraph:
    """
    Directed graph over ingredients and the recipes that produce them.

    Usage:
        graph = RecipeGraph.build(recipe_repository.producing_recipes())
        node = graph.expand(ingredient, name="Salsa", max_depth=16)
    """

    def __init__(self, producers: dict[int, Elaborado], splits: dict[int, Elaborado] | None = None):
        self._producers = producers
        self._splits = splits or {}

    @classmethod
    def build(cls, recipes: Iterable[Elaborado]) -> "RecipeGraph":
        producers: dict[int, Elaborado] = {}
        splits: dict[int, Elaborado] = {}
        for recipe in recipes:
            if recipe.is_split:
                splits[recipe.id] = recipe
            produced = recipe.output_lines if recipe.is_split else recipe.origin_lines
            for line in produced:
                producers[line.ingredient_id] = recipe
        return cls(producers, splits)

    def producer_of(self, ingredient: Ingredient) -> Elaborado | None:
        recipe = self._producers.get(ingredient.id)
        if recipe is not None:
            return recipe
        # Outputs dropped from a split still expand to the split's origin
        ownership = ingredient.ownership
        if isinstance(ownership, DerivedOutput):
            return self._splits.get(ownership.owner_recipe_id)
        return None

    def components_of(self, recipe: Elaborado) -> list[RecipeLine]:
        if recipe.is_split:
            return list(recipe.origin_lines)
        return sorted(recipe.output_lines, key=lambda line: (-line.quantity, line.ingredient.name))

    def expand(
        self,
        ingredient: Ingredient | None,
        name: str,
        max_depth: int,
        path: tuple[int, ...] = (),
    ) -> LabelNode:
        """
        Build the label node for an ingredient.

        `path` holds the producing recipes already being expanded; meeting one
        again is a cycle.

        Raises:
            IntegrityError: cycle detected, or nesting deeper than max_depth
        """
        if ingredient is None:
            return LabelNode(name=name)

        node = LabelNode(name=name, allergens=list(ingredient.allergens))
        recipe = self.producer_of(ingredient)
        if recipe is None:
            return node

        if recipe.id in path:
            cycle = " -> ".join(str(r) for r in (*path, recipe.id))
            raise IntegrityError(
                f"Referencia circular entre elaborados: {cycle}",
                recipe_ids=list(path) + [recipe.id],
            )
        if len(path) >= max_depth:
            raise IntegrityError(
                f"Anidamiento de elaborados mayor que {max_depth} niveles",
                recipe_id=recipe.id,
                max_depth=max_depth,
            )

        for line in self.components_of(recipe):
            node.children.append(
                self.expand(line.ingredient, line.ingredient.name, max_depth, (*path, recipe.id))
            )
        return node
