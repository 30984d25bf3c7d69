"""
Recipes router: combine and split (escandallo) recipes.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from shared.config.constants import Limits
from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    CombineRecipeCreate,
    CombineRecipeUpdate,
    RecipeOutput,
    SplitRecipeCreate,
    SplitRecipeUpdate,
)
from trace_api.services.domain import RecipeService


router = APIRouter(prefix="/api/recipes", tags=["recipes"])


@router.get("", response_model=list[RecipeOutput])
def list_recipes(
    shape: str | None = None,
    search: str | None = None,
    limit: int = Query(Limits.DEFAULT_PAGE_SIZE, ge=1, le=Limits.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> list[RecipeOutput]:
    return RecipeService(db).list_recipes(shape=shape, search=search, limit=limit, offset=offset)


@router.get("/{recipe_id}", response_model=RecipeOutput)
def get_recipe(recipe_id: int, db: Session = Depends(get_db)) -> RecipeOutput:
    return RecipeService(db).get_recipe(recipe_id)


@router.post("/combine", response_model=RecipeOutput, status_code=status.HTTP_201_CREATED)
def create_combine_recipe(body: CombineRecipeCreate, db: Session = Depends(get_db)) -> RecipeOutput:
    return RecipeService(db).create_combine_recipe(
        name=body.name,
        description=body.description,
        total_weight=body.total_weight,
        shelf_life_days=body.shelf_life_days,
        lines=body.lines,
        register_as_ingredient=body.register_as_ingredient,
        recipe_type_id=body.recipe_type_id,
    )


@router.put("/combine/{recipe_id}", response_model=RecipeOutput)
def update_combine_recipe(
    recipe_id: int,
    body: CombineRecipeUpdate,
    db: Session = Depends(get_db),
) -> RecipeOutput:
    return RecipeService(db).update_combine_recipe(
        recipe_id,
        name=body.name,
        description=body.description,
        total_weight=body.total_weight,
        shelf_life_days=body.shelf_life_days,
        lines=body.lines,
        recipe_type_id=body.recipe_type_id,
        expected_version=body.expected_version,
    )


@router.post("/split", response_model=RecipeOutput, status_code=status.HTTP_201_CREATED)
def create_split_recipe(body: SplitRecipeCreate, db: Session = Depends(get_db)) -> RecipeOutput:
    return RecipeService(db).create_split_recipe(
        origin_ingredient_id=body.origin_ingredient_id,
        initial_weight=body.initial_weight,
        outputs=body.outputs,
        description=body.description,
        name=body.name,
        shelf_life_days=body.shelf_life_days,
    )


@router.put("/split/{recipe_id}", response_model=RecipeOutput)
def update_split_recipe(
    recipe_id: int,
    body: SplitRecipeUpdate,
    db: Session = Depends(get_db),
) -> RecipeOutput:
    return RecipeService(db).update_split_recipe(
        recipe_id,
        outputs=body.outputs,
        weight=body.weight,
        description=body.description,
        shelf_life_days=body.shelf_life_days,
        origin_ingredient_id=body.origin_ingredient_id,
        expected_version=body.expected_version,
    )


@router.delete("/{recipe_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_recipe(recipe_id: int, db: Session = Depends(get_db)) -> None:
    RecipeService(db).delete_recipe(recipe_id)
