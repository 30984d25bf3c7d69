"""
Ingredients router: ingredient CRUD and allergen union lookups.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from shared.config.constants import Limits
from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    AllergenOutput,
    IngredientCreate,
    IngredientOutput,
    IngredientUpdate,
)
from trace_api.services.domain import IngredientService


router = APIRouter(prefix="/api/ingredients", tags=["ingredients"])


@router.get("", response_model=list[IngredientOutput])
def list_ingredients(
    search: str | None = None,
    limit: int = Query(Limits.DEFAULT_PAGE_SIZE, ge=1, le=Limits.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> list[IngredientOutput]:
    return IngredientService(db).list_ingredients(search=search, limit=limit, offset=offset)


@router.get("/allergen-union", response_model=list[AllergenOutput])
def allergen_union(
    ids: list[int] = Query(default=[]),
    db: Session = Depends(get_db),
) -> list[AllergenOutput]:
    return IngredientService(db).allergen_union(ids)


@router.get("/{ingredient_id}", response_model=IngredientOutput)
def get_ingredient(ingredient_id: int, db: Session = Depends(get_db)) -> IngredientOutput:
    return IngredientService(db).get_ingredient(ingredient_id)


@router.post("", response_model=IngredientOutput, status_code=status.HTTP_201_CREATED)
def create_ingredient(body: IngredientCreate, db: Session = Depends(get_db)) -> IngredientOutput:
    return IngredientService(db).create_ingredient(body)


@router.patch("/{ingredient_id}", response_model=IngredientOutput)
def update_ingredient(
    ingredient_id: int,
    body: IngredientUpdate,
    db: Session = Depends(get_db),
) -> IngredientOutput:
    return IngredientService(db).update_ingredient(ingredient_id, body)


@router.delete("/{ingredient_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_ingredient(ingredient_id: int, db: Session = Depends(get_db)) -> None:
    IngredientService(db).delete_ingredient(ingredient_id)
