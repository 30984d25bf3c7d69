"""
Catalog router: allergens, units and recipe types.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    AllergenOutput,
    RecipeTypeOutput,
    RecipeTypeUpdate,
    UnitOutput,
)
from trace_api.services.domain import CatalogService


router = APIRouter(prefix="/api/catalogs", tags=["catalogs"])


@router.get("/allergens", response_model=list[AllergenOutput])
def list_allergens(db: Session = Depends(get_db)) -> list[AllergenOutput]:
    return CatalogService(db).list_allergens()


@router.get("/units", response_model=list[UnitOutput])
def list_units(db: Session = Depends(get_db)) -> list[UnitOutput]:
    return CatalogService(db).list_units()


@router.get("/recipe-types", response_model=list[RecipeTypeOutput])
def list_recipe_types(db: Session = Depends(get_db)) -> list[RecipeTypeOutput]:
    return CatalogService(db).list_recipe_types()


@router.post("/recipe-types", response_model=RecipeTypeOutput, status_code=status.HTTP_201_CREATED)
def create_recipe_type(body: RecipeTypeUpdate, db: Session = Depends(get_db)) -> RecipeTypeOutput:
    return CatalogService(db).create_recipe_type(body.name or "", body.description)


@router.patch("/recipe-types/{recipe_type_id}", response_model=RecipeTypeOutput)
def update_recipe_type(
    recipe_type_id: int,
    body: RecipeTypeUpdate,
    db: Session = Depends(get_db),
) -> RecipeTypeOutput:
    return CatalogService(db).update_recipe_type(recipe_type_id, body.name, body.description)
