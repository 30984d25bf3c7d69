"""
Lots router: production lots and their closures.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from shared.config.constants import Limits
from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    ClosureCreate,
    ClosureOutput,
    LotCreate,
    LotOutput,
    LotUpdate,
)
from trace_api.services.domain import LotService


router = APIRouter(prefix="/api/lots", tags=["lots"])


@router.get("", response_model=list[LotOutput])
def list_lots(
    recipe_id: int | None = None,
    limit: int = Query(Limits.DEFAULT_PAGE_SIZE, ge=1, le=Limits.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    today: date | None = None,
    db: Session = Depends(get_db),
) -> list[LotOutput]:
    return LotService(db).list_lots(recipe_id=recipe_id, limit=limit, offset=offset, today=today)


@router.get("/next-number/{recipe_id}", response_model=int)
def next_lot_number(recipe_id: int, db: Session = Depends(get_db)) -> int:
    return LotService(db).generate_lot_number(recipe_id)


@router.get("/{lot_id}", response_model=LotOutput)
def get_lot(lot_id: int, today: date | None = None, db: Session = Depends(get_db)) -> LotOutput:
    return LotService(db).get_lot(lot_id, today=today)


@router.post("", response_model=LotOutput, status_code=status.HTTP_201_CREATED)
def create_lot(body: LotCreate, db: Session = Depends(get_db)) -> LotOutput:
    return LotService(db).create_lot(
        recipe_id=body.recipe_id,
        production_date=body.production_date,
        total_weight=body.total_weight,
        lines=body.lines,
        parent_lot_id=body.parent_lot_id,
        weight_unit=body.weight_unit,
        start_temp=body.start_temp,
        end_temp=body.end_temp,
    )


@router.patch("/{lot_id}", response_model=LotOutput)
def update_lot(lot_id: int, body: LotUpdate, db: Session = Depends(get_db)) -> LotOutput:
    return LotService(db).update_lot(lot_id, body)


@router.post("/{lot_id}/closures", response_model=ClosureOutput, status_code=status.HTTP_201_CREATED)
def close_lot(lot_id: int, body: ClosureCreate, db: Session = Depends(get_db)) -> ClosureOutput:
    return LotService(db).close_lot(
        lot_id,
        mode=body.mode,
        grams_consumed=body.grams_consumed,
        label_count=body.label_count,
        grams_per_package=body.grams_per_package,
        units=body.units,
        operator=body.operator,
        metadata=body.metadata,
    )
