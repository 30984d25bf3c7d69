"""
Labels router: flattened, allergen-annotated label data for a lot.
"""

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import LabelOutput
from trace_api.services.domain import LabelService


router = APIRouter(prefix="/api/labels", tags=["labels"])


@router.get("/{lot_id}", response_model=LabelOutput)
def get_label(lot_id: int, today: date | None = None, db: Session = Depends(get_db)) -> LabelOutput:
    return LabelService(db).flatten_for_label(lot_id, today=today)
