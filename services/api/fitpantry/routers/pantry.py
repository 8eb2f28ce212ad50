from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..deps import get_db, get_current_user
from ..services import pantry_service

router = APIRouter()


@router.get("/", response_model=list[schemas.PantryItemOut])
def get_pantry_items(
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List pantry items, newest first."""
    return pantry_service.list_items(db, user.id)


@router.get("/stats", response_model=schemas.PantryStatsOut)
def get_pantry_stats(
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Item total and per-category counts. Missing categories mean zero."""
    total, counts = pantry_service.count_by_category(db, user.id)
    return schemas.PantryStatsOut(total_items=total, category_counts=counts)


@router.post("/", response_model=schemas.PantryItemOut, status_code=status.HTTP_201_CREATED)
def create_pantry_item(
    item_in: schemas.PantryItemIn,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a new pantry item."""
    return pantry_service.create_item(
        db, user.id, item_in.item_name, item_in.category, item_in.notes
    )


@router.put("/{item_id}", response_model=schemas.PantryItemOut)
def update_pantry_item(
    item_id: str,
    item_in: schemas.PantryItemIn,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Replace a pantry item's name, category and notes."""
    return pantry_service.update_item(
        db, user.id, item_id, item_in.item_name, item_in.category, item_in.notes
    )


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_pantry_item(
    item_id: str,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete a pantry item."""
    pantry_service.delete_item(db, user.id, item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
