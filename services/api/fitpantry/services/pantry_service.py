"""Owner-scoped pantry inventory access.

The owner id always comes from the authenticated caller, never from a
request payload. Lookups for update/delete filter on id AND owner in one
query, so a foreign id is indistinguishable from a missing one.
"""

import logging
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..models import PantryItem

logger = logging.getLogger("fitpantry.pantry")


def _clean_required(value: Optional[str], field: str, label: str) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} is required", field=field)
    return value.strip()


def _clean_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    notes = notes.strip()
    return notes or None


def _get_owned(db: Session, owner_id: str, item_id: str) -> PantryItem:
    item = db.scalar(
        select(PantryItem).where(
            PantryItem.id == item_id,
            PantryItem.user_id == owner_id,
        )
    )
    if item is None:
        raise NotFoundError("Item not found")
    return item


def list_items(db: Session, owner_id: str) -> list[PantryItem]:
    """All items for the owner, newest added first."""
    return list(
        db.scalars(
            select(PantryItem)
            .where(PantryItem.user_id == owner_id)
            .order_by(PantryItem.added_at.desc(), PantryItem.id.desc())
        )
    )


def create_item(
    db: Session,
    owner_id: str,
    item_name: Optional[str],
    category: Optional[str],
    notes: Optional[str] = None,
) -> PantryItem:
    item = PantryItem(
        user_id=owner_id,
        item_name=_clean_required(item_name, "itemName", "Item name"),
        category=_clean_required(category, "category", "Category"),
        notes=_clean_notes(notes),
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info("Pantry item %s added for user %s", item.id, owner_id)
    return item


def update_item(
    db: Session,
    owner_id: str,
    item_id: str,
    item_name: Optional[str],
    category: Optional[str],
    notes: Optional[str] = None,
) -> PantryItem:
    name = _clean_required(item_name, "itemName", "Item name")
    cat = _clean_required(category, "category", "Category")

    item = _get_owned(db, owner_id, item_id)
    item.item_name = name
    item.category = cat
    item.notes = _clean_notes(notes)
    db.commit()
    db.refresh(item)
    return item


def delete_item(db: Session, owner_id: str, item_id: str) -> None:
    item = _get_owned(db, owner_id, item_id)
    db.delete(item)
    db.commit()
    logger.info("Pantry item %s deleted for user %s", item_id, owner_id)


def count_by_category(db: Session, owner_id: str) -> tuple[int, dict[str, int]]:
    """(total, {category: count}). Categories the owner has none of are absent."""
    rows = db.execute(
        select(PantryItem.category, func.count(PantryItem.id))
        .where(PantryItem.user_id == owner_id)
        .group_by(PantryItem.category)
        .order_by(PantryItem.category)
    ).all()
    counts = {category: int(count) for category, count in rows}
    return sum(counts.values()), counts
