"""
Router for the user profile and its stored API key.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..models import User
from ..schemas import ProfileOut, ProfileUpdate
from ..deps import get_db, get_current_user
from ..services import profile_service

router = APIRouter()


@router.get("/profile", response_model=ProfileOut)
def get_profile(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Current profile, or empty defaults if none saved yet."""
    return ProfileOut.from_profile(profile_service.get_profile(db, user.id))


@router.put("/profile", response_model=ProfileOut)
def update_profile(
    update: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Upsert the profile. Omitted fields keep their stored value."""
    fields = update.model_dump(exclude_unset=True)
    profile = profile_service.upsert_profile(db, user.id, fields)
    return ProfileOut.from_profile(profile, message="Profile updated successfully")


@router.delete("/profile/api-key", response_model=ProfileOut)
def delete_api_key(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    profile = profile_service.clear_api_key(db, user.id)
    return ProfileOut.from_profile(profile, message="API key removed")
