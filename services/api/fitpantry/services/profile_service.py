"""Owner-scoped profile access and the encrypted API key path.

Profiles are created lazily by the first upsert. A missing profile is a
normal state: readers get ``None`` and render defaults.
"""

import logging
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from ..core.crypto import CredentialVault, get_vault
from ..errors import CredentialMissingError, DecryptionError, ValidationError
from ..models import UserProfile

logger = logging.getLogger("fitpantry.profile")

PROFILE_FIELDS = ("health_goal", "dietary_preferences", "fitness_level", "api_key")


def get_profile(db: Session, owner_id: str) -> Optional[UserProfile]:
    return db.get(UserProfile, owner_id)


def _clean_text(value: Any, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    return value.strip() or None


def _clean_preferences(value: Any) -> list[str]:
    if value is None:
        return []
    # A bare string is a sequence in Python but never a valid preference list.
    if not isinstance(value, (list, tuple)):
        raise ValidationError("dietaryPreferences must be an array", field="dietaryPreferences")
    prefs = []
    for pref in value:
        if not isinstance(pref, str):
            raise ValidationError(
                "dietaryPreferences must contain only strings", field="dietaryPreferences"
            )
        if pref.strip():
            prefs.append(pref.strip())
    return prefs


def upsert_profile(
    db: Session,
    owner_id: str,
    fields: Mapping[str, Any],
    vault: Optional[CredentialVault] = None,
) -> UserProfile:
    """Create or update the owner's profile.

    Only keys present in ``fields`` are applied; a new profile gets nulls
    for the rest. A raw ``api_key`` is shape-checked, then encrypted, before
    anything is written. Raises ValidationError or EncryptionError with the
    stored profile untouched.
    """
    unknown = set(fields) - set(PROFILE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown profile fields: {', '.join(sorted(unknown))}")

    changes: dict[str, Any] = {}
    if "health_goal" in fields:
        changes["health_goal"] = _clean_text(fields["health_goal"], "healthGoal")
    if "fitness_level" in fields:
        changes["fitness_level"] = _clean_text(fields["fitness_level"], "fitnessLevel")
    if "dietary_preferences" in fields:
        changes["dietary_preferences"] = _clean_preferences(fields["dietary_preferences"])

    raw_key = fields.get("api_key")
    if raw_key:
        vault = vault or get_vault()
        if not vault.looks_valid(raw_key):
            raise ValidationError("Invalid Gemini API key format", field="apiKey")
        # EncryptionError propagates before any write.
        changes["api_key_encrypted"] = vault.encrypt(raw_key)
        changes["has_api_key"] = True

    profile = get_profile(db, owner_id)
    if profile is None:
        profile = UserProfile(
            user_id=owner_id,
            health_goal=None,
            dietary_preferences=[],
            fitness_level=None,
            api_key_encrypted=None,
            has_api_key=False,
        )
        db.add(profile)

    for field, value in changes.items():
        setattr(profile, field, value)

    db.commit()
    db.refresh(profile)
    logger.info(
        "Profile saved for user %s (fields=%s)",
        owner_id, sorted(k for k in changes if k != "api_key_encrypted"),
    )
    return profile


def clear_api_key(db: Session, owner_id: str) -> Optional[UserProfile]:
    profile = get_profile(db, owner_id)
    if profile is None:
        return None
    profile.api_key_encrypted = None
    profile.has_api_key = False
    db.commit()
    db.refresh(profile)
    logger.info("API key removed for user %s", owner_id)
    return profile


def load_api_key(
    db: Session, owner_id: str, vault: Optional[CredentialVault] = None
) -> str:
    """Decrypted provider key for the owner, or CredentialMissingError."""
    profile = get_profile(db, owner_id)
    if profile is None or not profile.has_api_key or not profile.api_key_encrypted:
        raise CredentialMissingError()

    vault = vault or get_vault()
    try:
        return vault.decrypt(profile.api_key_encrypted)
    except DecryptionError:
        logger.warning("Stored API key for user %s could not be decrypted", owner_id)
        raise CredentialMissingError()
