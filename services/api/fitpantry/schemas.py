"""Pydantic schemas for FitPantry API.

Request/response models for:
- Auth (register / login)
- Pantry items and stats
- Profile
- Chat turns, conversations and messages

Wire format is camelCase; Python attributes stay snake_case.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .core.clock import as_utc
from .models import UserProfile

UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# --- Auth ---

class RegisterRequest(ApiModel):
    email: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None


class LoginRequest(ApiModel):
    email: str
    password: str


class UserOut(ApiModel):
    id: str
    email: str


class LoginResponse(ApiModel):
    token: str
    user: UserOut


# --- Pantry ---

class PantryItemIn(ApiModel):
    # Presence is checked by the service so the error names the field.
    item_name: Optional[str] = None
    category: Optional[str] = None
    notes: Optional[str] = None


class PantryItemOut(ApiModel):
    id: str
    item_name: str
    category: str
    notes: Optional[str] = None
    added_at: UtcDatetime


class PantryStatsOut(ApiModel):
    total_items: int
    category_counts: dict[str, int]


# --- Profile ---

class ProfileUpdate(ApiModel):
    health_goal: Optional[str] = None
    dietary_preferences: Optional[list[str]] = None
    fitness_level: Optional[str] = None
    api_key: Optional[str] = None


class ProfileOut(ApiModel):
    health_goal: str = ""
    dietary_preferences: list[str] = []
    fitness_level: str = ""
    has_api_key: bool = False
    updated_at: Optional[UtcDatetime] = None
    message: Optional[str] = None

    @classmethod
    def from_profile(cls, profile: Optional[UserProfile], message: Optional[str] = None) -> "ProfileOut":
        """Absent profile renders as empty defaults, never as an error."""
        if profile is None:
            return cls(message=message)
        return cls(
            health_goal=profile.health_goal or "",
            dietary_preferences=list(profile.dietary_preferences or []),
            fitness_level=profile.fitness_level or "",
            has_api_key=bool(profile.has_api_key),
            updated_at=profile.updated_at,
            message=message,
        )


# --- Chat ---

class ChatTurnRequest(ApiModel):
    message: Optional[str] = None
    conversation_id: Optional[str] = None


class ChatTurnResponse(ApiModel):
    id: str
    role: Literal["assistant"] = "assistant"
    content: str
    created_at: UtcDatetime
    conversation_id: str


class ConversationOut(ApiModel):
    id: str
    title: str
    last_message: str
    time: str


class ConversationListOut(ApiModel):
    conversations: list[ConversationOut]


class MessageOut(ApiModel):
    id: str
    role: Literal["user", "assistant"]
    content: str
    created_at: UtcDatetime


class MessageListOut(ApiModel):
    messages: list[MessageOut]


class ConversationDeletedOut(ApiModel):
    message: str
    deleted_conversation_id: str
