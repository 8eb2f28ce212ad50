"""Owner-scoped conversation and message storage.

Invariants kept here:
- a message is only ever attached to a conversation owned by the same user
- appending a message and bumping the conversation's ``last_message`` /
  ``updated_at`` happen in one transaction
- message ``created_at`` is strictly increasing within a conversation, so
  ordering by it is a total order and ``updated_at`` never moves backwards
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import as_utc, utcnow
from ..errors import NotFoundError, ValidationError
from ..models import Conversation, ConversationMessage, MESSAGE_ROLES

logger = logging.getLogger("fitpantry.conversations")

TITLE_WORDS = 4
TITLE_MAX_CHARS = 30
DEFAULT_TITLE = "New Conversation"

_TICK = timedelta(microseconds=1)


@dataclass(frozen=True)
class ConversationSummary:
    id: str
    title: str
    last_message: str
    time: str


def derive_title(message: str) -> str:
    """First few words of the message, capped with an ellipsis."""
    words = " ".join((message or "").strip().split()[:TITLE_WORDS])
    if len(words) > TITLE_MAX_CHARS:
        words = words[:TITLE_MAX_CHARS].rstrip() + "..."
    return words.strip() or DEFAULT_TITLE


def relative_time(updated_at: datetime, now: Optional[datetime] = None) -> str:
    now = as_utc(now or utcnow())
    diff_mins = int((now - as_utc(updated_at)).total_seconds() // 60)

    if diff_mins < 1:
        return "Just now"
    if diff_mins < 60:
        return f"{diff_mins} min ago"

    diff_hours = diff_mins // 60
    if diff_hours < 24:
        return f"{diff_hours} hour{'s' if diff_hours > 1 else ''} ago"

    diff_days = diff_hours // 24
    return f"{diff_days} day{'s' if diff_days > 1 else ''} ago"


def list_conversations(
    db: Session, owner_id: str, now: Optional[datetime] = None
) -> list[ConversationSummary]:
    """Most recently updated first, with a relative time label."""
    now = now or utcnow()
    conversations = db.scalars(
        select(Conversation)
        .where(Conversation.user_id == owner_id)
        .order_by(Conversation.updated_at.desc(), Conversation.id)
    )
    return [
        ConversationSummary(
            id=c.id,
            title=c.title,
            last_message=c.last_message or "",
            time=relative_time(c.updated_at, now),
        )
        for c in conversations
    ]


def get_conversation(db: Session, owner_id: str, conversation_id: str) -> Optional[Conversation]:
    # One query on (id, owner): no separate existence check to leak through.
    return db.scalar(
        select(Conversation).where(
            Conversation.id == conversation_id,
            Conversation.user_id == owner_id,
        )
    )


def create_conversation(
    db: Session, owner_id: str, title: str, first_message: str
) -> Conversation:
    now = utcnow()
    conversation = Conversation(
        user_id=owner_id,
        title=title or DEFAULT_TITLE,
        last_message=first_message,
        created_at=now,
        updated_at=now,
    )
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    logger.info("Conversation %s created for user %s", conversation.id, owner_id)
    return conversation


def start_conversation(
    db: Session, owner_id: str, message: str, conversation_id: Optional[str] = None
) -> tuple[Conversation, ConversationMessage]:
    """Create a conversation together with its first user message, in one commit."""
    now = utcnow()
    conversation = Conversation(
        user_id=owner_id,
        title=derive_title(message),
        last_message=message,
        created_at=now,
        updated_at=now,
    )
    if conversation_id:
        conversation.id = conversation_id
    first = ConversationMessage(
        user_id=owner_id,
        conversation=conversation,
        role="user",
        content=message,
        source="user",
        created_at=now,
    )
    db.add_all([conversation, first])
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error("Starting a conversation for user %s failed", owner_id)
        raise
    db.refresh(conversation)
    db.refresh(first)
    logger.info("Conversation %s created for user %s", conversation.id, owner_id)
    return conversation, first


def list_messages(db: Session, owner_id: str, conversation_id: str) -> list[ConversationMessage]:
    """Oldest first. Unknown or foreign conversations read as empty."""
    return list(
        db.scalars(
            select(ConversationMessage)
            .where(
                ConversationMessage.conversation_id == conversation_id,
                ConversationMessage.user_id == owner_id,
            )
            .order_by(ConversationMessage.created_at.asc(), ConversationMessage.id)
        )
    )


def recent_messages(
    db: Session, owner_id: str, conversation_id: str, limit: int
) -> list[ConversationMessage]:
    """The newest ``limit`` messages, returned oldest first."""
    rows = list(
        db.scalars(
            select(ConversationMessage)
            .where(
                ConversationMessage.conversation_id == conversation_id,
                ConversationMessage.user_id == owner_id,
            )
            .order_by(ConversationMessage.created_at.desc(), ConversationMessage.id.desc())
            .limit(limit)
        )
    )
    rows.reverse()
    return rows


def append_message(
    db: Session,
    owner_id: str,
    conversation_id: str,
    role: str,
    content: str,
    source: Optional[str] = None,
) -> ConversationMessage:
    if role not in MESSAGE_ROLES:
        raise ValidationError(f"Invalid role: {role}", field="role")

    conversation = get_conversation(db, owner_id, conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation not found")

    now = utcnow()
    previous = as_utc(conversation.updated_at)
    created_at = now if now > previous else previous + _TICK

    message = ConversationMessage(
        user_id=conversation.user_id,
        conversation_id=conversation.id,
        role=role,
        content=content,
        source=source or ("user" if role == "user" else "ai"),
        created_at=created_at,
    )
    db.add(message)
    conversation.last_message = content
    conversation.updated_at = created_at

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error("Appending message to conversation %s failed", conversation_id)
        raise
    db.refresh(message)
    return message


def delete_conversation(db: Session, owner_id: str, conversation_id: str) -> None:
    """Remove the conversation and all its messages in one transaction."""
    conversation = get_conversation(db, owner_id, conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation not found")

    try:
        db.execute(
            delete(ConversationMessage).where(
                ConversationMessage.conversation_id == conversation_id,
                ConversationMessage.user_id == owner_id,
            )
        )
        db.delete(conversation)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error("Deleting conversation %s failed", conversation_id)
        raise
    logger.info("Conversation %s deleted for user %s", conversation_id, owner_id)
