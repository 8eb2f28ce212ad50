"""Assistant turn orchestration.

A turn runs these steps in order, each failure stopping the rest:

1. validate the message text
2. resolve the target conversation (existing if owned, otherwise none yet)
3. persist the user message; a new conversation is created in the same commit
4. load and decrypt the owner's API key
5. assemble the profile/pantry system instruction
6. load the rolling history window (last N messages, oldest first)
7. call the completion provider: system + history + new user message
8. persist the assistant reply and return it with its conversation id

Provider failures do not fail the turn: a topic-flavoured fallback reply is
stored instead, tagged ``source="fallback"``. Steps 3-8 run under a
per-conversation lock so concurrent turns cannot interleave their history.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ..core.ai_client import ai_client
from ..errors import CompletionProviderError, CredentialMissingError, ValidationError
from ..infra.turn_lock import turn_lock
from ..models import Conversation, ConversationMessage, generate_uuid
from ..settings import settings
from . import conversation_service, profile_service
from .context_builder import assemble

logger = logging.getLogger("fitpantry.chat")

RECIPE_KEYWORDS = ("recipe", "meal")
WORKOUT_KEYWORDS = ("workout", "exercise")

RECIPE_FALLBACK = (
    "I'm having trouble connecting to generate a personalized recipe right now. "
    "Please try again in a moment, or check that your Gemini API key is valid."
)
WORKOUT_FALLBACK = (
    "I'm having trouble connecting to generate a personalized workout right now. "
    "Please try again in a moment, or check that your Gemini API key is valid."
)
GENERIC_FALLBACK = (
    "I'm having trouble processing your request right now. Please try again in a "
    "moment, or check that your Gemini API key is configured correctly in your profile."
)
FALLBACK_REPLIES = (RECIPE_FALLBACK, WORKOUT_FALLBACK, GENERIC_FALLBACK)


def fallback_reply(message: str) -> str:
    lowered = message.lower()
    if any(k in lowered for k in RECIPE_KEYWORDS):
        return RECIPE_FALLBACK
    if any(k in lowered for k in WORKOUT_KEYWORDS):
        return WORKOUT_FALLBACK
    return GENERIC_FALLBACK


@dataclass
class TurnResult:
    message: ConversationMessage
    conversation_id: str
    created_conversation: bool = False
    degraded: bool = False


class AssistantService:
    def __init__(self, completion=None, history_window: Optional[int] = None):
        self.completion = completion or ai_client
        self.history_window = settings.history_window if history_window is None else history_window

    def resolve_conversation(
        self, db: Session, owner_id: str, conversation_id: Optional[str]
    ) -> Optional[Conversation]:
        """The owned conversation for ``conversation_id``, or None to start a new one."""
        if not conversation_id or not conversation_id.strip():
            return None
        existing = conversation_service.get_conversation(db, owner_id, conversation_id.strip())
        if existing is None:
            # Deleted, foreign or stale: start over rather than lose the message.
            logger.info(
                f"Conversation {conversation_id} not found for user {owner_id}, creating new conversation"
            )
        return existing

    def build_messages(
        self, system_prompt: str, history: list[ConversationMessage], message: str
    ) -> list[dict]:
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": m.role, "content": m.content} for m in history)
        messages.append({"role": "user", "content": message})
        return messages

    def run_turn(
        self,
        db: Session,
        owner_id: str,
        message: Optional[str],
        conversation_id: Optional[str] = None,
    ) -> TurnResult:
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("Message is required", field="message")
        message = message.strip()

        conversation = self.resolve_conversation(db, owner_id, conversation_id)
        created = conversation is None
        # A new conversation's id is fixed up front so it can be locked before any write.
        lock_id = generate_uuid() if created else conversation.id

        with turn_lock(lock_id):
            if created:
                conversation, user_message = conversation_service.start_conversation(
                    db, owner_id, message, conversation_id=lock_id
                )
            else:
                user_message = conversation_service.append_message(
                    db, owner_id, conversation.id, "user", message
                )

            try:
                api_key = profile_service.load_api_key(db, owner_id)
            except CredentialMissingError as e:
                # The user message is already saved; let the client adopt the id.
                e.extra["conversationId"] = conversation.id
                raise

            system_prompt = assemble(db, owner_id)

            # History window excludes the message being answered; it is sent last.
            window = conversation_service.recent_messages(
                db, owner_id, conversation.id, self.history_window + 1
            )
            history = [m for m in window if m.id != user_message.id]
            history = history[-self.history_window:] if self.history_window > 0 else []

            messages = self.build_messages(system_prompt, history, message)

            degraded = False
            try:
                reply = self.completion.complete(messages, api_key=api_key)
                source = getattr(self.completion, "source", "ai")
            except CompletionProviderError as e:
                logger.warning(
                    f"Completion failed for conversation {conversation.id}, using fallback reply: {e.message}"
                )
                reply = fallback_reply(message)
                source = "fallback"
                degraded = True

            assistant_message = conversation_service.append_message(
                db, owner_id, conversation.id, "assistant", reply, source=source
            )

        logger.info(
            f"Turn complete conversation={conversation.id} created={created} source={source} history={len(history)}"
        )
        return TurnResult(
            message=assistant_message,
            conversation_id=conversation.id,
            created_conversation=created,
            degraded=degraded,
        )


assistant_service = AssistantService()
