"""Client-side chat state with optimistic conversations.

A conversation the user starts locally has a ``ProvisionalId`` until the
server answers its first turn; from then on it is a ``ConfirmedId``. The
two are distinct types, so a server id can never be mistaken for a local
one however it is spelled.

Every public method applies its state change in one step after its network
call returns, then publishes on ``ChatState.changed``.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Optional, Union

from .api import ApiError, FitPantryClient
from .events import Observable

logger = logging.getLogger("fitpantry.client")

PROVISIONAL_PREFIX = "local-"
NEW_CONVERSATION_TITLE = "New Conversation"


@dataclass(frozen=True)
class ProvisionalId:
    local_id: str

    @classmethod
    def new(cls) -> "ProvisionalId":
        return cls(f"{PROVISIONAL_PREFIX}{uuid.uuid4().hex}")


@dataclass(frozen=True)
class ConfirmedId:
    server_id: str


ConversationId = Union[ProvisionalId, ConfirmedId]


@dataclass
class ConversationEntry:
    id: ConversationId
    title: str
    last_message: str = ""
    time: str = ""

    @property
    def is_provisional(self) -> bool:
        return isinstance(self.id, ProvisionalId)

    @classmethod
    def from_server(cls, data: dict) -> "ConversationEntry":
        return cls(
            id=ConfirmedId(data["id"]),
            title=data.get("title") or NEW_CONVERSATION_TITLE,
            last_message=data.get("lastMessage") or "",
            time=data.get("time") or "",
        )


@dataclass
class ChatMessage:
    id: str
    role: str
    content: str
    created_at: Optional[str] = None
    pending: bool = False

    @classmethod
    def from_server(cls, data: dict) -> "ChatMessage":
        return cls(
            id=data["id"],
            role=data["role"],
            content=data["content"],
            created_at=data.get("createdAt"),
        )


class TurnInProgressError(RuntimeError):
    """A message was submitted while the previous one is still outstanding."""


@dataclass
class _Snapshot:
    conversations: list[ConversationEntry] = field(default_factory=list)
    selected: Optional[ConversationId] = None
    messages: list[ChatMessage] = field(default_factory=list)
    is_sending: bool = False


class ChatState:
    def __init__(self, client: FitPantryClient):
        self.client = client
        self.conversations: list[ConversationEntry] = []
        self.selected: Optional[ConversationId] = None
        self.messages: list[ChatMessage] = []
        self.is_sending = False
        self.last_error: Optional[str] = None
        self.changed: Observable[_Snapshot] = Observable()

    # --- helpers ---

    def _notify(self) -> None:
        # Copies, so later in-place edits never rewrite a published snapshot.
        self.changed.publish(_Snapshot(
            [replace(c) for c in self.conversations],
            self.selected,
            [replace(m) for m in self.messages],
            self.is_sending,
        ))

    def _settle(self, pending: ChatMessage) -> None:
        """Swap a pending message for a settled copy in the same position."""
        self.messages = [
            replace(m, pending=False) if m is pending else m for m in self.messages
        ]

    def _index_of(self, conversation_id: ConversationId) -> Optional[int]:
        for i, entry in enumerate(self.conversations):
            if entry.id == conversation_id:
                return i
        return None

    def get_entry(self, conversation_id: ConversationId) -> Optional[ConversationEntry]:
        i = self._index_of(conversation_id)
        return None if i is None else self.conversations[i]

    def _confirm(
        self, old_id: ConversationId, server_id: str, last_message: Optional[str] = None
    ) -> ConfirmedId:
        """Swap ``old_id`` for the server's id in the same list position."""
        new_id = ConfirmedId(server_id)
        i = self._index_of(old_id)
        if i is not None:
            entry = self.conversations[i]
            self.conversations[i] = replace(
                entry,
                id=new_id,
                last_message=last_message if last_message is not None else entry.last_message,
                time="Just now",
            )
        elif self._index_of(new_id) is None:
            self.conversations.insert(
                0, ConversationEntry(new_id, NEW_CONVERSATION_TITLE, last_message or "", "Just now")
            )
        if self.selected == old_id:
            self.selected = new_id
        if old_id != new_id:
            logger.info(f"Conversation {old_id} confirmed as {server_id}")
        return new_id

    # --- operations ---

    def create_new_conversation(self) -> ProvisionalId:
        conversation_id = ProvisionalId.new()
        self.conversations.insert(0, ConversationEntry(conversation_id, NEW_CONVERSATION_TITLE))
        self.selected = conversation_id
        self.messages = []
        self.last_error = None
        self._notify()
        return conversation_id

    def refresh_conversations(self) -> list[ConversationEntry]:
        """Reload from the server, keeping unconfirmed local conversations on top."""
        try:
            server = [ConversationEntry.from_server(c) for c in self.client.list_conversations()]
        except ApiError as e:
            self.last_error = e.message
            self._notify()
            return self.conversations

        provisional = [e for e in self.conversations if e.is_provisional]
        self.conversations = provisional + server

        if isinstance(self.selected, ConfirmedId) and self._index_of(self.selected) is None:
            self.selected = None
            self.messages = []
        self._notify()
        return self.conversations

    def select(self, conversation_id: ConversationId) -> None:
        if self._index_of(conversation_id) is None:
            raise KeyError(conversation_id)
        self.selected = conversation_id
        self.messages = []
        if isinstance(conversation_id, ConfirmedId):
            self.fetch_messages()
        else:
            self._notify()

    def fetch_messages(self) -> list[ChatMessage]:
        if not isinstance(self.selected, ConfirmedId):
            self.messages = []
            self._notify()
            return self.messages
        try:
            data = self.client.list_messages(self.selected.server_id)
        except ApiError as e:
            self.last_error = e.message
            self._notify()
            return self.messages
        self.messages = [ChatMessage.from_server(m) for m in data]
        self._notify()
        return self.messages

    def send_message(self, text: str) -> Optional[ChatMessage]:
        """Send one turn in the selected conversation.

        Returns the assistant reply, or None on failure (see ``last_error``).
        A provisional conversation is sent without an id and becomes
        confirmed with whatever id the server answers with.
        """
        if self.is_sending:
            raise TurnInProgressError("A message is already being sent")
        text = (text or "").strip()
        if not text:
            return None

        if self.selected is None:
            self.create_new_conversation()
        target = self.selected
        server_id = target.server_id if isinstance(target, ConfirmedId) else None

        optimistic = ChatMessage(id=f"pending-{uuid.uuid4().hex}", role="user", content=text, pending=True)
        self.messages.append(optimistic)
        self.is_sending = True
        self.last_error = None
        self._notify()

        try:
            data = self.client.send_turn(text, server_id)
        except ApiError as e:
            self.last_error = e.message
            if e.conversation_id:
                # The server kept the user message before failing.
                self._settle(optimistic)
                self._confirm(target, e.conversation_id, last_message=text)
            else:
                self.messages = [m for m in self.messages if m is not optimistic]
            self.is_sending = False
            self._notify()
            return None
        finally:
            self.is_sending = False

        reply = ChatMessage.from_server(data)
        self._settle(optimistic)
        self._confirm(target, data["conversationId"], last_message=reply.content)
        self.messages.append(reply)
        self._notify()
        return reply

    def delete_conversation(self, conversation_id: ConversationId) -> bool:
        """Remove a conversation. Only confirmed ones need the server."""
        if isinstance(conversation_id, ConfirmedId):
            try:
                self.client.delete_conversation(conversation_id.server_id)
            except ApiError as e:
                self.last_error = e.message
                self._notify()
                return False

        self.conversations = [c for c in self.conversations if c.id != conversation_id]
        if self.selected == conversation_id:
            self.selected = None
            self.messages = []
        self._notify()
        return True
