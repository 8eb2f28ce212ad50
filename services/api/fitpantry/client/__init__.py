from .api import ApiError, FitPantryClient
from .events import Observable
from .state import (
    ChatMessage,
    ChatState,
    ConfirmedId,
    ConversationEntry,
    ProvisionalId,
    TurnInProgressError,
)

__all__ = [
    "ApiError",
    "ChatMessage",
    "ChatState",
    "ConfirmedId",
    "ConversationEntry",
    "FitPantryClient",
    "Observable",
    "ProvisionalId",
    "TurnInProgressError",
]
