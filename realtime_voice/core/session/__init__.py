from .session_store import (
    ConversationSession,
    ConversationSessionStore,
    InMemoryConversationSessionStore,
)
from .history import trim_history

__all__ = [
    "ConversationSession",
    "ConversationSessionStore",
    "InMemoryConversationSessionStore",
    "trim_history",
]
