"""citypulse - Taipei city assistant and dashboard orchestration."""

from .dashboard import DashboardResolver
from .session import ConversationSession
from .types import ComponentRef, DashboardQuery, DashboardState, Message, SessionState

__version__ = "0.1.0"

__all__ = [
    "ComponentRef",
    "ConversationSession",
    "DashboardQuery",
    "DashboardResolver",
    "DashboardState",
    "Message",
    "SessionState",
]
