"""Schema package exports."""

from .chat_sessions import ChatSession
from .notifications import Notification
from .payments import Booking, CommissionCollection, Payment
from .push_tokens import PushToken

__all__ = ["Booking", "ChatSession", "CommissionCollection", "Notification", "Payment", "PushToken"]
