from . import fcm, notifications, payments

__all__ = ["fcm", "notifications", "payments"]
