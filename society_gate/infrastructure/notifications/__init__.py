from .client import NotificationClient, notification_client

__all__ = ["NotificationClient", "notification_client"]
