from .notifications import notification_service
