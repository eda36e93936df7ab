import logging

from ..extensions import db
from ..models import MaintenanceRecord, Notification, Property, User
from ..utils.email import send_email

log = logging.getLogger(__name__)


def format_aud(value):
    return f"A${float(value):,.2f}"


class NotificationService:
    """Creates in-app notifications and mirrors them by email when the user opted in"""

    def create_notification(self, user_id, title, message, type, related_entity_id=None,
                            related_entity_type=None, commit=True):
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            is_read=False,
            related_entity_id=related_entity_id,
            related_entity_type=related_entity_type,
        )
        db.session.add(notification)
        if commit:
            db.session.commit()

        self._email(user_id, title, message)
        return notification

    def _email(self, user_id, title, message):
        user = db.session.get(User, user_id)
        if user is None or not user.email_notifications or not user.email:
            return
        send_email(user.email, f"Equitystek: {title}", message)

    @staticmethod
    def _property(property_id):
        prop = db.session.get(Property, property_id)
        if prop is None:
            raise LookupError("Property not found")
        return prop

    def create_maintenance_due(self, user_id, property_id, description):
        prop = self._property(property_id)
        return self.create_notification(
            user_id,
            "Maintenance Due",
            f"Scheduled maintenance is due for your property: {prop.address or f'Property {property_id}'}. {description}",
            "maintenance_due",
            related_entity_id=property_id,
            related_entity_type="property",
        )

    def create_maintenance_completed(self, user_id, maintenance_id):
        record = db.session.get(MaintenanceRecord, maintenance_id)
        if record is None:
            raise LookupError("Maintenance record not found")
        prop = self._property(record.property_id)
        return self.create_notification(
            user_id,
            "Maintenance Completed",
            f"Maintenance task has been marked as completed for {prop.address or 'your property'}. "
            f"Category: {record.category}",
            "maintenance_completed",
            related_entity_id=maintenance_id,
            related_entity_type="maintenance",
        )

    def create_subscription_renewal(self, user_id, days_until_renewal):
        return self.create_notification(
            user_id,
            "Subscription Renewal",
            f"Your subscription will renew in {days_until_renewal} days. "
            "Please ensure your payment method is up to date.",
            "subscription_renewal",
            related_entity_type="subscription",
        )

    def create_property_update(self, user_id, property_id, update_type):
        prop = self._property(property_id)
        return self.create_notification(
            user_id,
            "Property Update",
            f"An update has been made to your property at {prop.address or f'Property {property_id}'}. "
            f"Update type: {update_type}",
            "property_update",
            related_entity_id=property_id,
            related_entity_type="property",
        )

    def create_valuation_update(self, user_id, property_id, new_value):
        prop = self._property(property_id)
        return self.create_notification(
            user_id,
            "Property Valuation Update",
            f"A new valuation has been calculated for your property at {prop.address or f'Property {property_id}'}. "
            f"New estimated value: {format_aud(new_value)}",
            "valuation_update",
            related_entity_id=property_id,
            related_entity_type="property",
        )

    def create_system_notice(self, message, title="System Notice", user_id=None):
        """Notify one user, or every active user when ``user_id`` is None."""
        if user_id is not None:
            return self.create_notification(user_id, title, message, "system_notice")

        notifications = []
        for user in User.query.filter_by(is_active=True).all():
            notifications.append(
                self.create_notification(user.id, title, message, "system_notice", commit=False)
            )
        db.session.commit()
        log.info("Broadcast system notice to %d users", len(notifications))
        return notifications


notification_service = NotificationService()
