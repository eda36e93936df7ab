from equitystek_backend.extensions import db

# Core Models
from .user import User, USER_ROLES
from .property import Property, PROPERTY_TYPES
from .maintenance import MaintenanceRecord, MAINTENANCE_CATEGORIES, MAINTENANCE_PRIORITIES, MAINTENANCE_STATUSES
from .valuation import Valuation

# Billing
from .subscription import Subscription, SubscriptionPlan
from .receipt import Receipt, RECEIPT_TYPES

# Notifications & documents
from .notification import Notification, NOTIFICATION_TYPES
from .document import Document, DocumentFolder
