"""
SQLAlchemy models package.
Import all models here to ensure they're registered with Base.metadata.
"""
from vendorhub.models.users import User, UserRole
from vendorhub.models.listings import Listing, ListingCategory, SubscriptionPlan, City, ServiceArea
from vendorhub.models.consumers import ConsumerProfile
from vendorhub.models.threads import Thread, ThreadStatus, Message
from vendorhub.models.reviews import Review
from vendorhub.models.saved_listings import SavedListing
from vendorhub.models.billing_events import ProcessedWebhookEvent
from vendorhub.models.appointments import Appointment, AppointmentStatus

__all__ = [
    "User",
    "UserRole",
    "Listing",
    "ListingCategory",
    "SubscriptionPlan",
    "City",
    "ServiceArea",
    "ConsumerProfile",
    "Thread",
    "ThreadStatus",
    "Message",
    "Review",
    "SavedListing",
    "ProcessedWebhookEvent",
    "Appointment",
    "AppointmentStatus",
]
