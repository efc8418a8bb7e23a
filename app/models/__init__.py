from app.db.base import Base
from app.models.audit import FairAuditLog
from app.models.fair import FairBooking, FairEvent, FairSlot, FairSlotAllocation
from app.models.profile import UserProfile

__all__ = [
    "Base",
    "FairAuditLog",
    "FairEvent",
    "FairSlot",
    "FairSlotAllocation",
    "FairBooking",
    "UserProfile",
]
