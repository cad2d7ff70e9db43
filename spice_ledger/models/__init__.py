"""SQLAlchemy models. Importing this package registers every table on Base.metadata."""

from spice_ledger.models.caterer import Caterer
from spice_ledger.models.distribution import Distribution, DistributionItem, DistributionStatus
from spice_ledger.models.caterer_payment import CatererPayment, PaymentMode
from spice_ledger.models.payment_reminder import PaymentReminder, ReminderStatus

__all__ = [
    "Caterer",
    "Distribution",
    "DistributionItem",
    "DistributionStatus",
    "CatererPayment",
    "PaymentMode",
    "PaymentReminder",
    "ReminderStatus",
]
