# Services module
from spice_ledger.services.billing_ledger import BillingLedgerService
from spice_ledger.services.balance_sync_service import BalanceSyncService
from spice_ledger.services.caterer_service import CatererService
from spice_ledger.services.distribution_service import DistributionService
from spice_ledger.services.reminder_service import ReminderService

__all__ = [
    "BillingLedgerService",
    "BalanceSyncService",
    "CatererService",
    "DistributionService",
    "ReminderService",
]
