"""
Ledger error taxonomy.

Services raise these; the API layer maps each class to an HTTP status
through ``status_code`` (see ``spice_ledger.main``). Nothing here is
retried automatically.
"""
from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base class for all billing ledger errors."""

    status_code: int = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "type": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(LedgerError):
    """Malformed quantity, rate, amount, status or payload."""

    status_code = 422


class OverpaymentError(LedgerError):
    """Payment amount exceeds the distribution's balance due."""

    status_code = 400

    def __init__(self, amount, balance_due, distribution_id=None):
        self.amount = amount
        self.balance_due = balance_due
        super().__init__(
            f"Payment amount ({amount}) exceeds balance due ({balance_due})",
            {
                "amount": str(amount),
                "balance_due": str(balance_due),
                "distribution_id": str(distribution_id) if distribution_id else None,
            },
        )


class StaleStateError(LedgerError):
    """The distribution changed since the caller read it."""

    status_code = 409


class NotFoundError(LedgerError):
    """Distribution, caterer, payment or reminder does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} {entity_id} not found",
            {"entity": entity, "id": str(entity_id)},
        )


class RelatedRecordsError(LedgerError):
    """Deletion blocked by existing bills or payments."""

    status_code = 409

    def __init__(self, message: str, bills: int = 0, payments: int = 0):
        self.bills = bills
        self.payments = payments
        super().__init__(
            message,
            {
                "related_records": {
                    "bills": bills,
                    "payments": payments,
                    "total": bills + payments,
                }
            },
        )
