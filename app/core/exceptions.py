"""
Billing error taxonomy.

Every failure the rate/billing core can report is an instance of BillingError.
Services raise them; the HTTP layer renders them as structured payloads
({"error_kind", "message", "diagnostics"}) so operators see exactly which
lookup or invariant failed. Diagnostics never carry secrets and are safe to
show as-is.
"""
from typing import Any, Dict, List, Optional

from fastapi import status


class BillingError(Exception):
    """Base class for all expected, reportable billing outcomes."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Billing operation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        diagnostics: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.diagnostics = diagnostics or {}
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_kind": self.kind,
            "message": self.message,
            "diagnostics": self.diagnostics,
        }


# ==================== Lookup-not-found ====================

class LookupNotFoundError(BillingError):
    """Caller-correctable: some input did not resolve to a master record."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class ModeNotRecognized(LookupNotFoundError):
    default_message = "Mode not recognized"


class ServiceTypeNotRecognized(LookupNotFoundError):
    default_message = "Service type not recognized"


class PartyNotFound(LookupNotFoundError):
    default_message = "Party not found"


class NoMatchingWeightSlab(LookupNotFoundError):
    default_message = "No matching weight slab"


class DistanceCategoryUnresolvable(LookupNotFoundError):
    default_message = "Unable to resolve distance category"


class MissingShipmentData(LookupNotFoundError):
    default_message = "Consignment row lacks data needed for pricing"


class RateSlabNotFound(LookupNotFoundError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Rate not found"


class WeightSlabNotFound(LookupNotFoundError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Weight slab not found"


class ConsignmentNotFound(LookupNotFoundError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Consignment rows not found"


class InvoiceNotFound(LookupNotFoundError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Invoice not found"


class PaymentNotFound(LookupNotFoundError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Party payment not found"


# ==================== Configuration-missing ====================

class ConfigurationMissingError(BillingError):
    """Not a bug: a rate or master entry has simply not been configured yet."""
    status_code = status.HTTP_404_NOT_FOUND


class NoRateConfigured(ConfigurationMissingError):
    default_message = "No rate configured for this combination"


# ==================== Invariant-violation ====================

class InvariantViolationError(BillingError):
    """Batch-level reject; nothing was written."""
    status_code = status.HTTP_409_CONFLICT


class MixedPartyBatch(InvariantViolationError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "All rows must belong to the same party"


class AlreadyInvoiced(InvariantViolationError):
    default_message = "Some consignments are already invoiced"

    @classmethod
    def for_identifiers(cls, identifiers: List[str], preview_limit: int) -> "AlreadyInvoiced":
        shown = identifiers[:preview_limit]
        remainder = max(len(identifiers) - preview_limit, 0)
        details = ", ".join(shown)
        if remainder:
            details = f"{details} and {remainder} more"
        return cls(
            message=f"{cls.default_message}: {details}",
            diagnostics={
                "consignments": shown,
                "more_count": remainder,
                "total_count": len(identifiers),
            },
        )


class DuplicateMapping(InvariantViolationError):
    default_message = "Duplicate mapping exists"


class EmptyBatch(InvariantViolationError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "No consignments left to invoice"


class OverlappingWeightSlab(InvariantViolationError):
    default_message = "Weight slab overlaps an existing active slab"


class InvoiceHasPayments(InvariantViolationError):
    default_message = "Invoice has payment allocations and cannot be deleted"


class AllocationMismatch(InvariantViolationError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Payment allocations are inconsistent with the payment"


class InvalidWeightRange(InvariantViolationError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "min_weight_grams must be less than max_weight_grams"
