# Services module
from app.services.address_classifier import AddressClassifier, ReferenceData, load_reference_data
from app.services.weight_slab_service import WeightSlabService
from app.services.rate_resolver import RateResolver
from app.services.rate_audit_service import RateAuditService
from app.services.rate_slab_registry import RateSlabRegistry
from app.services.reference_service import ReferenceService
from app.services.consignment_service import ConsignmentService

# Billing Services
from app.services.invoice_number_service import InvoiceNumberService
from app.services.billing_reconciler import BillingReconciler
from app.services.payment_allocation_service import PaymentAllocationService

__all__ = [
    "AddressClassifier",
    "ReferenceData",
    "load_reference_data",
    "WeightSlabService",
    "RateResolver",
    "RateAuditService",
    "RateSlabRegistry",
    "ReferenceService",
    "ConsignmentService",
    # Billing
    "InvoiceNumberService",
    "BillingReconciler",
    "PaymentAllocationService",
]
