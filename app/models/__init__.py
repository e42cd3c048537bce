# Models module - importing registers every table with Base.metadata
from app.models.reference import (
    DistanceCategory, Mode, ServiceType, DistanceSlab, MetroCity, StateNeighbor, WeightSlab,
)
from app.models.party import Party
from app.models.rate_slab import PartyRateSlab, RateAudit, ShipmentType, RateAuditAction
from app.models.consignment import ConsignmentRow
from app.models.billing import (
    Invoice, InvoiceLine, InvoiceNumberSequence, PartyPayment, PaymentAllocation,
)

__all__ = [
    "DistanceCategory",
    "Mode",
    "ServiceType",
    "DistanceSlab",
    "MetroCity",
    "StateNeighbor",
    "WeightSlab",
    "Party",
    "PartyRateSlab",
    "RateAudit",
    "ShipmentType",
    "RateAuditAction",
    "ConsignmentRow",
    "Invoice",
    "InvoiceLine",
    "InvoiceNumberSequence",
    "PartyPayment",
    "PaymentAllocation",
]
