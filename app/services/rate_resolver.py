"""
Rate resolution: shipment context -> the one applicable party rate slab and
its priced breakdown.

Each lookup step raises its own BillingError so callers can tell which
input failed to resolve:

    mode -> service type -> distance slab -> weight slab -> party -> rate
"""
import logging
import re
import uuid
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Type, Union

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ModeNotRecognized,
    ServiceTypeNotRecognized,
    PartyNotFound,
    DistanceCategoryUnresolvable,
    NoRateConfigured,
)
from app.models.party import Party, normalize_party_name
from app.models.rate_slab import PartyRateSlab, ShipmentType
from app.models.reference import Mode, ServiceType, WeightSlab
from app.schemas.rate_slab import ResolveRateRequest
from app.services.address_classifier import (
    AddressClassifier,
    DistanceClassification,
    ReferenceData,
    SlabRef,
    load_reference_data,
)
from app.services.weight_slab_service import WeightSlabService


logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value) -> Decimal:
    """Round half-up to 2 decimal places."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_code(value: Optional[str]) -> str:
    """'Non Document' -> 'NON_DOCUMENT'"""
    return re.sub(r"[^A-Z0-9]+", "_", (value or "").strip().upper()).strip("_")


@dataclass(frozen=True)
class RateBreakdown:
    """Priced components, each rounded to 2dp before being summed."""
    base: Decimal
    fuel_pct: Decimal
    fuel: Decimal
    packing: Decimal
    handling: Decimal
    gst_pct: Decimal
    gst: Decimal
    subtotal: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "base": self.base,
            "fuel_pct": self.fuel_pct,
            "fuel": self.fuel,
            "packing": self.packing,
            "handling": self.handling,
            "gst_pct": self.gst_pct,
            "gst": self.gst,
            "subtotal": self.subtotal,
            "total": self.total,
        }

    def to_json(self) -> dict:
        return {key: str(value) for key, value in self.to_dict().items()}

    @classmethod
    def from_json(cls, data: dict) -> "RateBreakdown":
        return cls(**{key: to_decimal(data.get(key)) for key in cls.__dataclass_fields__})


def compute_breakdown(
    base,
    fuel_pct=ZERO,
    packing=ZERO,
    handling=ZERO,
    gst_pct=ZERO,
) -> RateBreakdown:
    """
    fuel     = base * fuel_pct / 100
    subtotal = base + fuel + packing + handling
    gst      = subtotal * gst_pct / 100
    total    = subtotal + gst
    """
    base = round2(base)
    fuel_pct = to_decimal(fuel_pct)
    packing = round2(packing)
    handling = round2(handling)
    gst_pct = to_decimal(gst_pct)

    fuel = round2(base * fuel_pct / HUNDRED)
    subtotal = round2(base + fuel + packing + handling)
    gst = round2(subtotal * gst_pct / HUNDRED)
    total = round2(subtotal + gst)

    return RateBreakdown(
        base=base,
        fuel_pct=fuel_pct,
        fuel=fuel,
        packing=packing,
        handling=handling,
        gst_pct=gst_pct,
        gst=gst,
        subtotal=subtotal,
        total=total,
    )


@dataclass
class ResolvedRate:
    rate_slab: PartyRateSlab
    party: Party
    mode: Mode
    service_type: ServiceType
    shipment_type: str
    distance_slab: SlabRef
    weight_slab: WeightSlab
    breakdown: RateBreakdown
    classification: Optional[DistanceClassification] = None

    def to_response(self) -> dict:
        return {
            "rate_slab_id": self.rate_slab.id,
            "party_id": self.party.id,
            "shipment_type": self.shipment_type,
            "mode_id": self.mode.id,
            "service_type_id": self.service_type.id,
            "distance_slab_id": self.distance_slab.id,
            "distance_category": self.distance_slab.code,
            "distance_title": self.distance_slab.title,
            "weight_slab_id": self.weight_slab.id,
            "weight_slab_name": self.weight_slab.slab_name,
            "breakdown": self.breakdown.to_dict(),
        }

    def pricing_meta(self) -> dict:
        """JSON document stored on a priced consignment row."""
        meta = {
            "rate_slab_id": str(self.rate_slab.id),
            "party_id": str(self.party.id),
            "shipment_type": self.shipment_type,
            "mode_id": str(self.mode.id),
            "service_type_id": str(self.service_type.id),
            "distance_slab_id": str(self.distance_slab.id),
            "distance_category": self.distance_slab.code,
            "weight_slab_id": str(self.weight_slab.id),
            "rate_breakup": self.breakdown.to_json(),
        }
        if self.classification is not None:
            meta["distance"] = self.classification.diagnostics()
        return meta


MasterModel = Union[Type[Mode], Type[ServiceType]]


class RateResolver:
    """Resolves a shipment context to a priced PartyRateSlab."""

    def __init__(self, db: AsyncSession, reference: Optional[ReferenceData] = None):
        self.db = db
        self.reference = reference
        self.weight_slabs = WeightSlabService(db)

    async def get_reference(self) -> ReferenceData:
        if self.reference is None:
            self.reference = await load_reference_data(self.db)
        return self.reference

    async def _match_master(self, model: MasterModel, raw: str):
        """Match by code, then by normalized code, then by title (case-insensitive)."""
        value = (raw or "").strip()
        if not value:
            return None

        candidates = [
            model.code == value.upper(),
            model.code == normalize_code(value),
            func.lower(model.title) == value.lower(),
        ]
        for condition in candidates:
            result = await self.db.execute(
                select(model).where(and_(model.is_active == True, condition)).limit(1)
            )
            found = result.scalar_one_or_none()
            if found is not None:
                return found
        return None

    async def resolve_mode(self, mode_code: str) -> Mode:
        mode = await self._match_master(Mode, mode_code)
        if mode is None:
            logger.warning(f"Mode not recognized: {mode_code!r}")
            raise ModeNotRecognized(
                message=f"Mode not recognized: {mode_code}",
                diagnostics={"mode": mode_code},
            )
        return mode

    async def resolve_service_type(self, service_type_code: str) -> ServiceType:
        service_type = await self._match_master(ServiceType, service_type_code)
        if service_type is None:
            logger.warning(f"Service type not recognized: {service_type_code!r}")
            raise ServiceTypeNotRecognized(
                message=f"Service type not recognized: {service_type_code}",
                diagnostics={"service_type": service_type_code},
            )
        return service_type

    async def resolve_distance(
        self,
        origin_address: Optional[str],
        destination_address: Optional[str],
        region: Optional[str] = None,
        distance_slab_id: Optional[uuid.UUID] = None,
    ) -> tuple[SlabRef, Optional[DistanceClassification]]:
        reference = await self.get_reference()

        if distance_slab_id is not None:
            for slab in reference.distance_slabs.values():
                if slab.id == distance_slab_id:
                    return slab, None
            raise DistanceCategoryUnresolvable(
                message="Distance slab not found",
                diagnostics={"distance_slab_id": str(distance_slab_id)},
            )

        classification = AddressClassifier(reference).classify(origin_address, destination_address)
        slab = reference.slab_for(classification.category)
        if slab is not None:
            return slab, classification

        # Region title fallback
        slab = reference.slab_by_title(region)
        if slab is not None:
            return slab, classification

        diagnostics = classification.diagnostics()
        diagnostics["region"] = region
        diagnostics["origin_address"] = origin_address
        diagnostics["destination_address"] = destination_address
        logger.warning(f"Distance category unresolvable: {diagnostics}")
        raise DistanceCategoryUnresolvable(diagnostics=diagnostics)

    async def resolve_weight(
        self,
        weight_grams: Optional[int],
        weight_slab_id: Optional[uuid.UUID] = None,
    ) -> WeightSlab:
        if weight_slab_id is not None:
            return await self.weight_slabs.get(weight_slab_id)
        return await self.weight_slabs.lookup(weight_grams)

    async def resolve_party(
        self,
        party_id: Optional[uuid.UUID] = None,
        party_name: Optional[str] = None,
    ) -> Party:
        party = None
        if party_id is not None:
            party = await self.db.get(Party, party_id)
        elif normalize_party_name(party_name):
            result = await self.db.execute(
                select(Party).where(Party.name_key == normalize_party_name(party_name))
            )
            party = result.scalar_one_or_none()

        if party is None:
            logger.warning(f"Party not found: id={party_id} name={party_name!r}")
            raise PartyNotFound(
                diagnostics={
                    "party_id": str(party_id) if party_id else None,
                    "party_name": party_name,
                },
            )
        return party

    async def find_rate_slab(
        self,
        party_id: uuid.UUID,
        shipment_type: str,
        mode_id: uuid.UUID,
        service_type_id: uuid.UUID,
        distance_slab_id: uuid.UUID,
        weight_slab_id: uuid.UUID,
    ) -> PartyRateSlab:
        stmt = select(PartyRateSlab).where(
            and_(
                PartyRateSlab.party_id == party_id,
                PartyRateSlab.shipment_type == shipment_type,
                PartyRateSlab.mode_id == mode_id,
                PartyRateSlab.service_type_id == service_type_id,
                PartyRateSlab.distance_slab_id == distance_slab_id,
                PartyRateSlab.weight_slab_id == weight_slab_id,
                PartyRateSlab.is_active == True,
            )
        )
        result = await self.db.execute(stmt)
        rate_slab = result.scalar_one_or_none()
        if rate_slab is None:
            diagnostics = {
                "party_id": str(party_id),
                "shipment_type": shipment_type,
                "mode_id": str(mode_id),
                "service_type_id": str(service_type_id),
                "distance_slab_id": str(distance_slab_id),
                "weight_slab_id": str(weight_slab_id),
            }
            logger.warning(f"No rate configured for {diagnostics}")
            raise NoRateConfigured(diagnostics=diagnostics)
        return rate_slab

    async def resolve(
        self,
        *,
        mode_code: str,
        service_type_code: str,
        shipment_type: Union[ShipmentType, str],
        party_id: Optional[uuid.UUID] = None,
        party_name: Optional[str] = None,
        origin_address: Optional[str] = None,
        destination_address: Optional[str] = None,
        region: Optional[str] = None,
        distance_slab_id: Optional[uuid.UUID] = None,
        weight_grams: Optional[int] = None,
        weight_slab_id: Optional[uuid.UUID] = None,
    ) -> ResolvedRate:
        if isinstance(shipment_type, ShipmentType):
            shipment_type = shipment_type.value

        await self.get_reference()
        mode = await self.resolve_mode(mode_code)
        service_type = await self.resolve_service_type(service_type_code)
        distance_slab, classification = await self.resolve_distance(
            origin_address, destination_address, region, distance_slab_id
        )
        weight_slab = await self.resolve_weight(weight_grams, weight_slab_id)
        party = await self.resolve_party(party_id, party_name)

        rate_slab = await self.find_rate_slab(
            party.id, shipment_type, mode.id, service_type.id, distance_slab.id, weight_slab.id
        )
        breakdown = compute_breakdown(
            rate_slab.rate,
            rate_slab.fuel_pct,
            rate_slab.packing,
            rate_slab.handling,
            rate_slab.gst_pct,
        )

        return ResolvedRate(
            rate_slab=rate_slab,
            party=party,
            mode=mode,
            service_type=service_type,
            shipment_type=shipment_type,
            distance_slab=distance_slab,
            weight_slab=weight_slab,
            breakdown=breakdown,
            classification=classification,
        )

    async def resolve_request(self, request: ResolveRateRequest) -> ResolvedRate:
        return await self.resolve(
            mode_code=request.mode_code,
            service_type_code=request.service_type_code,
            shipment_type=request.shipment_type,
            party_id=request.party_id,
            party_name=request.party_name,
            origin_address=request.origin_address,
            destination_address=request.destination_address,
            region=request.region,
            distance_slab_id=request.distance_slab_id,
            weight_grams=request.weight_grams,
            weight_slab_id=request.weight_slab_id,
        )


def infer_shipment_type(mode: Mode) -> str:
    """DOCUMENT iff the booking mode is the DOCUMENT mode."""
    if (mode.code or "").upper() == ShipmentType.DOCUMENT.value:
        return ShipmentType.DOCUMENT.value
    return ShipmentType.NON_DOCUMENT.value


__all__ = [
    "RateResolver",
    "ResolvedRate",
    "RateBreakdown",
    "compute_breakdown",
    "round2",
    "to_decimal",
    "normalize_code",
    "infer_shipment_type",
]
