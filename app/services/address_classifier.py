"""
Distance classification from free-text addresses.

Addresses are parsed heuristically into {city, state_code, pincode}; the
pair is then classified against metro-city membership and state adjacency
loaded as an immutable ReferenceData snapshot.

Precedence (first match wins):
    1. both cities are registered metro cities  -> METRO_CITIES
    2. same state                               -> WITHIN_STATE
    3. different but adjacent states            -> OUT_OF_STATE
    4. different, non-adjacent, both resolved   -> OTHER_STATE
    5. either state unresolved                  -> None

When a reference table cannot be read the snapshot carries None for it:
metro membership then answers "not metro" while adjacency answers
"adjacent", so a data-access error never yields OTHER_STATE.
"""
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Optional, Dict, FrozenSet, List, Tuple, NamedTuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.reference import DistanceCategory, DistanceSlab, MetroCity, StateNeighbor


logger = logging.getLogger(__name__)


# State name / code aliases. Short codes only match as whole words so that
# "KA" does not fire inside "KANPUR".
STATE_ALIASES: Dict[str, str] = {
    # Maharashtra
    "MAHARASHTRA": "MH", "MH": "MH", "BOMBAY": "MH", "MUMBAI": "MH", "NAVI MUMBAI": "MH",
    "PUNE": "MH", "NAGPUR": "MH", "THANE": "MH", "NASHIK": "MH",
    # Delhi NCR
    "DELHI": "DL", "NEW DELHI": "DL", "DL": "DL",
    "HARYANA": "HR", "HR": "HR", "GURGAON": "HR", "GURUGRAM": "HR", "FARIDABAD": "HR",
    "UTTAR PRADESH": "UP", "UP": "UP", "NOIDA": "UP", "GHAZIABAD": "UP",
    "LUCKNOW": "UP", "KANPUR": "UP", "VARANASI": "UP",
    # South
    "KARNATAKA": "KA", "KA": "KA", "BANGALORE": "KA", "BENGALURU": "KA",
    "MYSORE": "KA", "MYSURU": "KA", "MANGALORE": "KA",
    "TAMIL NADU": "TN", "TN": "TN", "CHENNAI": "TN", "MADRAS": "TN", "COIMBATORE": "TN",
    "TELANGANA": "TS", "TELANGANA STATE": "TS", "TS": "TS", "HYDERABAD": "TS", "SECUNDERABAD": "TS",
    "ANDHRA PRADESH": "AP", "AP": "AP", "VISAKHAPATNAM": "AP", "VIJAYAWADA": "AP",
    "KERALA": "KL", "KL": "KL", "KOCHI": "KL", "THIRUVANANTHAPURAM": "KL",
    "PUDUCHERRY": "PY", "PONDICHERRY": "PY", "PY": "PY",
    "GOA": "GA", "GA": "GA", "PANAJI": "GA",
    # West / Central
    "GUJARAT": "GJ", "GJ": "GJ", "AHMEDABAD": "GJ", "SURAT": "GJ", "VADODARA": "GJ",
    "RAJASTHAN": "RJ", "RJ": "RJ", "JAIPUR": "RJ",
    "MADHYA PRADESH": "MP", "MP": "MP", "BHOPAL": "MP", "INDORE": "MP",
    "CHHATTISGARH": "CG", "CG": "CG", "RAIPUR": "CG",
    # East / North-East
    "WEST BENGAL": "WB", "WB": "WB", "KOLKATA": "WB", "CALCUTTA": "WB", "HOWRAH": "WB",
    "BIHAR": "BR", "BR": "BR", "PATNA": "BR",
    "JHARKHAND": "JH", "JH": "JH", "RANCHI": "JH",
    "ODISHA": "OD", "ORISSA": "OD", "OD": "OD", "BHUBANESWAR": "OD",
    "ASSAM": "AS", "AS": "AS", "GUWAHATI": "AS",
    "SIKKIM": "SK", "SK": "SK",
    "MEGHALAYA": "ML", "ML": "ML",
    "TRIPURA": "TR", "TR": "TR",
    "MANIPUR": "MN", "MN": "MN",
    "MIZORAM": "MZ", "MZ": "MZ",
    "NAGALAND": "NL", "NL": "NL",
    "ARUNACHAL PRADESH": "AR", "AR": "AR",
    # North
    "PUNJAB": "PB", "PB": "PB", "LUDHIANA": "PB", "AMRITSAR": "PB",
    "CHANDIGARH": "CH", "CH": "CH",
    "HIMACHAL PRADESH": "HP", "HP": "HP", "SHIMLA": "HP",
    "UTTARAKHAND": "UK", "UK": "UK", "DEHRADUN": "UK",
    "JAMMU AND KASHMIR": "JK", "JAMMU": "JK", "KASHMIR": "JK", "JK": "JK", "SRINAGAR": "JK",
    "LADAKH": "LA",
}

# Names recognised as metro cities in address text, mapped to their
# canonical spelling in the metro_cities table.
METRO_CITY_NAMES: List[Tuple[str, str]] = [
    ("MUMBAI", "Mumbai"),
    ("BOMBAY", "Mumbai"),
    ("DELHI", "Delhi"),
    ("PUNE", "Pune"),
    ("BENGALURU", "Bengaluru"),
    ("BANGALORE", "Bengaluru"),
    ("CHENNAI", "Chennai"),
    ("MADRAS", "Chennai"),
    ("KOLKATA", "Kolkata"),
    ("CALCUTTA", "Kolkata"),
    ("HYDERABAD", "Hyderabad"),
    ("AHMEDABAD", "Ahmedabad"),
]

SHORT_ALIAS_LENGTH = 3

PINCODE_RE = re.compile(r"\b\d{6}\b")
NOISE_RE = re.compile(r"[^A-Z0-9]+")
LETTER_DIGIT_RE = re.compile(r"(?<=[A-Z])(?=\d)|(?<=\d)(?=[A-Z])")


def _alias_pattern(alias: str) -> re.Pattern:
    if len(alias) <= SHORT_ALIAS_LENGTH:
        return re.compile(rf"\b{re.escape(alias)}\b")
    # Full names match anywhere in the text
    return re.compile(re.escape(alias))


# Longest aliases first so "NEW DELHI" / "TELANGANA STATE" win over their parts
_ALIAS_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (_alias_pattern(alias), code)
    for alias, code in sorted(STATE_ALIASES.items(), key=lambda item: (-len(item[0]), item[0]))
]

_METRO_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(rf"\b{re.escape(name)}\b"), canonical) for name, canonical in METRO_CITY_NAMES
]


@dataclass(frozen=True)
class ParsedAddress:
    city: Optional[str] = None
    state_code: Optional[str] = None
    pincode: Optional[str] = None

    def to_dict(self) -> dict:
        return {"city": self.city, "state_code": self.state_code, "pincode": self.pincode}


def normalize_address_text(text: Optional[str]) -> str:
    """Upper-case, drop punctuation and split letters glued to digits."""
    upper = (text or "").strip().upper()
    if not upper:
        return ""
    upper = LETTER_DIGIT_RE.sub(" ", upper)
    return " ".join(NOISE_RE.sub(" ", upper).split())


def parse_address(text: Optional[str]) -> ParsedAddress:
    """Heuristic parse of a free-text Indian address."""
    normalized = normalize_address_text(text)
    if not normalized:
        return ParsedAddress()

    pin_match = PINCODE_RE.search(normalized)
    pincode = pin_match.group(0) if pin_match else None

    state_code = None
    for pattern, code in _ALIAS_PATTERNS:
        if pattern.search(normalized):
            state_code = code
            break

    city = None
    for pattern, canonical in _METRO_PATTERNS:
        if pattern.search(normalized):
            city = canonical
            break

    return ParsedAddress(city=city, state_code=state_code, pincode=pincode)


class SlabRef(NamedTuple):
    id: uuid.UUID
    code: str
    title: str


@dataclass(frozen=True)
class ReferenceData:
    """
    Read-only snapshot of the classification tables.

    metro_cities / neighbors are None when their table could not be read.
    """
    metro_cities: Optional[FrozenSet[str]] = None
    neighbors: Optional[FrozenSet[Tuple[str, str]]] = None
    distance_slabs: Dict[str, SlabRef] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        metro_cities: Optional[List[str]] = None,
        neighbor_pairs: Optional[List[Tuple[str, str]]] = None,
        distance_slabs: Optional[List[SlabRef]] = None,
    ) -> "ReferenceData":
        metros = None
        if metro_cities is not None:
            metros = frozenset(city.strip().lower() for city in metro_cities if city)
        neighbors = None
        if neighbor_pairs is not None:
            pairs = set()
            for a, b in neighbor_pairs:
                pairs.add((a.upper(), b.upper()))
                pairs.add((b.upper(), a.upper()))
            neighbors = frozenset(pairs)
        slabs = {slab.code: slab for slab in (distance_slabs or [])}
        return cls(metro_cities=metros, neighbors=neighbors, distance_slabs=slabs)

    def is_metro_city(self, city: Optional[str]) -> bool:
        if not city:
            return False
        if self.metro_cities is None:
            return False
        return city.strip().lower() in self.metro_cities

    def are_neighbor_states(self, a: Optional[str], b: Optional[str]) -> bool:
        if not a or not b:
            return False
        if self.neighbors is None:
            return True
        return (a.upper(), b.upper()) in self.neighbors

    def slab_for(self, category: Optional[DistanceCategory]) -> Optional[SlabRef]:
        if category is None:
            return None
        return self.distance_slabs.get(category.value)

    def slab_by_title(self, title: Optional[str]) -> Optional[SlabRef]:
        wanted = (title or "").strip().lower()
        if not wanted:
            return None
        for slab in self.distance_slabs.values():
            if slab.title.strip().lower() == wanted:
                return slab
        return None


@dataclass(frozen=True)
class DistanceClassification:
    category: Optional[DistanceCategory]
    origin: ParsedAddress
    destination: ParsedAddress
    is_neighbor: bool = False
    is_metro_pair: bool = False
    title: Optional[str] = None
    distance_slab_id: Optional[uuid.UUID] = None

    def diagnostics(self) -> dict:
        return {
            "category": self.category.value if self.category else None,
            "title": self.title,
            "origin": self.origin.to_dict(),
            "destination": self.destination.to_dict(),
            "is_neighbor": self.is_neighbor,
            "is_metro_pair": self.is_metro_pair,
        }


class AddressClassifier:
    """Pure classifier over an injected ReferenceData snapshot."""

    def __init__(self, reference: ReferenceData):
        self.reference = reference

    def classify(
        self,
        origin_address: Optional[str],
        destination_address: Optional[str],
    ) -> DistanceClassification:
        origin = parse_address(origin_address)
        destination = parse_address(destination_address)

        is_metro_pair = (
            self.reference.is_metro_city(origin.city)
            and self.reference.is_metro_city(destination.city)
        )
        is_neighbor = False
        category: Optional[DistanceCategory] = None

        if is_metro_pair:
            category = DistanceCategory.METRO_CITIES
        elif origin.state_code and destination.state_code:
            if origin.state_code == destination.state_code:
                category = DistanceCategory.WITHIN_STATE
            elif self.reference.are_neighbor_states(origin.state_code, destination.state_code):
                is_neighbor = True
                category = DistanceCategory.OUT_OF_STATE
            else:
                category = DistanceCategory.OTHER_STATE

        slab = self.reference.slab_for(category)
        return DistanceClassification(
            category=category,
            origin=origin,
            destination=destination,
            is_neighbor=is_neighbor,
            is_metro_pair=is_metro_pair,
            title=slab.title if slab else (category.value if category else None),
            distance_slab_id=slab.id if slab else None,
        )


async def load_reference_data(db: AsyncSession) -> ReferenceData:
    """
    Load the classification tables for one request.

    Each table is read inside its own SAVEPOINT, so a failed read only rolls
    back that read and leaves the rest of the session untouched.
    """
    metro_cities: Optional[List[str]] = None
    neighbor_pairs: Optional[List[Tuple[str, str]]] = None
    distance_slabs: List[SlabRef] = []

    try:
        async with db.begin_nested():
            result = await db.execute(select(MetroCity.city).where(MetroCity.is_active == True))
            metro_cities = [row[0] for row in result.all()]
    except SQLAlchemyError as e:
        logger.warning(f"metro_cities unavailable, treating every city as non-metro: {e}")

    try:
        async with db.begin_nested():
            result = await db.execute(
                select(StateNeighbor.state_code, StateNeighbor.neighbor_state_code)
            )
            neighbor_pairs = [(row[0], row[1]) for row in result.all()]
    except SQLAlchemyError as e:
        logger.warning(f"state_neighbors unavailable, treating differing states as adjacent: {e}")

    try:
        async with db.begin_nested():
            result = await db.execute(select(DistanceSlab.id, DistanceSlab.code, DistanceSlab.title))
            distance_slabs = [SlabRef(id=row[0], code=row[1], title=row[2]) for row in result.all()]
    except SQLAlchemyError as e:
        logger.warning(f"distance_slabs unavailable: {e}")

    return ReferenceData.build(
        metro_cities=metro_cities,
        neighbor_pairs=neighbor_pairs,
        distance_slabs=distance_slabs,
    )
