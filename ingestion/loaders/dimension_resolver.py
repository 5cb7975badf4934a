"""
Dimension resolution for one page batch.

For each dimension, in dependency order (vendors, agencies, offices, PSCs,
NAICS), business keys referenced by the batch are resolved:

1. from the traversal's in-memory cache
2. with one bulk lookup against the store
3. by inserting the still-unknown rows (``ON CONFLICT DO NOTHING``) and
   re-querying them, so keys a concurrent writer inserted first are picked up
   instead of failing the batch

Rows are created once and never updated: the first name or description
seen for a new key wins.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.logging import LoggerLike
from ingestion.loaders.statements import insert_rows, select_ids_by_key
from models import Agency, GovernmentOffice, NaicsCode, ProductOrServiceCode, Vendor
import logging

logger = logging.getLogger(__name__)


class DimensionKind(enum.Enum):
    VENDOR = "vendor"
    AGENCY = "agency"
    OFFICE = "office"
    PSC = "psc"
    NAICS = "naics"


@dataclass(frozen=True)
class DimensionSpec:
    model: Any
    key_column: str
    name_column: str
    cache_field: str


DIMENSION_SPECS: Dict[DimensionKind, DimensionSpec] = {
    DimensionKind.VENDOR: DimensionSpec(Vendor, "uei_sam", "vendor_name", "vendors"),
    DimensionKind.AGENCY: DimensionSpec(Agency, "agency_code", "agency_name", "agencies"),
    DimensionKind.OFFICE: DimensionSpec(GovernmentOffice, "office_code", "office_name", "offices"),
    DimensionKind.PSC: DimensionSpec(ProductOrServiceCode, "psc_code", "psc_description", "pscs"),
    DimensionKind.NAICS: DimensionSpec(NaicsCode, "naics_code", "naics_description", "naics"),
}

# Offices reference agencies, so agencies must be resolved first
DIMENSION_ORDER: List[DimensionKind] = [
    DimensionKind.VENDOR,
    DimensionKind.AGENCY,
    DimensionKind.OFFICE,
    DimensionKind.PSC,
    DimensionKind.NAICS,
]

# (reference key field, reference name field, owning agency key field)
_REFERENCE_FIELDS: Dict[DimensionKind, List[Tuple[str, str, Optional[str]]]] = {
    DimensionKind.VENDOR: [("uei", "vendor_name", None)],
    DimensionKind.AGENCY: [
        ("contracting_agency_code", "contracting_agency_name", None),
        ("funding_agency_code", "funding_agency_name", None),
    ],
    DimensionKind.OFFICE: [
        ("contracting_office_code", "contracting_office_name", "contracting_agency_code"),
        ("funding_office_code", "funding_office_name", "funding_agency_code"),
    ],
    DimensionKind.PSC: [("psc_code", "psc_description", None)],
    DimensionKind.NAICS: [("naics_code", "naics_description", None)],
}


@dataclass
class DimensionCache:
    """
    Business key to id maps, one per dimension.

    Owned by a single feed traversal. Page batches work on a ``child()`` copy
    and ``merge`` it back only after their transaction commits.
    """
    vendors: Dict[str, int] = field(default_factory=dict)
    agencies: Dict[str, int] = field(default_factory=dict)
    offices: Dict[str, int] = field(default_factory=dict)
    pscs: Dict[str, int] = field(default_factory=dict)
    naics: Dict[str, int] = field(default_factory=dict)

    def ids(self, kind: DimensionKind) -> Dict[str, int]:
        return getattr(self, DIMENSION_SPECS[kind].cache_field)

    def lookup(self, kind: DimensionKind, key: Optional[str]) -> Optional[int]:
        if key is None:
            return None
        return self.ids(kind).get(key)

    def child(self) -> "DimensionCache":
        return DimensionCache(
            vendors=dict(self.vendors),
            agencies=dict(self.agencies),
            offices=dict(self.offices),
            pscs=dict(self.pscs),
            naics=dict(self.naics),
        )

    def merge(self, other: "DimensionCache"):
        for kind in DIMENSION_ORDER:
            self.ids(kind).update(other.ids(kind))

    def __len__(self) -> int:
        return sum(len(self.ids(kind)) for kind in DIMENSION_ORDER)


@dataclass
class ObservedKey:
    """First sighting of a business key within a batch."""
    key: str
    name: Optional[str]
    agency_code: Optional[str] = None


def collect_references(
    kind: DimensionKind, references: Iterable[Dict[str, Any]]
) -> Dict[str, ObservedKey]:
    """
    Business keys of ``kind`` in observation order.

    Later sightings of a key already observed are ignored, never merged.
    """
    observed: Dict[str, ObservedKey] = {}
    for refs in references:
        for key_field, name_field, agency_field in _REFERENCE_FIELDS[kind]:
            key = refs.get(key_field)
            if not key or key in observed:
                continue
            observed[key] = ObservedKey(
                key=key,
                name=refs.get(name_field),
                agency_code=refs.get(agency_field) if agency_field else None,
            )
    return observed


@dataclass
class ResolutionStats:
    cached: int = 0
    found: int = 0
    created: int = 0
    unresolved: List[str] = field(default_factory=list)


class DimensionResolver:
    """Resolve and create dimension rows inside the caller's transaction."""

    def __init__(
        self,
        session: AsyncSession,
        cache: DimensionCache,
        chunk_size: Optional[int] = None,
        logger: Optional[LoggerLike] = None,
    ):
        self.session = session
        self.cache = cache
        self.chunk_size = chunk_size or settings.INSERT_CHUNK_SIZE
        self.log = logger or logging.getLogger(__name__)
        self.stats: Dict[DimensionKind, ResolutionStats] = {}

    async def resolve(self, references: List[Dict[str, Any]]) -> DimensionCache:
        """Resolve every dimension referenced by ``references`` into the cache."""
        for kind in DIMENSION_ORDER:
            self.stats[kind] = await self.resolve_kind(kind, collect_references(kind, references))
        return self.cache

    async def resolve_kind(self, kind: DimensionKind, observed: Dict[str, ObservedKey]) -> ResolutionStats:
        spec = DIMENSION_SPECS[kind]
        known = self.cache.ids(kind)
        stats = ResolutionStats()

        unknown = [key for key in observed if key not in known]
        stats.cached = len(observed) - len(unknown)
        if not unknown:
            return stats

        found = await select_ids_by_key(self.session, spec.model, spec.key_column, unknown, self.chunk_size)
        known.update(found)
        stats.found = len(found)

        missing = [key for key in unknown if key not in found]
        if not missing:
            return stats

        rows = [self._new_row(kind, observed[key]) for key in missing]
        await insert_rows(self.session, spec.model, rows, self.chunk_size, conflict_column=spec.key_column)

        # Mandatory re-query: ids are not returned by the bulk insert and a
        # concurrent writer may have inserted some of these keys first
        created = await select_ids_by_key(self.session, spec.model, spec.key_column, missing, self.chunk_size)
        known.update(created)
        stats.created = len(created)

        stats.unresolved = [key for key in missing if key not in created]
        if stats.unresolved:
            self.log.warning(f"Could not resolve {len(stats.unresolved)} {kind.value} key(s): {stats.unresolved[:5]}")
        else:
            self.log.debug(f"Created {len(created)} {kind.value} row(s)")
        return stats

    def _new_row(self, kind: DimensionKind, observed: ObservedKey) -> Dict[str, Any]:
        spec = DIMENSION_SPECS[kind]
        row = {spec.key_column: observed.key, spec.name_column: observed.name}

        if kind is DimensionKind.VENDOR:
            row[spec.name_column] = observed.name or "N/A"
        elif kind is DimensionKind.OFFICE:
            agency_id = self.cache.lookup(DimensionKind.AGENCY, observed.agency_code)
            if agency_id is None:
                self.log.warning(
                    f"Office {observed.key} references unresolved agency "
                    f"{observed.agency_code!r}; creating it without an agency"
                )
            row["agency_id"] = agency_id
        return row
