"""
Transactional writer for one feed page.

One page is one transaction:

1. drop entries whose ``atom_entry_id`` is already stored
2. resolve or create dimensions (vendors, agencies, offices, PSCs, NAICS)
3. insert ContractAction rows, skipping ``atom_entry_id`` conflicts
4. re-query the fact ids this batch inserted (by ``ingest_batch_id``)
5. insert ContractVendorDetail and TreasuryAccount rows for those ids

A uniqueness conflict on the fact insert means another worker stored the
same entry first; it is logged and counted. Any other database error rolls
the whole page back and surfaces as ``BatchWriteError``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import settings
from core.exceptions import BatchWriteError
from core.logging import LoggerLike
from ingestion.extractors.atom_parser import FeedEntry
from ingestion.loaders.dimension_resolver import DimensionCache, DimensionKind, DimensionResolver
from ingestion.loaders.statements import chunked, insert_rows
from models import ContractAction, ContractVendorDetail, TreasuryAccount
from schemas.ingestion import BatchResult
import logging

logger = logging.getLogger(__name__)


class BatchWriter:
    """
    Persist page batches for one feed traversal.

    The writer owns the traversal's ``DimensionCache``. Each batch resolves
    against a child copy that is merged back only after commit.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        cache: Optional[DimensionCache] = None,
        chunk_size: Optional[int] = None,
        logger: Optional[LoggerLike] = None,
    ):
        self.session_factory = session_factory
        self.cache = cache if cache is not None else DimensionCache()
        self.chunk_size = chunk_size or settings.INSERT_CHUNK_SIZE
        self.log = logger or logging.getLogger(__name__)

    async def write(self, entries: Sequence[FeedEntry]) -> BatchResult:
        """
        Write one page of entries atomically.

        Raises:
            BatchWriteError: the transaction failed and was rolled back
        """
        if not entries:
            return BatchResult()

        batch_id = str(uuid4())
        page_cache = self.cache.child()
        stage = "precheck"

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = BatchResult()

                    new_entries = await self._drop_existing(session, entries, result)
                    if not new_entries:
                        return result

                    stage = "dimensions"
                    resolver = DimensionResolver(session, page_cache, self.chunk_size, self.log)
                    await resolver.resolve([entry.references for entry in new_entries])

                    stage = "facts"
                    facts = self._build_facts(new_entries, page_cache, batch_id, result)
                    ids = await self._insert_facts(session, facts, batch_id, result)

                    stage = "children"
                    await self._insert_children(session, new_entries, ids, result)
        except SQLAlchemyError as e:
            self.log.error(f"Batch rolled back at stage '{stage}': {e}")
            raise BatchWriteError(
                f"Batch write failed during {stage}",
                context={"stage": stage, "entries": len(entries), "batch_id": batch_id},
                original_exception=e,
            )

        self.cache.merge(page_cache)
        self.log.info(
            f"Batch saved {result.saved} new record(s) "
            f"(existing={result.skipped_existing}, no_vendor={result.skipped_no_vendor}, "
            f"conflicts={result.conflicts})"
        )
        return result

    async def _drop_existing(
        self, session: AsyncSession, entries: Sequence[FeedEntry], result: BatchResult
    ) -> List[FeedEntry]:
        unique: Dict[str, FeedEntry] = {}
        for entry in entries:
            unique.setdefault(entry.entry_id, entry)

        existing = set()
        for chunk in chunked(list(unique), self.chunk_size):
            rows = await session.execute(
                select(ContractAction.atom_entry_id).where(ContractAction.atom_entry_id.in_(chunk))
            )
            existing.update(rows.scalars().all())

        result.skipped_existing = len(existing)
        if existing:
            self.log.debug(f"{len(existing)} entr(ies) already stored")
        return [entry for entry_id, entry in unique.items() if entry_id not in existing]

    def _build_facts(
        self,
        entries: List[FeedEntry],
        cache: DimensionCache,
        batch_id: str,
        result: BatchResult,
    ) -> List[Dict[str, Any]]:
        now = datetime.now(timezone.utc)
        facts = []

        for entry in entries:
            refs = entry.references
            vendor_id = cache.lookup(DimensionKind.VENDOR, refs["uei"])
            if not isinstance(vendor_id, int):
                result.skipped_no_vendor += 1
                self.log.warning(
                    f"Skipping entry {entry.entry_id[:12]} ({entry.title!r}): "
                    f"vendor UEI {refs['uei']!r} did not resolve"
                )
                continue

            agency_id = cache.lookup(DimensionKind.AGENCY, refs["contracting_agency_code"])
            if agency_id is None:
                self.log.warning(
                    f"Entry {entry.entry_id[:12]} has unresolved contracting agency "
                    f"{refs['contracting_agency_code']!r}"
                )

            row = dict(entry.fields)
            row.update({
                "atom_entry_id": entry.entry_id,
                "atom_title": entry.title,
                "atom_feed_modified_date": entry.modified,
                "vendor_id": vendor_id,
                "agency_id": agency_id,
                "funding_agency_id": cache.lookup(DimensionKind.AGENCY, refs["funding_agency_code"]),
                "contracting_office_id": cache.lookup(DimensionKind.OFFICE, refs["contracting_office_code"]),
                "funding_office_id": cache.lookup(DimensionKind.OFFICE, refs["funding_office_code"]),
                "product_or_service_code_id": cache.lookup(DimensionKind.PSC, refs["psc_code"]),
                "naics_code_id": cache.lookup(DimensionKind.NAICS, refs["naics_code"]),
                "raw_xml_content_sha256": entry.content_sha256,
                "atom_content": entry.document,
                "ingest_batch_id": batch_id,
                "fetched_at": now,
                "db_updated_at": now,
            })
            facts.append(row)
        return facts

    async def _insert_facts(
        self,
        session: AsyncSession,
        facts: List[Dict[str, Any]],
        batch_id: str,
        result: BatchResult,
    ) -> Dict[str, int]:
        if not facts:
            return {}

        await insert_rows(session, ContractAction, facts, self.chunk_size, conflict_column="atom_entry_id")

        rows = await session.execute(
            select(ContractAction.atom_entry_id, ContractAction.id)
            .where(ContractAction.ingest_batch_id == batch_id)
        )
        ids = {entry_id: fact_id for entry_id, fact_id in rows.all()}

        result.saved = len(ids)
        result.conflicts = len(facts) - len(ids)
        if result.conflicts:
            self.log.warning(
                f"{result.conflicts} fact row(s) already inserted by a concurrent writer; skipped"
            )
        return ids

    async def _insert_children(
        self,
        session: AsyncSession,
        entries: List[FeedEntry],
        ids: Dict[str, int],
        result: BatchResult,
    ):
        details = []
        accounts = []
        for entry in entries:
            fact_id = ids.get(entry.entry_id)
            if fact_id is None:
                continue
            if entry.vendor_details:
                details.append({**entry.vendor_details, "contract_action_id": fact_id})
            for account in entry.treasury_accounts:
                accounts.append({**account, "contract_action_id": fact_id})

        await insert_rows(session, ContractVendorDetail, details, self.chunk_size,
                          conflict_column="contract_action_id")
        await insert_rows(session, TreasuryAccount, accounts, self.chunk_size)
        result.vendor_details = len(details)
        result.treasury_accounts = len(accounts)
