"""
Integration tests for dimension resolution against the store
"""

from unittest.mock import patch

import pytest
from sqlalchemy import select

from ingestion.loaders.dimension_resolver import (
    DimensionCache,
    DimensionKind,
    DimensionResolver,
    collect_references,
)
from ingestion.loaders.statements import select_ids_by_key
from models import Agency, GovernmentOffice, Vendor


def refs(**overrides):
    base = {
        "uei": "ABCDEF123456",
        "vendor_name": "ACME DEFENSE LLC",
        "contracting_agency_code": "9700",
        "contracting_agency_name": "DEPT OF DEFENSE",
        "funding_agency_code": None,
        "funding_agency_name": None,
        "contracting_office_code": "W91QUZ",
        "contracting_office_name": "ACC-APG",
        "funding_office_code": None,
        "funding_office_name": None,
        "psc_code": "R425",
        "psc_description": "ENGINEERING",
        "naics_code": "541330",
        "naics_description": "ENGINEERING SERVICES",
    }
    base.update(overrides)
    return base


def test_collect_references_keeps_first_sighting():
    observed = collect_references(DimensionKind.AGENCY, [
        refs(contracting_agency_name="FIRST NAME"),
        refs(contracting_agency_name="SECOND NAME", funding_agency_code="2100", funding_agency_name="ARMY"),
    ])

    assert list(observed) == ["9700", "2100"]
    assert observed["9700"].name == "FIRST NAME"


def test_office_observation_carries_its_agency():
    observed = collect_references(DimensionKind.OFFICE, [refs()])
    assert observed["W91QUZ"].agency_code == "9700"


def test_cache_child_and_merge():
    parent = DimensionCache(vendors={"A": 1})
    child = parent.child()
    child.vendors["B"] = 2

    assert "B" not in parent.vendors
    parent.merge(child)
    assert parent.lookup(DimensionKind.VENDOR, "B") == 2
    assert parent.lookup(DimensionKind.VENDOR, None) is None
    assert len(parent) == 2


class TestDimensionResolver:
    @pytest.mark.asyncio
    async def test_creates_then_finds(self, session_factory):
        async with session_factory() as session:
            async with session.begin():
                resolver = DimensionResolver(session, DimensionCache())
                cache = await resolver.resolve([refs()])

        assert resolver.stats[DimensionKind.VENDOR].created == 1
        assert cache.lookup(DimensionKind.VENDOR, "ABCDEF123456") is not None

        async with session_factory() as session:
            async with session.begin():
                second = DimensionResolver(session, DimensionCache())
                second_cache = await second.resolve([refs()])

        assert second.stats[DimensionKind.VENDOR].found == 1
        assert second.stats[DimensionKind.VENDOR].created == 0
        assert second_cache.vendors == cache.vendors

    @pytest.mark.asyncio
    async def test_cached_keys_skip_the_store(self, session_factory):
        cache = DimensionCache()
        async with session_factory() as session:
            async with session.begin():
                await DimensionResolver(session, cache).resolve([refs()])

        async with session_factory() as session:
            async with session.begin():
                resolver = DimensionResolver(session, cache)
                await resolver.resolve([refs()])

        assert resolver.stats[DimensionKind.AGENCY].cached == 1
        assert resolver.stats[DimensionKind.AGENCY].found == 0

    @pytest.mark.asyncio
    async def test_office_links_to_agency_resolved_in_same_batch(self, session_factory):
        async with session_factory() as session:
            async with session.begin():
                await DimensionResolver(session, DimensionCache()).resolve([refs()])

        async with session_factory() as session:
            office = (await session.execute(select(GovernmentOffice))).scalar_one()
            agency = (await session.execute(select(Agency))).scalar_one()
        assert office.agency_id == agency.id
        assert agency.agency_name == "DEPT OF DEFENSE"

    @pytest.mark.asyncio
    async def test_entries_without_keys_resolve_nothing(self, session_factory):
        empty = refs(
            uei=None, contracting_agency_code=None, contracting_office_code=None,
            psc_code=None, naics_code=None,
        )
        async with session_factory() as session:
            async with session.begin():
                cache = await DimensionResolver(session, DimensionCache()).resolve([empty])

        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_key_inserted_concurrently_is_picked_up_by_requery(self, session_factory):
        async with session_factory() as session:
            async with session.begin():
                first = await DimensionResolver(session, DimensionCache()).resolve([refs()])
        vendor_id = first.lookup(DimensionKind.VENDOR, "ABCDEF123456")

        calls = []

        async def lookup_misses_vendor_once(session, model, *args, **kwargs):
            # The vendor row appears between the lookup and the insert
            if model is Vendor and not calls:
                calls.append(model)
                return {}
            return await select_ids_by_key(session, model, *args, **kwargs)

        with patch(
            "ingestion.loaders.dimension_resolver.select_ids_by_key",
            new=lookup_misses_vendor_once,
        ):
            async with session_factory() as session:
                async with session.begin():
                    resolver = DimensionResolver(session, DimensionCache())
                    cache = await resolver.resolve([refs()])

        assert calls == [Vendor]
        assert resolver.stats[DimensionKind.VENDOR].created == 1
        assert resolver.stats[DimensionKind.VENDOR].unresolved == []
        assert cache.lookup(DimensionKind.VENDOR, "ABCDEF123456") == vendor_id
        async with session_factory() as session:
            vendors = (await session.execute(select(Vendor))).scalars().all()
        assert len(vendors) == 1
