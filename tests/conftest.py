"""
Pytest configuration and fixtures
"""

import os
from xml.sax.saxutils import quoteattr
from typing import AsyncGenerator, Iterable, Optional

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from core.database import create_session_factory
from ingestion.extractors.fpds_fetcher import FeedFetcher
from models.base import Base

ATOM_NS = "http://www.w3.org/2005/Atom"
FPDS_NS = "https://www.fpds.gov/FPDS"
FEED_URL = "https://www.fpds.gov/ezsearch/FEEDS/ATOM"


class FeedFactory:
    """Builds FPDS ATOM feed XML shaped like the public feed."""

    def award(
        self,
        piid: str = "W91QUZ24C0001",
        mod: str = "0",
        uei: Optional[str] = "ABCDEF123456",
        vendor_name: Optional[str] = "ACME DEFENSE LLC",
        agency_code: Optional[str] = "9700",
        agency_name: str = "DEPT OF DEFENSE",
        office_code: Optional[str] = "W91QUZ",
        office_name: str = "W6QK ACC-APG",
        funding_agency_code: Optional[str] = "2100",
        funding_agency_name: str = "DEPT OF THE ARMY",
        psc_code: Optional[str] = "R425",
        psc_description: str = "SUPPORT- PROFESSIONAL: ENGINEERING/TECHNICAL",
        naics_code: Optional[str] = "541330",
        naics_description: str = "ENGINEERING SERVICES",
        obligated: str = "$1,234.50",
        last_modified: str = "2024-01-15 10:00:00",
        small_business: str = "true",
        treasury: bool = True,
    ) -> str:
        purchaser = []
        if agency_code:
            purchaser.append(
                f'<ns1:contractingOfficeAgencyID name="{agency_name}">{agency_code}</ns1:contractingOfficeAgencyID>'
            )
        if office_code:
            purchaser.append(f'<ns1:contractingOfficeID name="{office_name}">{office_code}</ns1:contractingOfficeID>')
        if funding_agency_code:
            purchaser.append(
                f'<ns1:fundingRequestingAgencyID name="{funding_agency_name}">'
                f"{funding_agency_code}</ns1:fundingRequestingAgencyID>"
            )
        purchaser.append("<ns1:foreignFunding>X</ns1:foreignFunding>")

        product = []
        if psc_code:
            product.append(f'<ns1:productOrServiceCode description="{psc_description}">{psc_code}</ns1:productOrServiceCode>')
        if naics_code:
            product.append(f'<ns1:principalNAICSCode description="{naics_description}">{naics_code}</ns1:principalNAICSCode>')

        header = f"<ns1:vendorName>{vendor_name}</ns1:vendorName>" if vendor_name else ""
        identifiers = (
            "<ns1:entityIdentifiers><ns1:vendorUEIInformation>"
            f"<ns1:UEI>{uei}</ns1:UEI><ns1:UEILegalBusinessName>{vendor_name}</ns1:UEILegalBusinessName>"
            "</ns1:vendorUEIInformation><ns1:cageCode>1ABC2</ns1:cageCode></ns1:entityIdentifiers>"
            if uei else ""
        )
        accounts = (
            "<ns1:listOfTreasuryAccounts><ns1:treasuryAccount>"
            "<ns1:treasuryAccountSymbol><ns1:agencyIdentifier>097</ns1:agencyIdentifier>"
            "<ns1:mainAccountCode>0400</ns1:mainAccountCode></ns1:treasuryAccountSymbol>"
            "<ns1:initiative>NONE</ns1:initiative>"
            "</ns1:treasuryAccount></ns1:listOfTreasuryAccounts>"
            if treasury else ""
        )

        return (
            '<ns1:award version="1.5">'
            "<ns1:awardID><ns1:awardContractID>"
            f'<ns1:agencyID name="{agency_name}">{agency_code or ""}</ns1:agencyID>'
            f"<ns1:PIID>{piid}</ns1:PIID><ns1:modNumber>{mod}</ns1:modNumber>"
            "<ns1:transactionNumber>0</ns1:transactionNumber>"
            "</ns1:awardContractID></ns1:awardID>"
            "<ns1:relevantContractDates>"
            "<ns1:signedDate>2024-01-10 00:00:00</ns1:signedDate>"
            "<ns1:effectiveDate>2024-01-10 00:00:00</ns1:effectiveDate>"
            "<ns1:currentCompletionDate>2024-12-31 00:00:00</ns1:currentCompletionDate>"
            "</ns1:relevantContractDates>"
            "<ns1:dollarValues>"
            f"<ns1:obligatedAmount>{obligated}</ns1:obligatedAmount>"
            "<ns1:baseAndAllOptionsValue>5000.00</ns1:baseAndAllOptionsValue>"
            "</ns1:dollarValues>"
            f"<ns1:purchaserInformation>{''.join(purchaser)}</ns1:purchaserInformation>"
            "<ns1:contractData>"
            '<ns1:contractActionType description="DEFINITIVE CONTRACT">D</ns1:contractActionType>'
            '<ns1:typeOfContractPricing description="FIRM FIXED PRICE">J</ns1:typeOfContractPricing>'
            "<ns1:descriptionOfContractRequirement>ENGINEERING SUPPORT</ns1:descriptionOfContractRequirement>"
            "</ns1:contractData>"
            "<ns1:legislativeMandates><ns1:laborStandards>N</ns1:laborStandards></ns1:legislativeMandates>"
            f"<ns1:productOrServiceInformation>{''.join(product)}</ns1:productOrServiceInformation>"
            "<ns1:vendor>"
            f"<ns1:vendorHeader>{header}</ns1:vendorHeader>"
            "<ns1:vendorSiteDetails>"
            "<ns1:vendorSocioEconomicIndicators>"
            f"<ns1:isSmallBusiness>{small_business}</ns1:isSmallBusiness>"
            "<ns1:isVeteranOwned>false</ns1:isVeteranOwned>"
            "</ns1:vendorSocioEconomicIndicators>"
            "<ns1:vendorLocation><ns1:city>ARLINGTON</ns1:city><ns1:state>VA</ns1:state></ns1:vendorLocation>"
            f"{identifiers}"
            "</ns1:vendorSiteDetails>"
            "</ns1:vendor>"
            "<ns1:placeOfPerformance>"
            "<ns1:principalPlaceOfPerformance><ns1:stateCode>MD</ns1:stateCode>"
            "<ns1:countryCode>USA</ns1:countryCode></ns1:principalPlaceOfPerformance>"
            "<ns1:placeOfPerformanceZIPCode>21005</ns1:placeOfPerformanceZIPCode>"
            "</ns1:placeOfPerformance>"
            "<ns1:competition>"
            '<ns1:extentCompeted description="FULL AND OPEN COMPETITION">A</ns1:extentCompeted>'
            "<ns1:numberOfOffersReceived>3</ns1:numberOfOffersReceived>"
            "</ns1:competition>"
            "<ns1:transactionInformation>"
            "<ns1:createdBy>CO@ARMY.MIL</ns1:createdBy>"
            f"<ns1:lastModifiedDate>{last_modified}</ns1:lastModifiedDate>"
            "<ns1:status>F</ns1:status>"
            "</ns1:transactionInformation>"
            f"{accounts}"
            "</ns1:award>"
        )

    def idv(self, piid: str = "GS00F0001X", mod: str = "0", uei: str = "IDV000000001") -> str:
        return (
            '<ns1:IDV version="1.5">'
            "<ns1:contractID><ns1:IDVID>"
            f"<ns1:agencyID>4732</ns1:agencyID><ns1:PIID>{piid}</ns1:PIID><ns1:modNumber>{mod}</ns1:modNumber>"
            "</ns1:IDVID></ns1:contractID>"
            '<ns1:purchaserInformation><ns1:contractingOfficeAgencyID name="GSA">4732</ns1:contractingOfficeAgencyID>'
            "</ns1:purchaserInformation>"
            "<ns1:vendor><ns1:vendorHeader><ns1:vendorName>SCHEDULE HOLDER INC</ns1:vendorName></ns1:vendorHeader>"
            "<ns1:vendorSiteDetails><ns1:entityIdentifiers><ns1:vendorUEIInformation>"
            f"<ns1:UEI>{uei}</ns1:UEI>"
            "</ns1:vendorUEIInformation></ns1:entityIdentifiers></ns1:vendorSiteDetails></ns1:vendor>"
            "<ns1:transactionInformation><ns1:lastModifiedDate>2024-01-15 11:00:00</ns1:lastModifiedDate>"
            "</ns1:transactionInformation>"
            "</ns1:IDV>"
        )

    def entry(
        self,
        title: Optional[str] = "DEFINITIVE CONTRACT W91QUZ24C0001 awarded to ACME DEFENSE LLC",
        modified: Optional[str] = "2024-01-15T10:00:00Z",
        content: Optional[str] = None,
    ) -> str:
        parts = ["<entry>"]
        if title is not None:
            parts.append(f"<title>{title}</title>")
        parts.append('<link rel="alternate" type="text/html" href="https://www.fpds.gov/ezsearch/view"/>')
        if modified is not None:
            parts.append(f"<modified>{modified}</modified>")
        body = self.award() if content is None else content
        parts.append(f'<content type="application/xml">{body}</content>')
        parts.append("</entry>")
        return "".join(parts)

    def page(self, entries: Iterable[str], next_href: Optional[str] = None) -> str:
        links = [f'<link rel="self" type="application/atom+xml" href="{FEED_URL}?start=0"/>']
        if next_href:
            links.append(f'<link rel="next" type="application/atom+xml" href={quoteattr(next_href)}/>')
        return (
            '<?xml version="1.0" encoding="UTF-8"?>'
            f'<feed xmlns="{ATOM_NS}" xmlns:ns1="{FPDS_NS}">'
            "<title>FPDS-NG ATOM Feed</title>"
            f"{''.join(links)}"
            f"{''.join(entries)}"
            "</feed>"
        )


@pytest.fixture
def feed_factory() -> FeedFactory:
    """FPDS feed XML builder"""
    return FeedFactory()


@pytest.fixture
def database_url(tmp_path) -> str:
    """File-backed SQLite per test unless TEST_DATABASE_URL points elsewhere"""
    return os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'fpds_test.db'}"


@pytest_asyncio.fixture(scope="function")
async def test_engine(database_url):
    """Create test database engine"""
    engine = create_async_engine(
        database_url,
        echo=False,
        poolclass=NullPool,  # Disable connection pooling for tests
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables after test
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine):
    """Session factory bound to the test engine"""
    return create_session_factory(test_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def mock_fetcher_factory():
    """
    Build a ``FeedFetcher`` backed by ``httpx.MockTransport``.

    Retries default to zero so failing handlers never sleep.
    """
    def build(handler, max_retries: int = 0) -> FeedFetcher:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return FeedFetcher(client=client, max_retries=max_retries)

    return build
