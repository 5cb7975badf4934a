from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from models.base import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Vendor(Base):
    """
    Contractor receiving the award.

    Business key is the SAM Unique Entity Identifier. It is nullable at the
    schema level, but the ingestion path only creates vendors it can key.
    """
    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    uei_sam = Column(String(32), unique=True, nullable=True, index=True)
    vendor_name = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Agency(Base):
    """Contracting or funding agency, keyed by FPDS agency code."""
    __tablename__ = "agencies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    agency_code = Column(String(64), unique=True, nullable=False, index=True)
    agency_name = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    offices = relationship("GovernmentOffice", back_populates="agency")


class GovernmentOffice(Base):
    """
    Contracting or funding office.

    ``agency_id`` stays NULL when the owning agency could not be resolved
    at the time the office was first seen.
    """
    __tablename__ = "government_offices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    office_code = Column(String(64), unique=True, nullable=False, index=True)
    office_name = Column(Text, nullable=True)
    agency_id = Column(Integer, ForeignKey("agencies.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    agency = relationship("Agency", back_populates="offices")


class ProductOrServiceCode(Base):
    __tablename__ = "product_or_service_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    psc_code = Column(String(32), unique=True, nullable=False, index=True)
    psc_description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class NaicsCode(Base):
    __tablename__ = "naics_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    naics_code = Column(String(32), unique=True, nullable=False, index=True)
    naics_description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
