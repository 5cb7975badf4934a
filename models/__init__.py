"""
SQLAlchemy ORM models for the FPDS warehouse.

This package defines the database schema using SQLAlchemy ORM models:

Models:
    base: Base declarative class and shared enums (JobStatus, RecordType)
    dimensions: Append-only reference tables (Vendor, Agency,
        GovernmentOffice, ProductOrServiceCode, NaicsCode)
    contract_action: ContractAction fact table, one row per feed entry
    contract_children: ContractVendorDetail and TreasuryAccount child rows
    job_tracker: Resumable per-job ingestion state

Database Schema:
    Column types fall back to portable equivalents (JSON, INTEGER keys) on
    SQLite so the same metadata serves PostgreSQL and local test databases.

Usage:
    from models import ContractAction, Vendor, JobTracker
    from models.base import JobStatus

Relationships:
    - Vendor → ContractAction (one-to-many, mandatory on the fact)
    - Agency → GovernmentOffice (one-to-many, nullable on the office)
    - ContractAction → ContractVendorDetail (one-to-zero-or-one)
    - ContractAction → TreasuryAccount (one-to-many)
"""

from models.base import Base, JobStatus, RecordType
from models.dimensions import (
    Vendor,
    Agency,
    GovernmentOffice,
    ProductOrServiceCode,
    NaicsCode,
)
from models.contract_action import ContractAction
from models.contract_children import ContractVendorDetail, TreasuryAccount
from models.job_tracker import JobTracker

__all__ = [
    "Base",
    "JobStatus",
    "RecordType",
    "Vendor",
    "Agency",
    "GovernmentOffice",
    "ProductOrServiceCode",
    "NaicsCode",
    "ContractAction",
    "ContractVendorDetail",
    "TreasuryAccount",
    "JobTracker",
]
