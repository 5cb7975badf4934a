"""
Warehouse statistics endpoint
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from api.dependencies import get_db
from schemas.api import StatsResponse
from models import (
    Agency,
    ContractAction,
    ContractVendorDetail,
    GovernmentOffice,
    NaicsCode,
    ProductOrServiceCode,
    TreasuryAccount,
    Vendor,
)
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Statistics"])

DIMENSION_MODELS = [Vendor, Agency, GovernmentOffice, ProductOrServiceCode, NaicsCode]


async def _count(db: AsyncSession, model) -> int:
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar() or 0


@router.get("/stats", response_model=StatsResponse)
async def get_stats(db: AsyncSession = Depends(get_db)):
    """
    Get warehouse statistics.

    Returns:
    - Fact row counts overall and by record type
    - Dimension and child table sizes
    - Latest FPDS last-modified timestamp ingested
    """
    request_id = f"req_{uuid.uuid4().hex[:12]}"
    logger.info(f"[{request_id}] GET /stats")

    by_type_result = await db.execute(
        select(ContractAction.record_type, func.count(ContractAction.id))
        .group_by(ContractAction.record_type)
    )
    by_type = {
        (record_type or "unknown"): count
        for record_type, count in by_type_result.all()
    }

    latest_result = await db.execute(select(func.max(ContractAction.fpds_last_modified_date)))

    return StatsResponse(
        total_contract_actions=sum(by_type.values()),
        contract_actions_by_record_type=by_type,
        dimension_counts={
            model.__tablename__: await _count(db, model) for model in DIMENSION_MODELS
        },
        vendor_details=await _count(db, ContractVendorDetail),
        treasury_accounts=await _count(db, TreasuryAccount),
        latest_fpds_last_modified=latest_result.scalar(),
    )
