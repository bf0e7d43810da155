from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stock_reconciler.core.exceptions import NotFoundError
from stock_reconciler.db.database import get_db
from stock_reconciler.schemas.identity_mapping import (
    IdentityMapping,
    IdentityMappingUpsert,
    IdentityMappingStats,
)
from stock_reconciler.services.identity_resolver import ExternalIds, IdentityResolver

router = APIRouter()


@router.put("/", response_model=IdentityMapping)
async def upsert_identity_mapping(
    mapping_in: IdentityMappingUpsert,
    db: AsyncSession = Depends(get_db)
):
    """Record or re-verify the external identifiers of a barcode"""

    resolver = IdentityResolver(db)
    await resolver.upsert(
        mapping_in.barcode,
        ExternalIds(
            product_id=mapping_in.external_product_id,
            variant_id=mapping_in.external_variant_id,
            inventory_item_id=mapping_in.external_inventory_item_id
        ),
        mapping_in.discovery_method,
        search_time_ms=mapping_in.search_time_ms,
        confidence_score=mapping_in.confidence_score,
        product_name=mapping_in.product_name
    )
    return await resolver.lookup(mapping_in.barcode)


@router.get("/stats", response_model=IdentityMappingStats)
async def get_identity_mapping_stats(db: AsyncSession = Depends(get_db)):
    """Mapping counts per discovery method and average search time"""
    resolver = IdentityResolver(db)
    return await resolver.stats()


@router.get("/{barcode}", response_model=IdentityMapping)
async def get_identity_mapping(
    barcode: str,
    db: AsyncSession = Depends(get_db)
):
    resolver = IdentityResolver(db)
    mapping = await resolver.lookup(barcode)
    if not mapping:
        raise NotFoundError("Identity mapping", barcode)
    return mapping
