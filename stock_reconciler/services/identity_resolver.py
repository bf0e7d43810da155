"""Self-learning cache of barcode to external catalog identifiers.

A mapping is written once a barcode has been found in the external catalog and
then refreshed every time it is confirmed again. The catalog client itself is
not part of this service: ``discover`` takes the search strategies to try as
async callables.
"""
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Sequence, Tuple, Any

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stock_reconciler.core.dates import utcnow
from stock_reconciler.core.exceptions import DuplicateConstraintViolation, PersistenceFailure
from stock_reconciler.db.database import upsert
from stock_reconciler.models.external_identity_mapping import (
    ExternalIdentityMapping,
    DISCOVERY_METHODS,
)

logger = logging.getLogger(__name__)

mapping_table = ExternalIdentityMapping.__table__


@dataclass(frozen=True)
class ExternalIds:
    product_id: str
    variant_id: Optional[str] = None
    inventory_item_id: Optional[str] = None
    product_name: Optional[str] = None


SearchStrategy = Callable[[str], Awaitable[Optional[ExternalIds]]]


class IdentityResolver:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def upsert(
        self,
        barcode: str,
        external_ids: ExternalIds,
        discovery_method: str,
        search_time_ms: Optional[int] = None,
        confidence_score: int = 100,
        product_name: Optional[str] = None
    ) -> str:
        """Insert or refresh the mapping for a barcode and return its id.

        Identifiers missing from ``external_ids`` never erase stored ones. Each
        call on an existing barcode bumps ``verification_count`` and refreshes
        ``last_verified_at``.
        """
        if discovery_method not in DISCOVERY_METHODS:
            raise ValueError(f"Unknown discovery method: {discovery_method}")
        if not 0 <= confidence_score <= 100:
            raise ValueError("Confidence score must be between 0 and 100")

        barcode = barcode.strip().upper()
        now = utcnow()

        stmt = upsert(self.db, mapping_table).values(
            barcode=barcode,
            external_product_id=external_ids.product_id,
            external_variant_id=external_ids.variant_id,
            external_inventory_item_id=external_ids.inventory_item_id,
            product_name=product_name or external_ids.product_name,
            discovery_method=discovery_method,
            confidence_score=confidence_score,
            search_time_ms=search_time_ms,
            last_verified_at=now,
            verification_count=1,
            created_at=now,
            updated_at=now
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=["barcode"],
            set_={
                "external_product_id": func.coalesce(excluded.external_product_id, mapping_table.c.external_product_id),
                "external_variant_id": func.coalesce(excluded.external_variant_id, mapping_table.c.external_variant_id),
                "external_inventory_item_id": func.coalesce(
                    excluded.external_inventory_item_id, mapping_table.c.external_inventory_item_id
                ),
                "product_name": func.coalesce(excluded.product_name, mapping_table.c.product_name),
                "discovery_method": excluded.discovery_method,
                "confidence_score": excluded.confidence_score,
                "search_time_ms": func.coalesce(excluded.search_time_ms, mapping_table.c.search_time_ms),
                "last_verified_at": now,
                "verification_count": mapping_table.c.verification_count + 1,
                "updated_at": now
            }
        ).returning(mapping_table.c.id)

        try:
            async with self.db.begin_nested():
                result = await self.db.execute(stmt)
                mapping_id = result.scalar_one()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateConstraintViolation(
                f"External variant {external_ids.variant_id} is already mapped to another barcode",
                barcode=barcode
            ) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to save identity mapping for {barcode}: {e}")
            raise PersistenceFailure(str(e), barcode=barcode) from e

        logger.debug(f"Saved identity mapping for {barcode} ({discovery_method})")
        return mapping_id

    async def lookup(self, barcode: str) -> Optional[ExternalIdentityMapping]:
        stmt = (
            select(ExternalIdentityMapping)
            .where(ExternalIdentityMapping.barcode == barcode.strip().upper())
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def discover(
        self,
        barcode: str,
        strategies: Sequence[Tuple[str, SearchStrategy]]
    ) -> Optional[ExternalIdentityMapping]:
        """Resolve a barcode from the cache, falling back to the given searches.

        ``strategies`` are ``(discovery_method, search)`` pairs tried in order.
        The first search that returns identifiers is recorded together with the
        time it took.
        """
        cached = await self.lookup(barcode)
        if cached:
            logger.debug(f"Cache hit for {barcode} ({cached.discovery_method})")
            return cached

        for method, search in strategies:
            started = time.perf_counter()
            found = await search(barcode)
            elapsed_ms = int((time.perf_counter() - started) * 1000)

            if found is None:
                logger.debug(f"{method} found nothing for {barcode} in {elapsed_ms}ms")
                continue

            logger.info(f"Discovered {barcode} via {method} in {elapsed_ms}ms")
            await self.upsert(
                barcode,
                found,
                method,
                search_time_ms=elapsed_ms
            )
            return await self.lookup(barcode)

        logger.warning(f"No external product found for {barcode}")
        return None

    async def stats(self) -> Dict[str, Any]:
        """Mapping counts per discovery method and the average search cost"""

        total_result = await self.db.execute(
            select(func.count(ExternalIdentityMapping.id), func.avg(ExternalIdentityMapping.search_time_ms))
        )
        total, average_ms = total_result.one()

        by_method_result = await self.db.execute(
            select(ExternalIdentityMapping.discovery_method, func.count(ExternalIdentityMapping.id))
            .group_by(ExternalIdentityMapping.discovery_method)
        )

        return {
            "total_mappings": total or 0,
            "by_discovery_method": {method: count for method, count in by_method_result.all()},
            "average_search_time_ms": float(average_ms) if average_ms is not None else None
        }
