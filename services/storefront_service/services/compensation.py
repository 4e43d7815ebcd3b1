"""Compensation runner: give reserved stock back when a purchase is cancelled."""

from dataclasses import dataclass, field
from typing import Sequence

from libs.common.logging import get_logger
from services.storefront_service.errors import CompensationFailure
from services.storefront_service.services import inventory_ledger
from services.storefront_service.services.audit import record_compensation_failures
from services.storefront_service.services.purchase_store import ReservedLine
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class CompensationReport:
    purchase_id: int
    restored: list[ReservedLine] = field(default_factory=list)
    failures: list[CompensationFailure] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures

    @property
    def restored_units(self) -> int:
        return sum(line.quantity for line in self.restored)


async def run_compensation(
    db: AsyncSession,
    purchase_id: int,
    lines: Sequence[ReservedLine],
    *,
    performed_by: str,
) -> CompensationReport:
    """Restore every line of a cancelled purchase.

    Each restore commits on its own; a failure is logged, flagged for
    reconciliation and skipped, and never raised to the caller.
    """
    report = CompensationReport(purchase_id=purchase_id)

    for line in lines:
        try:
            await inventory_ledger.restore(
                db,
                line.product_id,
                line.quantity,
                purchase_id=purchase_id,
                performed_by=performed_by,
                notes=f"Cancellation of purchase #{purchase_id}",
            )
        except Exception as exc:
            await db.rollback()
            failure = CompensationFailure(
                purchase_id, line.product_id, line.quantity, exc
            )
            logger.error("%s", failure)
            report.failures.append(failure)
        else:
            report.restored.append(line)

    if report.failures:
        await record_compensation_failures(db, report.failures, performed_by)
        logger.error(
            "Purchase #%s cancelled with %d unrestored line(s); flagged for reconciliation",
            purchase_id,
            len(report.failures),
        )
    return report
